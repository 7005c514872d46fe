from decimal import Decimal

import pytest
from django_fsm import TransitionNotAllowed
from django_fsm_log.models import StateLog

from core.exceptions import (
    ConsistencyError,
    DocumentMismatch,
    EmptySelection,
    ExcessPrecision,
    InsufficientQuantity,
    InvalidPhysicalStatus,
    MissingWarehouse,
    NonPositiveQuantity,
    PostingValidationError,
)
from documents.models import CommercialDocument
from inventory.models import FulfillmentLink, MovementDocument, MovementLine, Shipment
from inventory.services.balance import balance
from inventory.services.fulfillment import remaining_qty
from inventory.services.posting import cancel_movement, post_adjustment, post_movement, update_physical_status
from masterdata.services.pack import divisibility_warning, to_each
from tests.conftest import TODAY

pytestmark = pytest.mark.django_db

DocType = MovementDocument.DocType
State = MovementDocument.State


def selection(line, qty):
    return [{"commercial_line": line, "qty_to_process": Decimal(qty)}]


def reload(movement):
    return MovementDocument.objects.get(pk=movement.pk)


class TestSignConvention:
    def test_shipment_is_negative(self, so_line, warehouse):
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "4"))
        line = movement.lines.get()
        assert line.qty_base == Decimal("-4")
        assert line.warehouse_id == warehouse.pk
        assert line.item_id == so_line.item_id
        assert line.effective_date == TODAY

        link = FulfillmentLink.objects.get(movement_line=line)
        assert link.commercial_line_id == so_line.pk
        assert link.qty_linked_base == Decimal("4")

    def test_receipt_is_positive(self, po_line, warehouse):
        movement = post_movement(DocType.RECEIPT, TODAY, warehouse, selection(po_line, "6"))
        assert movement.lines.get().qty_base == Decimal("6")

    def test_line_warehouse_wins_over_primary(self, sales_order, item, warehouse, east):
        line, _ = sales_order.add_line(item, qty_ordered=Decimal("2"), warehouse=east)
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(line, "2"))
        assert movement.lines.get().warehouse_id == east.pk

    def test_inventory_state_override(self, so_line, warehouse):
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"), inventory_state="Hold")
        assert movement.lines.get().inventory_state == "Hold"

    def test_lot_number_is_carried(self, sales_order, item, warehouse):
        line, _ = sales_order.add_line(item, qty_ordered=Decimal("2"), lot_number="LOT-7")
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(line, "2"))
        assert movement.lines.get().lot_number == "LOT-7"


class TestValidation:
    def test_empty_selection(self, so_line, warehouse):
        with pytest.raises(EmptySelection):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, [])
        with pytest.raises(EmptySelection):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "0"))

    def test_negative_quantity(self, so_line, warehouse):
        with pytest.raises(NonPositiveQuantity):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "-1"))

    def test_missing_warehouse(self, so_line):
        with pytest.raises(MissingWarehouse):
            post_movement(DocType.SHIPMENT, TODAY, None, selection(so_line, "1"))

    def test_insufficient_quantity_is_not_clamped(self, so_line, warehouse):
        with pytest.raises(InsufficientQuantity) as exc:
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "11"))
        assert exc.value.requested == Decimal("11")
        assert exc.value.remaining == Decimal("10")
        assert exc.value.code == "insufficient_quantity"
        assert MovementDocument.objects.count() == 0

    def test_extra_decimal_places_are_not_rounded_away(self, sales_order, so_line, warehouse):
        with pytest.raises(ExcessPrecision) as exc:
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "10.0004"))
        assert exc.value.code == "excess_precision"
        assert exc.value.qty == Decimal("10.0004")
        assert MovementDocument.objects.count() == 0
        assert remaining_qty(so_line) == Decimal("10")
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Pending Shipment"

    def test_three_decimal_places_are_accepted(self, so_line, warehouse):
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "9.999"))
        assert movement.lines.get().qty_base == Decimal("-9.999")
        assert remaining_qty(so_line) == Decimal("0.001")

    def test_second_posting_sees_first(self, so_line, warehouse):
        post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "7"))
        with pytest.raises(InsufficientQuantity):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "4"))
        assert remaining_qty(so_line) == Decimal("3")

    def test_wrong_order_type(self, po_line, warehouse):
        with pytest.raises(DocumentMismatch):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(po_line, "1"))

    def test_adjustment_type_is_rejected(self, so_line, warehouse):
        with pytest.raises(DocumentMismatch):
            post_movement(DocType.ADJUSTMENT, TODAY, warehouse, selection(so_line, "1"))

    def test_invalid_physical_status(self, so_line, warehouse):
        with pytest.raises(InvalidPhysicalStatus):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"), physical_status="Received")

    def test_errors_share_a_base_class(self, so_line, warehouse):
        with pytest.raises(PostingValidationError):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, [])


class TestAtomicity:
    def test_failure_rolls_back_every_line(self, sales_order, so_line, widget, warehouse):
        other, _ = sales_order.add_line(widget, qty_ordered=Decimal("2"))
        selections = selection(so_line, "5") + selection(other, "3")

        with pytest.raises(InsufficientQuantity):
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selections)

        assert MovementDocument.objects.count() == 0
        assert MovementLine.objects.count() == 0
        assert FulfillmentLink.objects.count() == 0
        assert remaining_qty(so_line) == Decimal("10")
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Pending Shipment"

    def test_failure_after_writing_rolls_back_everything(self, sales_order, so_line, widget, warehouse, monkeypatch):
        other, _ = sales_order.add_line(widget, qty_ordered=Decimal("2"))
        monkeypatch.setattr(
            "inventory.services.posting.fulfilled_qty",
            lambda line: line.qty_ordered + 1,
        )

        with pytest.raises(ConsistencyError) as exc:
            post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "5") + selection(other, "2"),
                          ext={"carrier_name": "ACME Freight"})

        assert exc.value.line.pk == so_line.pk
        assert MovementDocument.objects.count() == 0
        assert MovementLine.objects.count() == 0
        assert FulfillmentLink.objects.count() == 0
        assert not StateLog.objects.exists()
        assert remaining_qty(so_line) == Decimal("10")
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Pending Shipment"

    def test_one_movement_for_several_lines(self, sales_order, so_line, widget, warehouse):
        other, _ = sales_order.add_line(widget, qty_ordered=Decimal("2"))
        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "5") + selection(other, "2"))
        assert list(movement.lines.values_list("line_no", "qty_base")) == [(1, Decimal("-5")), (2, Decimal("-2"))]
        assert FulfillmentLink.objects.filter(movement_line__document=movement).count() == 2


class TestPhysicalStatus:
    def test_defaults(self, so_line, po_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        receipt = post_movement(DocType.RECEIPT, TODAY, warehouse, selection(po_line, "1"))
        assert (shipment.physical_status, shipment.state) == ("In Transit", State.POSTED)
        assert (receipt.physical_status, receipt.state) == ("Received", State.POSTED)
        assert shipment.posted_at is not None

    def test_pending_is_draft(self, po_line, warehouse):
        receipt = post_movement(DocType.RECEIPT, TODAY, warehouse, selection(po_line, "1"), physical_status="Pending Delivery")
        assert receipt.state == State.DRAFT
        assert receipt.posted_at is None

    def test_leaving_pending_posts(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "3"), physical_status="Pending Pickup")
        assert balance(so_line.item, warehouse) == Decimal("0")

        update_physical_status(shipment, "In Transit")
        shipment = reload(shipment)
        assert shipment.state == State.POSTED
        assert shipment.physical_status == "In Transit"
        assert balance(so_line.item, warehouse) == Decimal("-3")

        update_physical_status(shipment, "Delivered")
        assert reload(shipment).state == State.POSTED

    def test_back_to_pending_reverts(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "3"))
        update_physical_status(shipment, "Pending Pickup")
        shipment = reload(shipment)
        assert shipment.state == State.DRAFT
        assert shipment.posted_at is None
        assert balance(so_line.item, warehouse) == Decimal("0")

    def test_status_must_match_type(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        with pytest.raises(InvalidPhysicalStatus):
            update_physical_status(shipment, "Received")

    def test_canceled_cannot_move(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        cancel_movement(shipment)
        with pytest.raises(InvalidPhysicalStatus):
            update_physical_status(shipment, "Delivered")

    def test_transitions_are_logged(self, so_line, warehouse, django_user_model):
        user = django_user_model.objects.create_user(username="clerk", password="x")
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"),
                                 physical_status="Pending Pickup", by=user)
        update_physical_status(shipment, "In Transit", by=user)
        cancel_movement(shipment, by=user)

        logs = StateLog.objects.for_(reload(shipment)).order_by("timestamp", "pk")
        assert [(log.transition, log.state) for log in logs] == [("post", "Posted"), ("cancel", "Canceled")]
        assert all(log.by_id == user.pk for log in logs)


class TestCancel:
    def test_cancel_releases_and_resyncs(self, sales_order, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "10"))
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Shipped"

        cancel_movement(shipment)
        shipment = reload(shipment)
        assert shipment.state == State.CANCELED
        assert shipment.canceled_at is not None
        assert remaining_qty(so_line) == Decimal("10")
        assert balance(so_line.item, warehouse) == Decimal("0")
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Pending Shipment"

    def test_cancel_twice(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        cancel_movement(shipment)
        with pytest.raises(TransitionNotAllowed):
            cancel_movement(shipment)

    def test_proxy_sees_movement(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        assert Shipment.objects.filter(pk=shipment.pk).exists()


class TestTransfer:
    def test_mirrored_pair(self, transfer_order, to_line, warehouse, east):
        movement = post_movement(DocType.TRANSFER, TODAY, warehouse, selection(to_line, "5"), secondary_warehouse=east)
        assert movement.state == State.POSTED
        assert list(movement.lines.values_list("warehouse_id", "qty_base")) == [
            (warehouse.pk, Decimal("-5")),
            (east.pk, Decimal("5")),
        ]
        link = FulfillmentLink.objects.get(commercial_line=to_line)
        assert link.movement_line.warehouse_id == east.pk
        assert link.qty_linked_base == Decimal("5")

        assert balance(to_line.item, warehouse) + balance(to_line.item, east) == Decimal("0")
        assert CommercialDocument.objects.get(pk=transfer_order.pk).status == "Transferred"

    def test_partial_transfer_status(self, transfer_order, to_line, warehouse, east):
        post_movement(DocType.TRANSFER, TODAY, warehouse, selection(to_line, "2"), secondary_warehouse=east)
        assert CommercialDocument.objects.get(pk=transfer_order.pk).status == "Partially Transferred"

    def test_needs_destination(self, to_line, warehouse):
        with pytest.raises(MissingWarehouse) as exc:
            post_movement(DocType.TRANSFER, TODAY, warehouse, selection(to_line, "1"))
        assert exc.value.role == "secondary"

    def test_single_line_when_not_mirrored(self, to_line, warehouse, settings):
        settings.INVENTORY_MIRROR_TRANSFERS = False
        movement = post_movement(DocType.TRANSFER, TODAY, warehouse, selection(to_line, "5"))
        assert list(movement.lines.values_list("warehouse_id", "qty_base")) == [(warehouse.pk, Decimal("5"))]

    def test_single_line_ignores_line_warehouse(self, transfer_order, item, warehouse, east, settings):
        settings.INVENTORY_MIRROR_TRANSFERS = False
        line, _ = transfer_order.add_line(item, qty_ordered=Decimal("3"), warehouse=east)
        movement = post_movement(DocType.TRANSFER, TODAY, warehouse, selection(line, "3"))
        assert list(movement.lines.values_list("warehouse_id", "qty_base")) == [(warehouse.pk, Decimal("3"))]
        assert balance(item, warehouse) == Decimal("3")
        assert balance(item, east) == Decimal("0")

    def test_transfers_have_no_physical_status(self, to_line, warehouse, east):
        with pytest.raises(InvalidPhysicalStatus):
            post_movement(DocType.TRANSFER, TODAY, warehouse, selection(to_line, "1"),
                          secondary_warehouse=east, physical_status="In Transit")


class TestVolumeEntry:
    def test_shipping_a_volume_that_splits_an_each(self, sales_order, item, warehouse):
        line, _ = sales_order.add_line(item, qty_ordered=Decimal("100"))

        entered = Decimal("205")
        assert divisibility_warning(entered, item.pack_size) is not None
        qty = to_each(entered, item.pack_size)
        assert qty == Decimal("20.5")

        movement = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(line, qty))
        assert movement.lines.get().qty_base == Decimal("-20.5")
        assert FulfillmentLink.objects.get(commercial_line=line).qty_linked_base == Decimal("20.5")
        assert remaining_qty(line) == Decimal("79.5")
        assert balance(item, warehouse) == Decimal("-20.5")
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Partially Shipped"


class TestCarrierDetails:
    def test_ext_is_stored(self, so_line, warehouse):
        shipment = post_movement(
            DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"),
            ext={"carrier_name": "ACME Freight", "tracking_number": "1Z999", "packages_count": 2, "unknown": "x"},
        )
        ext = reload(shipment).ext
        assert ext.carrier_name == "ACME Freight"
        assert ext.tracking_number == "1Z999"
        assert ext.packages_count == 2

    def test_no_ext_by_default(self, so_line, warehouse):
        shipment = post_movement(DocType.SHIPMENT, TODAY, warehouse, selection(so_line, "1"))
        assert not hasattr(reload(shipment), "ext")


class TestAdjustment:
    def test_signed_lines_are_posted(self, item, widget, warehouse):
        movement = post_adjustment(TODAY, warehouse, [
            {"item": item, "qty": Decimal("12"), "reason": "Cycle count"},
            {"item": widget, "qty": Decimal("-3"), "reason": "Damaged"},
            {"item": widget, "qty": Decimal("0")},
        ], note="March count")

        assert movement.doc_type == DocType.ADJUSTMENT
        assert movement.state == State.POSTED
        assert list(movement.lines.values_list("qty_base", "reason")) == [
            (Decimal("12"), "Cycle count"),
            (Decimal("-3"), "Damaged"),
        ]
        assert not FulfillmentLink.objects.exists()
        assert balance(item, warehouse) == Decimal("12")
        assert balance(widget, warehouse) == Decimal("-3")

    def test_only_zero_lines(self, item, warehouse):
        with pytest.raises(EmptySelection):
            post_adjustment(TODAY, warehouse, [{"item": item, "qty": 0}])

    def test_missing_warehouse(self, item):
        with pytest.raises(MissingWarehouse):
            post_adjustment(TODAY, None, [{"item": item, "qty": 1}])

    def test_extra_decimal_places(self, item, warehouse):
        with pytest.raises(ExcessPrecision):
            post_adjustment(TODAY, warehouse, [{"item": item, "qty": Decimal("-0.0005")}])
        assert not MovementDocument.objects.exists()

    def test_inventory_state(self, item, warehouse):
        post_adjustment(TODAY, warehouse, [{"item": item, "qty": 4, "inventory_state": "Consignment"}])
        assert balance(item, warehouse, "Consignment") == Decimal("4")
        assert balance(item, warehouse, "Stock") == Decimal("0")
