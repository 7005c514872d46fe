"""Create shipments, receipts, transfers and adjustments.

Every function here runs in one transaction: either the movement header, its
lines, its fulfillment links and the order status updates are all written, or
nothing is.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from core.exceptions import (
    ConsistencyError,
    DocumentMismatch,
    EmptySelection,
    InvalidPhysicalStatus,
    InsufficientQuantity,
    MissingWarehouse,
    NonPositiveQuantity,
)
from documents.models import CommercialDocument, CommercialLine, InventoryState
from inventory.models import FulfillmentLink, MovementDocument, MovementExt, MovementLine
from inventory.services.fulfillment import fulfilled_qty, record_link, remaining_qty, sync_order_status
from masterdata.services.pack import exact_qty

logger = logging.getLogger(__name__)

DocType = MovementDocument.DocType
PhysicalStatus = MovementDocument.PhysicalStatus

# Which order type each movement type fulfills
FULFILLS = {
    DocType.SHIPMENT: CommercialDocument.DocType.SO,
    DocType.RECEIPT: CommercialDocument.DocType.PO,
    DocType.TRANSFER: CommercialDocument.DocType.TO,
}

DEFAULT_PHYSICAL_STATUS = {
    DocType.SHIPMENT: PhysicalStatus.IN_TRANSIT,
    DocType.RECEIPT: PhysicalStatus.RECEIVED,
}


def _selection_parts(selection):
    if isinstance(selection, dict):
        line = selection.get("commercial_line")
        line_id = selection.get("commercial_line_id") or selection.get("id")
        qty = selection.get("qty_to_process")
    else:
        line = getattr(selection, "line", None) or getattr(selection, "commercial_line", None)
        line_id = None
        qty = getattr(selection, "qty_to_process", None)

    if line is not None:
        line_id = line.pk
    return line_id, qty


def _normalize_selections(selections):
    """{line_id: qty} for selections with qty > 0. Duplicates are summed."""
    wanted = {}
    for selection in selections or []:
        line_id, qty = _selection_parts(selection)
        qty = exact_qty(qty or 0, what="Quantity to process")
        if qty < 0:
            raise NonPositiveQuantity(qty, what="Quantity to process")
        if qty == 0 or line_id is None:
            continue
        wanted[line_id] = wanted.get(line_id, Decimal("0.000")) + qty

    if not wanted:
        raise EmptySelection()
    return wanted


def _resolve_physical_status(movement_type, physical_status):
    allowed = MovementDocument.PHYSICAL_STATUSES.get(movement_type)
    if allowed is None:
        if physical_status:
            raise InvalidPhysicalStatus(f"{movement_type} movements have no physical status.")
        return ""

    if not physical_status:
        return DEFAULT_PHYSICAL_STATUS[movement_type]
    if physical_status not in allowed:
        raise InvalidPhysicalStatus(
            f"'{physical_status}' is not a valid physical status for a {movement_type}. "
            f"Use one of: {', '.join(allowed)}."
        )
    return physical_status


def _orders_of(movement):
    return set(
        FulfillmentLink.objects
        .filter(movement_line__document=movement)
        .values_list("commercial_line__document_id", flat=True)
        .distinct()
    )


def _sync_orders(document_ids):
    for doc in CommercialDocument.objects.filter(pk__in=document_ids).order_by("pk"):
        sync_order_status(doc)


def _add_line(movement, line_no, item, warehouse_id, inventory_state, qty_base, lot_number="", reason=""):
    return MovementLine.objects.create(
        document=movement,
        line_no=line_no,
        item=item,
        warehouse_id=warehouse_id,
        inventory_state=inventory_state,
        qty_base=qty_base,
        lot_number=lot_number or "",
        effective_date=movement.effective_date,
        reason=reason or "",
    )


def post_movement(movement_type, effective_date, primary_warehouse, selections,
                  physical_status=None, secondary_warehouse=None, inventory_state=None,
                  note="", ext=None, by=None):
    """Post a shipment, receipt or transfer against order lines.

    Steps:
    1) Validate input (selection, warehouses, physical status)
    2) Lock the selected order lines (pk order) and re-check remaining qty
    3) Create the header; pending physical status -> DRAFT, otherwise POSTED
    4) Create signed movement lines (Shipment -q, Receipt +q, Transfer -q/+q)
       and one FulfillmentLink per fulfilled line with the unsigned qty
    5) Store carrier details, re-check conservation, sync order statuses

    `selections` is an iterable of dicts or objects with `commercial_line`
    (or `commercial_line_id`) and `qty_to_process`. AvailableLine works as is.
    """
    if movement_type not in FULFILLS:
        raise DocumentMismatch(f"{movement_type} movements do not fulfill orders. Use post_adjustment() instead.")

    wanted = _normalize_selections(selections)
    if primary_warehouse is None:
        raise MissingWarehouse("primary")

    mirrored = movement_type == DocType.TRANSFER and getattr(settings, "INVENTORY_MIRROR_TRANSFERS", True)
    if mirrored and secondary_warehouse is None:
        raise MissingWarehouse("secondary")

    physical_status = _resolve_physical_status(movement_type, physical_status)

    with transaction.atomic():
        lines = list(
            CommercialLine.objects
            .select_for_update()
            .select_related("document", "item")
            .filter(pk__in=wanted.keys())
            .order_by("pk")
        )
        missing = set(wanted) - {line.pk for line in lines}
        if missing:
            raise DocumentMismatch(f"Unknown order line(s): {', '.join(str(pk) for pk in sorted(missing))}.")

        expected = FULFILLS[movement_type]
        for line in lines:
            if line.document.doc_type != expected:
                raise DocumentMismatch(
                    f"Line {line.line_no} belongs to {line.document}; a {movement_type} can only fulfill {expected} lines."
                )

        for line in lines:
            remaining = remaining_qty(line)
            if wanted[line.pk] > remaining:
                raise InsufficientQuantity(line, wanted[line.pk], remaining)

        movement = MovementDocument.objects.create(
            doc_type=movement_type,
            physical_status=physical_status,
            effective_date=effective_date,
            primary_warehouse=primary_warehouse,
            secondary_warehouse=secondary_warehouse,
            note=note or "",
        )
        if movement_type == DocType.TRANSFER or not MovementDocument.is_pending(physical_status):
            movement.post(by=by)
            movement.save()

        line_no = 0
        for line in lines:
            qty = wanted[line.pk]
            state = inventory_state or line.inventory_state
            source_id = line.warehouse_id or primary_warehouse.pk

            if movement_type == DocType.SHIPMENT:
                line_no += 1
                fulfilling = _add_line(movement, line_no, line.item, source_id, state, -qty, line.lot_number)
            elif movement_type == DocType.TRANSFER and mirrored:
                line_no += 1
                _add_line(movement, line_no, line.item, source_id, state, -qty, line.lot_number)
                line_no += 1
                fulfilling = _add_line(movement, line_no, line.item, secondary_warehouse.pk, state, qty, line.lot_number)
            elif movement_type == DocType.TRANSFER:
                line_no += 1
                fulfilling = _add_line(movement, line_no, line.item, primary_warehouse.pk, state, qty, line.lot_number)
            else:
                line_no += 1
                fulfilling = _add_line(movement, line_no, line.item, source_id, state, qty, line.lot_number)

            record_link(line, fulfilling, qty)

        if ext:
            MovementExt.objects.create(
                document=movement,
                **{k: v for k, v in ext.items() if k in MovementExt.FIELDS and v not in (None, "")},
            )

        for line in lines:
            linked = fulfilled_qty(line)
            if linked > line.qty_ordered:
                raise ConsistencyError(line, linked)

        _sync_orders({line.document_id for line in lines})

    logger.info(
        "Posted %s %s (%s, %s): %d order line(s)",
        movement_type, movement.pk, movement.state, physical_status or "-", len(lines),
    )
    return movement


@transaction.atomic
def update_physical_status(movement, physical_status, by=None):
    """Change where the goods are. Pending statuses keep (or put) the movement in DRAFT."""
    movement = MovementDocument.objects.select_for_update().get(pk=movement.pk)

    if movement.state == MovementDocument.State.CANCELED:
        raise InvalidPhysicalStatus("A canceled movement cannot change physical status.")

    allowed = MovementDocument.PHYSICAL_STATUSES.get(movement.doc_type)
    if allowed is None:
        raise InvalidPhysicalStatus(f"{movement.doc_type} movements have no physical status.")
    if physical_status not in allowed:
        raise InvalidPhysicalStatus(
            f"'{physical_status}' is not a valid physical status for a {movement.doc_type}. "
            f"Use one of: {', '.join(allowed)}."
        )

    previous = movement.physical_status
    pending = MovementDocument.is_pending(physical_status)
    if pending and movement.state == MovementDocument.State.POSTED:
        movement.revert_to_draft(by=by)
    elif not pending and movement.state == MovementDocument.State.DRAFT:
        movement.post(by=by)

    movement.physical_status = physical_status
    movement.save()

    _sync_orders(_orders_of(movement))

    logger.info("%s %s physical status %s -> %s (%s)", movement.doc_type, movement.pk, previous, physical_status, movement.state)
    return movement


@transaction.atomic
def cancel_movement(movement, by=None):
    """Cancel a movement. Its lines leave the balance and its links stop counting."""
    movement = MovementDocument.objects.select_for_update().get(pk=movement.pk)
    movement.cancel(by=by)
    movement.save()

    _sync_orders(_orders_of(movement))

    logger.info("Canceled %s %s", movement.doc_type, movement.pk)
    return movement


def post_adjustment(effective_date, warehouse, lines, note="", by=None):
    """Post a stock adjustment: signed quantities, no order links, always POSTED.

    `lines` holds dicts with `item`, `qty` (signed eaches) and optionally
    `reason`, `inventory_state`, `lot_number`, `warehouse`.
    """
    if warehouse is None:
        raise MissingWarehouse("primary")

    entries = []
    for entry in lines or []:
        qty = exact_qty(entry.get("qty") or 0, what="Adjustment quantity")
        if qty != 0:
            entries.append((entry, qty))
    if not entries:
        raise EmptySelection("Enter at least one adjustment line with a non-zero quantity.")

    with transaction.atomic():
        movement = MovementDocument.objects.create(
            doc_type=DocType.ADJUSTMENT,
            effective_date=effective_date,
            primary_warehouse=warehouse,
            note=note or "",
        )
        movement.post(by=by)
        movement.save()

        for line_no, (entry, qty) in enumerate(entries, start=1):
            line_warehouse = entry.get("warehouse") or warehouse
            _add_line(
                movement,
                line_no,
                entry["item"],
                line_warehouse.pk,
                entry.get("inventory_state") or InventoryState.STOCK,
                qty,
                entry.get("lot_number", ""),
                entry.get("reason", ""),
            )

    logger.info("Posted adjustment %s at %s: %d line(s)", movement.pk, warehouse, len(entries))
    return movement
