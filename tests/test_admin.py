from decimal import Decimal

import pytest
from django.contrib import admin
from django.urls import reverse

from documents.models import CommercialDocument, PurchaseOrder, SalesOrder, TransferOrder
from inventory.models import Adjustment, InventoryBalanceRow, MovementDocument, Receipt, Shipment, Transfer
from inventory.services.posting import post_adjustment, post_movement
from invoicing.models import Invoice
from masterdata.models import Item, PackSize, Terms, Warehouse
from tests.conftest import TODAY

pytestmark = pytest.mark.django_db


def ship(line, qty, warehouse, **kwargs):
    return post_movement(MovementDocument.DocType.SHIPMENT, TODAY, warehouse,
                         [{"commercial_line": line, "qty_to_process": Decimal(qty)}], **kwargs)


class TestRegistration:
    @pytest.mark.parametrize("model", [
        Item, PackSize, Warehouse, Terms,
        SalesOrder, PurchaseOrder, TransferOrder,
        Shipment, Receipt, Transfer, Adjustment, InventoryBalanceRow,
        Invoice,
    ])
    def test_registered(self, model):
        assert admin.site.is_registered(model)


class TestChangelists:
    @pytest.mark.parametrize("name", [
        "documents_salesorder", "documents_purchaseorder", "documents_transferorder",
        "inventory_shipment", "inventory_receipt", "inventory_adjustment",
        "inventory_inventorybalancerow", "invoicing_invoice", "masterdata_item",
    ])
    def test_changelist_renders(self, admin_client, so_line, warehouse, name):
        ship(so_line, "2", warehouse)
        response = admin_client.get(reverse(f"admin:{name}_changelist"))
        assert response.status_code == 200

    def test_inventory_overview_rows(self, admin_client, item, warehouse):
        post_adjustment(TODAY, warehouse, [{"item": item, "qty": 12}])
        response = admin_client.get(reverse("admin:inventory_inventorybalancerow_changelist"))
        assert response.status_code == 200
        assert "120 LB (12 EA)" in response.content.decode()

    def test_uninvoiced_filter(self, admin_client, sales_order, so_line, warehouse):
        ship(so_line, "2", warehouse)
        url = reverse("admin:documents_salesorder_changelist") + "?uninvoiced=1"
        response = admin_client.get(url)
        assert response.status_code == 200
        assert sales_order.doc_no in response.content.decode()


class TestObjectActions:
    def test_mark_delivered(self, admin_client, so_line, warehouse):
        shipment = ship(so_line, "2", warehouse, physical_status="Pending Pickup")
        url = reverse("admin:inventory_shipment_actions", args=[shipment.pk, "mark_done"])
        response = admin_client.post(url)
        assert response.status_code == 302

        shipment = MovementDocument.objects.get(pk=shipment.pk)
        assert shipment.physical_status == "Delivered"
        assert shipment.state == MovementDocument.State.POSTED

    def test_cancel(self, admin_client, so_line, warehouse):
        shipment = ship(so_line, "2", warehouse)
        admin_client.post(reverse("admin:inventory_shipment_actions", args=[shipment.pk, "cancel_action"]))
        assert MovementDocument.objects.get(pk=shipment.pk).state == MovementDocument.State.CANCELED

    def test_fulfill_remaining(self, admin_client, sales_order, so_line):
        url = reverse("admin:documents_salesorder_actions", args=[sales_order.pk, "fulfill_remaining"])
        admin_client.post(url)
        assert CommercialDocument.objects.get(pk=sales_order.pk).status == "Shipped"

    def test_create_invoice(self, admin_client, sales_order, so_line):
        url = reverse("admin:documents_salesorder_actions", args=[sales_order.pk, "create_invoice_action"])
        response = admin_client.post(url)
        invoice = Invoice.objects.get(sales_order=sales_order)
        assert response.status_code == 302
        assert response.url == reverse("admin:invoicing_invoice_change", args=[invoice.pk])

    def test_issue_invoice(self, admin_client, sales_order, so_line):
        from invoicing.services.invoices import create_invoice

        invoice = create_invoice(sales_order, TODAY)
        admin_client.post(reverse("admin:invoicing_invoice_actions", args=[invoice.pk, "issue_action"]))
        assert Invoice.objects.get(pk=invoice.pk).status == Invoice.Status.ISSUED

    def test_issue_empty_invoice_reports_error(self, admin_client, sales_order):
        invoice = Invoice.objects.create(sales_order=sales_order, invoice_date=TODAY)
        response = admin_client.post(
            reverse("admin:invoicing_invoice_actions", args=[invoice.pk, "issue_action"]),
            follow=True,
        )
        assert response.status_code == 200
        assert "Could not update invoice" in response.content.decode()
        assert Invoice.objects.get(pk=invoice.pk).status == Invoice.Status.DRAFT


class TestItemDefaults:
    def test_json(self, admin_client, item):
        url = reverse("admin:documents_salesorder_item_defaults", args=[item.pk])
        data = admin_client.get(url).json()
        assert data["pack_size"] == "10LB BAG (10 LB/EA)"
        assert data["units_of_units"] == "LB"
