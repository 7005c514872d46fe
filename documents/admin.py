from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.shortcuts import redirect
from django.urls import reverse
from django.utils import timezone
from django_object_actions import DjangoObjectActions, action
from simple_history.admin import SimpleHistoryAdmin

from documents.mixins import CommercialDocDefaultsMixin, ItemDefaultsAdminMixin
from documents.models import CommercialDocument, CommercialLine, PurchaseOrder, SalesOrder, TransferOrder
from inventory.models import MovementDocument
from inventory.services.fulfillment import available_lines, fulfillment_progress
from inventory.services.posting import post_movement
from invoicing.services.gate import uninvoiced_sales_orders
from invoicing.services.invoices import create_invoice
from masterdata.services.pack import format_quantity


class CommercialLineInline(admin.TabularInline):
    model = CommercialLine
    extra = 0
    fk_name = "document"
    fields = ("line_no", "item", "qty_ordered", "inventory_state", "warehouse", "secondary_warehouse",
              "requested_date", "promise_date", "cancel_after", "lot_number", "status", "tags", "fulfilled")
    readonly_fields = ("line_no", "fulfilled")

    @admin.display(description="Fulfilled")
    def fulfilled(self, obj):
        if not obj.pk:
            return "-"
        qty, percentage, label = fulfillment_progress(obj)
        return f"{format_quantity(qty, obj.item.pack_size)} ({percentage}%, {label})"


class UninvoicedFilter(admin.SimpleListFilter):
    title = "invoicing"
    parameter_name = "uninvoiced"

    def lookups(self, request, model_admin):
        return (("1", "Shipped but uninvoiced"),)

    def queryset(self, request, queryset):
        if self.value() == "1":
            return queryset.filter(pk__in=uninvoiced_sales_orders())
        return queryset


class CommercialDocumentAdmin(DjangoObjectActions, CommercialDocDefaultsMixin, ItemDefaultsAdminMixin, SimpleHistoryAdmin):
    inlines = [CommercialLineInline]
    list_display = ("doc_no", "order_date", "party_ref", "primary_warehouse", "status")
    list_filter = ("status", "primary_warehouse")
    search_fields = ("doc_no", "party_ref", "customer_ref", "lines__item__name")
    date_hierarchy = "order_date"

    # Movement type that fulfills this kind of order
    movement_type = None

    change_actions = ("fulfill_remaining",)

    def get_change_actions(self, request, object_id, form_url):
        obj = self.get_object(request, object_id)
        if not obj or obj.status in (CommercialDocument.Status.CLOSED, CommercialDocument.Status.CANCELED):
            return ()
        return self.change_actions

    @action(label="Fulfill remaining", description="Post a movement for everything still open on this order")
    def fulfill_remaining(self, request, obj):
        try:
            movement = post_movement(
                self.movement_type,
                timezone.localdate(),
                obj.primary_warehouse,
                available_lines(obj),
                secondary_warehouse=obj.secondary_warehouse,
                by=request.user,
            )
            self.message_user(request, f"Posted {movement}.", level=messages.SUCCESS)
        except ValidationError as e:
            self.message_user(request, f"Could not post: {'; '.join(e.messages)}", level=messages.ERROR)


@admin.register(SalesOrder)
class SalesOrderAdmin(CommercialDocumentAdmin):
    movement_type = MovementDocument.DocType.SHIPMENT
    list_filter = ("status", UninvoicedFilter, "primary_warehouse")
    change_actions = ("fulfill_remaining", "create_invoice_action")
    actions = ["create_invoices"]

    @action(label="Create invoice", description="Create a draft invoice for all order lines")
    def create_invoice_action(self, request, obj):
        try:
            invoice = create_invoice(obj, timezone.localdate())
        except ValidationError as e:
            self.message_user(request, f"Could not create invoice: {'; '.join(e.messages)}", level=messages.ERROR)
            return None
        self.message_user(request, f"Created {invoice}.", level=messages.SUCCESS)
        return redirect(reverse("admin:invoicing_invoice_change", args=[invoice.pk]))

    @admin.action(description="Create draft invoices")
    def create_invoices(self, request, queryset):
        for doc in queryset:
            try:
                create_invoice(doc, timezone.localdate())
            except ValidationError as e:
                self.message_user(request, f"{doc}: {'; '.join(e.messages)}", level=messages.ERROR)


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(CommercialDocumentAdmin):
    movement_type = MovementDocument.DocType.RECEIPT


@admin.register(TransferOrder)
class TransferOrderAdmin(CommercialDocumentAdmin):
    movement_type = MovementDocument.DocType.TRANSFER
    list_display = ("doc_no", "order_date", "primary_warehouse", "secondary_warehouse", "status")
