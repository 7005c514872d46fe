from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django_fsm import TransitionNotAllowed
from django_object_actions import DjangoObjectActions, action
from simple_history.admin import SimpleHistoryAdmin

from invoicing.models import Invoice, InvoiceLine


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0
    fields = ("line_no", "so_line", "item", "qty_invoiced", "uom", "price", "amount")
    readonly_fields = ("amount",)
    raw_id_fields = ("so_line",)


@admin.register(Invoice)
class InvoiceAdmin(DjangoObjectActions, SimpleHistoryAdmin):
    inlines = [InvoiceLineInline]
    list_display = ("invoice_no", "invoice_date", "sales_order", "due_date", "status", "total")
    list_filter = ("status", "terms")
    search_fields = ("invoice_no", "sales_order__doc_no", "sales_order__party_ref")
    date_hierarchy = "invoice_date"
    readonly_fields = ("invoice_no", "status", "issued_at", "paid_at", "created_at", "updated_at")
    raw_id_fields = ("sales_order", "shipment")

    change_actions = ("issue_action", "mark_paid_action", "cancel_action", "reopen_action")
    actions = ["issue_invoices"]

    def get_change_actions(self, request, object_id, form_url):
        obj = self.get_object(request, object_id)
        if not obj:
            return ()
        S = Invoice.Status
        if obj.status == S.DRAFT:
            return ("issue_action", "cancel_action")
        if obj.status == S.ISSUED:
            return ("mark_paid_action", "cancel_action")
        if obj.status == S.PAID:
            return ("cancel_action", "reopen_action")
        return ("reopen_action",)

    def _transition(self, request, obj, name, done):
        try:
            getattr(obj, name)(by=request.user)
            obj.save()
            self.message_user(request, done, level=messages.SUCCESS)
        except (TransitionNotAllowed, ValidationError) as e:
            self.message_user(request, f"Could not update invoice: {e}", level=messages.ERROR)

    @action(label="Issue")
    def issue_action(self, request, obj):
        self._transition(request, obj, "issue", "Invoice issued.")

    @action(label="Mark paid")
    def mark_paid_action(self, request, obj):
        self._transition(request, obj, "mark_paid", "Invoice marked as paid.")

    @action(label="Cancel")
    def cancel_action(self, request, obj):
        self._transition(request, obj, "cancel", "Invoice canceled.")

    @action(label="Reopen", description="Back to draft")
    def reopen_action(self, request, obj):
        self._transition(request, obj, "reopen", "Invoice reopened.")

    @admin.action(description="Issue selected invoices")
    def issue_invoices(self, request, queryset):
        for invoice in queryset.filter(status=Invoice.Status.DRAFT):
            self._transition(request, invoice, "issue", f"{invoice} issued.")
