from django.contrib import admin, messages
from django.contrib.admin.views.main import ChangeList
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django_fsm import TransitionNotAllowed
from django_object_actions import DjangoObjectActions, action
from simple_history.admin import SimpleHistoryAdmin

from inventory.models import (
    Adjustment,
    FulfillmentLink,
    InventoryBalanceRow,
    MovementDocument,
    MovementExt,
    MovementLine,
    Receipt,
    Shipment,
    Transfer,
)
from inventory.services.balance import balance_rows
from inventory.services.posting import cancel_movement, update_physical_status
from masterdata.services.pack import format_quantity


class MovementLineInline(admin.TabularInline):
    model = MovementLine
    extra = 0
    fields = ("line_no", "item", "warehouse", "inventory_state", "qty_base", "display_qty", "lot_number", "reason")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    @admin.display(description="Quantity")
    def display_qty(self, obj):
        return format_quantity(obj.qty_base, obj.item.pack_size)


class MovementExtInline(admin.StackedInline):
    model = MovementExt
    extra = 0
    max_num = 1


class MovementAdminBase(DjangoObjectActions, SimpleHistoryAdmin):
    """Movements are created by the posting services; the admin only moves them along."""

    inlines = [MovementLineInline, MovementExtInline]
    list_display = ("id", "effective_date", "primary_warehouse", "secondary_warehouse", "physical_status", "state")
    list_filter = ("state", "physical_status", "primary_warehouse")
    date_hierarchy = "effective_date"
    readonly_fields = ("doc_type", "state", "physical_status", "effective_date", "primary_warehouse",
                       "secondary_warehouse", "posted_at", "canceled_at", "created_at")
    fields = readonly_fields + ("note",)

    change_actions = ("mark_pending", "mark_in_transit", "mark_done", "cancel_action")

    # (pending, in transit, done) for this movement type
    physical_statuses = ()

    def has_add_permission(self, request):
        return False

    def get_change_actions(self, request, object_id, form_url):
        obj = self.get_object(request, object_id)
        if not obj or obj.state == MovementDocument.State.CANCELED:
            return ()
        actions = []
        if self.physical_statuses:
            pending, in_transit, done = self.physical_statuses
            if obj.physical_status != pending:
                actions.append("mark_pending")
            if obj.physical_status != in_transit:
                actions.append("mark_in_transit")
            if obj.physical_status != done:
                actions.append("mark_done")
        actions.append("cancel_action")
        return actions

    def _set_status(self, request, obj, status):
        try:
            update_physical_status(obj, status, by=request.user)
            self.message_user(request, f"Marked as {status}.", level=messages.SUCCESS)
        except (ValidationError, TransitionNotAllowed) as e:
            self.message_user(request, f"Could not update status: {e}", level=messages.ERROR)

    @action(label="Mark pending")
    def mark_pending(self, request, obj):
        self._set_status(request, obj, self.physical_statuses[0])

    @action(label="Mark in transit")
    def mark_in_transit(self, request, obj):
        self._set_status(request, obj, self.physical_statuses[1])

    @action(label="Mark done", description="Goods arrived")
    def mark_done(self, request, obj):
        self._set_status(request, obj, self.physical_statuses[2])

    @action(label="Cancel", description="Cancel movement and release its fulfillment")
    def cancel_action(self, request, obj):
        try:
            cancel_movement(obj, by=request.user)
            self.message_user(request, "Movement canceled.", level=messages.SUCCESS)
        except TransitionNotAllowed as e:
            self.message_user(request, f"Could not cancel: {e}", level=messages.ERROR)


@admin.register(Shipment)
class ShipmentAdmin(MovementAdminBase):
    physical_statuses = MovementDocument.PHYSICAL_STATUSES[MovementDocument.DocType.SHIPMENT]


@admin.register(Receipt)
class ReceiptAdmin(MovementAdminBase):
    physical_statuses = MovementDocument.PHYSICAL_STATUSES[MovementDocument.DocType.RECEIPT]


@admin.register(Transfer)
class TransferAdmin(MovementAdminBase):
    pass


@admin.register(Adjustment)
class AdjustmentAdmin(MovementAdminBase):
    list_display = ("id", "effective_date", "primary_warehouse", "state", "note")


@admin.register(FulfillmentLink)
class FulfillmentLinkAdmin(admin.ModelAdmin):
    list_display = ("commercial_line", "movement_line", "qty_linked_base", "movement_state", "created_at")
    list_select_related = ("commercial_line__document", "commercial_line__item", "movement_line__document", "movement_line__item")
    list_filter = ("movement_line__document__state",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    @admin.display(description="Movement state")
    def movement_state(self, obj):
        return obj.movement_line.document.state


class InventoryOverviewChangeList(ChangeList):
    """Renders aggregated posted balances as InventoryBalanceRow instances."""

    def get_queryset(self, request, exclude_parameters=None):
        # Filter sidebar only; rows come from get_results.
        (self.filter_specs, self.has_filters, remaining_lookup_params,
         _, self.has_active_filters) = self.get_filters(request)
        self.clear_all_filters_qs = self.get_query_string(
            new_params=remaining_lookup_params,
            remove=self.get_filters_params(),
        )
        return InventoryBalanceRow.objects.none()

    def get_results(self, request):
        item_id = request.GET.get("item__id__exact")
        warehouse_id = request.GET.get("warehouse__id__exact")
        data = balance_rows(
            item=int(item_id) if item_id else None,
            warehouse=int(warehouse_id) if warehouse_id else None,
            inventory_state=request.GET.get("inventory_state__exact") or None,
        )

        rows = []
        for n, r in enumerate(data, start=1):
            obj = InventoryBalanceRow(
                item_id=r["item_id"],
                warehouse_id=r["warehouse_id"],
                inventory_state=r["inventory_state"],
                qty=r["qty"],
            )
            obj.pk = n
            rows.append(obj)

        paginator = Paginator(rows, self.list_per_page)
        page = paginator.get_page(self.page_num)

        self.result_count = paginator.count
        self.full_result_count = paginator.count
        self.result_list = page.object_list
        self.can_show_all = False
        self.multi_page = paginator.num_pages > 1
        self.paginator = paginator
        self.show_all = False
        self.show_admin_actions = False


@admin.register(InventoryBalanceRow)
class InventoryOverviewAdmin(admin.ModelAdmin):
    list_display = ("item", "warehouse", "inventory_state", "qty", "display_qty")
    list_filter = ("item", "warehouse", "inventory_state")
    list_display_links = None
    list_per_page = 100
    actions = None

    def has_view_permission(self, request, obj=None):
        return request.user.is_staff

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_changelist(self, request, **kwargs):
        return InventoryOverviewChangeList

    @admin.display(description="On hand")
    def display_qty(self, obj):
        return format_quantity(obj.qty, obj.item.pack_size)
