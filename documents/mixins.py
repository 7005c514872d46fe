from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.urls import path
from django.utils import timezone

from masterdata.models import Item, Warehouse
from masterdata.services.pack import format_pack_size


class CommercialDocDefaultsMixin:
    readonly_fields = ("doc_no", "created_at", "updated_at")
    exclude = ("doc_type",)

    def get_changeform_initial_data(self, request):
        initial = super().get_changeform_initial_data(request)

        initial.setdefault("order_date", timezone.localdate())

        # Single active warehouse: preselect it
        active = list(Warehouse.objects.filter(is_active=True).values_list("pk", flat=True)[:2])
        if len(active) == 1:
            initial.setdefault("primary_warehouse", active[0])

        return initial


class ItemDefaultsAdminMixin:
    """
    Exposes: item-defaults/<item_id>/ for the line inline.
    Returns what the line form needs to convert a volume into eaches.
    """

    def get_urls(self):
        urls = super().get_urls()
        custom = [
            path(
                "item-defaults/<int:item_id>/",
                self.admin_site.admin_view(self.item_defaults),
                name=f"{self.model._meta.app_label}_{self.model._meta.model_name}_item_defaults",
            ),
        ]
        return custom + urls

    def item_defaults(self, request, item_id):
        item = get_object_or_404(Item.objects.select_related("pack_size"), pk=item_id)
        pack = item.pack_size
        return JsonResponse({
            "name": item.name,
            "product_name": item.product_name,
            "pack_size": format_pack_size(pack),
            "uom_per_each": str(item.uom_per_each),
            "units_of_units": (pack.units_of_units if pack else "") or "",
        })
