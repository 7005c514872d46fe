from django.contrib import admin

from masterdata.models import Item, PackSize, Terms, Warehouse
from masterdata.services.pack import format_pack_size, pallet_volume, truckload_volume

@admin.register(PackSize)
class PackSizeAdmin(admin.ModelAdmin):
    list_display = ("pack_size", "uom_per_each", "units_of_units", "package_type", "pallet", "truckload")
    search_fields = ("pack_size",)

    @admin.display(description="1 Pallet")
    def pallet(self, obj):
        return pallet_volume(obj)

    @admin.display(description="1 TL")
    def truckload(self, obj):
        return truckload_volume(obj)

@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("name", "product_name", "pack")
    list_select_related = ("pack_size",)
    search_fields = ("name", "product_name")

    @admin.display(description="Pack size")
    def pack(self, obj):
        return format_pack_size(obj.pack_size)

@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("code", "name")

@admin.register(Terms)
class TermsAdmin(admin.ModelAdmin):
    list_display = ("name", "description")
