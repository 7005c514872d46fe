from decimal import Decimal

from django.db import models


class PackSize(models.Model):
    """How an item is packed and displayed.

    `uom_per_each` drives all quantity conversion: one each holds that much of
    the display unit (`units_of_units`, e.g. "LB"). Without it the item is
    counted in plain eaches.
    """
    pack_size = models.CharField(max_length=100, unique=True)

    units_per_each = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    volume_per_unit = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    units_of_units = models.CharField(max_length=20, blank=True, default="")
    package_type = models.CharField(max_length=50, blank=True, default="")
    uom_per_each = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)

    eaches_per_pallet = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    pallets_per_tl = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    eaches_per_tl = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)

    class Meta:
        ordering = ["pack_size"]

    def __str__(self):
        return self.pack_size


class Item(models.Model):
    name = models.CharField(max_length=255, unique=True)
    product_name = models.CharField(max_length=255, blank=True, default="")

    pack_size = models.ForeignKey(PackSize, null=True, blank=True, on_delete=models.PROTECT, related_name="items")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def has_volume_unit(self) -> bool:
        return bool(self.pack_size_id and self.pack_size.uom_per_each)

    @property
    def uom_per_each(self):
        """Display units per each, or Decimal("1") for plain-each items."""
        if self.has_volume_unit:
            return self.pack_size.uom_per_each
        return Decimal("1")
