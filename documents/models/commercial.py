from decimal import Decimal

from django.conf import settings
from django.db import models
from simple_history.models import HistoricalRecords
from taggit.managers import TaggableManager

from core.exceptions import NonPositiveQuantity
from masterdata.services.pack import divisibility_warning, quantize_qty, to_each


class InventoryState(models.TextChoices):
    STOCK = "Stock", "Stock"
    CONSIGNMENT = "Consignment", "Consignment"
    HOLD = "Hold", "Hold"


class CommercialDocument(models.Model):
    """Sales, purchase or transfer order.

    The document itself never moves stock. Shipments, receipts and transfers
    (inventory.MovementDocument) fulfill its lines through FulfillmentLink rows.
    `status` is kept in sync with fulfillment by the posting services.
    """

    class DocType(models.TextChoices):
        SO = "SO", "Sales order"
        PO = "PO", "Purchase order"
        TO = "TO", "Transfer order"

    class Status(models.TextChoices):
        PENDING_SHIPMENT = "Pending Shipment", "Pending Shipment"
        PARTIALLY_SHIPPED = "Partially Shipped", "Partially Shipped"
        SHIPPED = "Shipped", "Shipped"
        PENDING_RECEIPT = "Pending Receipt", "Pending Receipt"
        PARTIALLY_RECEIVED = "Partially Received", "Partially Received"
        RECEIVED = "Received", "Received"
        OPEN = "Open", "Open"
        PARTIALLY_TRANSFERRED = "Partially Transferred", "Partially Transferred"
        TRANSFERRED = "Transferred", "Transferred"
        CLOSED = "Closed", "Closed"
        CANCELED = "Canceled", "Canceled"

    # (pending, partial, complete) per document type
    FULFILLMENT_STATUSES = {
        DocType.SO: (Status.PENDING_SHIPMENT, Status.PARTIALLY_SHIPPED, Status.SHIPPED),
        DocType.PO: (Status.PENDING_RECEIPT, Status.PARTIALLY_RECEIVED, Status.RECEIVED),
        DocType.TO: (Status.OPEN, Status.PARTIALLY_TRANSFERRED, Status.TRANSFERRED),
    }

    doc_type = models.CharField(max_length=2, choices=DocType.choices)
    doc_no = models.CharField(max_length=40, blank=True, default="")
    status = models.CharField(max_length=30, choices=Status.choices, blank=True, default="")

    # Party, addresses etc. live outside this system; only the reference is kept.
    party_ref = models.CharField(max_length=100, blank=True, default="")
    customer_ref = models.CharField(max_length=100, blank=True, default="")

    primary_warehouse = models.ForeignKey("masterdata.Warehouse", on_delete=models.PROTECT, related_name="+")
    secondary_warehouse = models.ForeignKey("masterdata.Warehouse", null=True, blank=True, on_delete=models.PROTECT, related_name="+")

    order_date = models.DateField()
    requested_date = models.DateField(null=True, blank=True)
    default_inventory_state = models.CharField(max_length=20, choices=InventoryState.choices, default=InventoryState.STOCK)
    terms = models.ForeignKey("masterdata.Terms", null=True, blank=True, on_delete=models.PROTECT)
    note = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-order_date", "-id")
        indexes = [
            models.Index(fields=["doc_type", "status"]),
            models.Index(fields=["doc_no"]),
        ]

    def __str__(self):
        return f"{self.doc_type} {self.doc_no or self.pk}"

    @property
    def fulfillment_statuses(self):
        return self.FULFILLMENT_STATUSES[self.doc_type]

    def save(self, *args, **kwargs):
        """Allocate doc_no and the initial status on first save."""
        if not self.status:
            self.status = self.fulfillment_statuses[0]
        if not self.doc_no:
            from core.models import NumberSeries
            self.doc_no = NumberSeries.next_for(settings.NUMBER_SERIES_DEFAULTS[self.doc_type])
        super().save(*args, **kwargs)

    def add_line(self, item, qty_ordered=None, qty_volume=None, **fields):
        """Add a line ordered in eaches or in the item's volume unit.

        Returns (line, warning). `warning` is the divisibility message when a
        volume does not make whole eaches; it never blocks the line.
        """
        warning = None
        if qty_volume is not None:
            pack = item.pack_size if item.pack_size_id else None
            warning = divisibility_warning(qty_volume, pack)
            qty_ordered = to_each(qty_volume, pack)

        if qty_ordered is None or quantize_qty(qty_ordered) <= 0:
            raise NonPositiveQuantity(qty_ordered, what="Ordered quantity")

        line = CommercialLine.objects.create(
            document=self,
            item=item,
            qty_ordered=quantize_qty(qty_ordered),
            **fields,
        )
        return line, warning


class CommercialLine(models.Model):
    """Order line. Quantities are in eaches."""
    document = models.ForeignKey(CommercialDocument, on_delete=models.CASCADE, related_name="lines")

    line_no = models.IntegerField()

    item = models.ForeignKey("masterdata.Item", on_delete=models.PROTECT, related_name="commercial_lines")
    inventory_state = models.CharField(max_length=20, choices=InventoryState.choices, blank=True, default="")

    qty_ordered = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))

    warehouse = models.ForeignKey("masterdata.Warehouse", null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    secondary_warehouse = models.ForeignKey("masterdata.Warehouse", null=True, blank=True, on_delete=models.PROTECT, related_name="+")

    requested_date = models.DateField(null=True, blank=True)
    promise_date = models.DateField(null=True, blank=True)
    cancel_after = models.DateField(null=True, blank=True)
    lot_number = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(max_length=30, default="Open")

    tags = TaggableManager(blank=True)

    class Meta:
        unique_together = ("document", "line_no")
        ordering = ["document_id", "line_no"]

    def __str__(self):
        return f"{self.document} #{self.line_no} {self.item}"

    def clean(self):
        if self.qty_ordered is None or self.qty_ordered <= 0:
            raise NonPositiveQuantity(self.qty_ordered, what="Ordered quantity")

    def save(self, *args, **kwargs):
        """Number new lines densely (1..N) and default from the header."""
        if not self.line_no:
            last = (
                CommercialLine.objects
                .filter(document_id=self.document_id)
                .order_by("-line_no")
                .values_list("line_no", flat=True)
                .first()
            )
            self.line_no = (last or 0) + 1

        if not self.inventory_state:
            self.inventory_state = self.document.default_inventory_state
        if not self.warehouse_id:
            self.warehouse_id = self.document.primary_warehouse_id

        super().save(*args, **kwargs)
