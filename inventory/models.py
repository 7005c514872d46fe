from decimal import Decimal

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition
from django_fsm_log.decorators import fsm_log_by
from simple_history.models import HistoricalRecords

from core.managers import DocTypeManager, DocTypeProxyMixin
from documents.models import InventoryState


class MovementDocument(models.Model):
    """Shipment, receipt, transfer or adjustment.

    Two independent states:
    - physical_status: where the goods are (pending, in transit, delivered)
    - state: accounting state, controlled by django-fsm. Only POSTED movements
      count towards on-hand inventory.

    Rows are created by inventory.services.posting only.
    """

    class DocType(models.TextChoices):
        SHIPMENT = "Shipment", "Shipment"
        RECEIPT = "Receipt", "Receipt"
        TRANSFER = "Transfer", "Transfer"
        ADJUSTMENT = "Adjustment", "Adjustment"

    class State(models.TextChoices):
        DRAFT = "Draft", "Draft"
        POSTED = "Posted", "Posted"
        CANCELED = "Canceled", "Canceled"

    class PhysicalStatus(models.TextChoices):
        PENDING_PICKUP = "Pending Pickup", "Pending Pickup"
        PENDING_DELIVERY = "Pending Delivery", "Pending Delivery"
        IN_TRANSIT = "In Transit", "In Transit"
        DELIVERED = "Delivered", "Delivered"
        RECEIVED = "Received", "Received"

    # Allowed physical statuses per type; the first one is the pending status.
    PHYSICAL_STATUSES = {
        DocType.SHIPMENT: (PhysicalStatus.PENDING_PICKUP, PhysicalStatus.IN_TRANSIT, PhysicalStatus.DELIVERED),
        DocType.RECEIPT: (PhysicalStatus.PENDING_DELIVERY, PhysicalStatus.IN_TRANSIT, PhysicalStatus.RECEIVED),
    }
    PENDING_STATUSES = (PhysicalStatus.PENDING_PICKUP, PhysicalStatus.PENDING_DELIVERY)

    doc_type = models.CharField(max_length=20, choices=DocType.choices)
    state = FSMField(default=State.DRAFT, choices=State.choices, protected=True)
    physical_status = models.CharField(max_length=20, choices=PhysicalStatus.choices, blank=True, default="")

    effective_date = models.DateField()

    primary_warehouse = models.ForeignKey("masterdata.Warehouse", on_delete=models.PROTECT, related_name="+")
    secondary_warehouse = models.ForeignKey("masterdata.Warehouse", null=True, blank=True, on_delete=models.PROTECT, related_name="+")

    note = models.TextField(blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-effective_date", "-id")
        indexes = [models.Index(fields=["doc_type", "state", "effective_date"])]

    def __str__(self):
        return f"{self.doc_type} {self.pk} ({self.state})"

    @classmethod
    def is_pending(cls, physical_status) -> bool:
        return physical_status in cls.PENDING_STATUSES

    @fsm_log_by
    @transition(field=state, source=State.DRAFT, target=State.POSTED)
    def post(self, by=None):
        """Goods left the pending status: movement now affects inventory."""
        self.posted_at = timezone.now()

    @fsm_log_by
    @transition(field=state, source=State.POSTED, target=State.DRAFT)
    def revert_to_draft(self, by=None):
        """Back to pending: inventory no longer affected."""
        self.posted_at = None

    @fsm_log_by
    @transition(field=state, source="+", target=State.CANCELED)
    def cancel(self, by=None):
        self.canceled_at = timezone.now()


class MovementLine(models.Model):
    """One signed quantity of one item at one warehouse.

    qty_base is in eaches: negative leaves the warehouse, positive enters it.
    """
    document = models.ForeignKey(MovementDocument, on_delete=models.CASCADE, related_name="lines")
    line_no = models.IntegerField()

    item = models.ForeignKey("masterdata.Item", on_delete=models.PROTECT, related_name="movement_lines")
    warehouse = models.ForeignKey("masterdata.Warehouse", on_delete=models.PROTECT, related_name="movement_lines")
    inventory_state = models.CharField(max_length=20, choices=InventoryState.choices, default=InventoryState.STOCK)

    qty_base = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))

    lot_number = models.CharField(max_length=100, blank=True, default="")
    effective_date = models.DateField()
    reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        unique_together = ("document", "line_no")
        ordering = ["document_id", "line_no"]
        indexes = [models.Index(fields=["item", "warehouse", "inventory_state"])]

    def __str__(self):
        return f"{self.document} #{self.line_no} {self.item} {self.qty_base}"


class MovementExt(models.Model):
    """Carrier/tracking details. Descriptive only."""
    document = models.OneToOneField(MovementDocument, on_delete=models.CASCADE, related_name="ext")

    carrier_name = models.CharField(max_length=100, blank=True, default="")
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    scac = models.CharField(max_length=10, blank=True, default="")
    service_level = models.CharField(max_length=50, blank=True, default="")
    pro_number = models.CharField(max_length=50, blank=True, default="")
    packages_count = models.PositiveIntegerField(null=True, blank=True)
    shipped_weight = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    FIELDS = ("carrier_name", "tracking_number", "scac", "service_level", "pro_number", "packages_count", "shipped_weight")

    def __str__(self):
        return f"{self.carrier_name} {self.tracking_number}".strip()


class FulfillmentLink(models.Model):
    """This much of an order line was satisfied by this movement line.

    Created together with the movement line, never edited. Corrections are new
    movements; a canceled movement simply stops counting.
    """
    commercial_line = models.ForeignKey("documents.CommercialLine", on_delete=models.PROTECT, related_name="fulfillment_links")
    movement_line = models.ForeignKey(MovementLine, on_delete=models.PROTECT, related_name="fulfillment_links")

    qty_linked_base = models.DecimalField(max_digits=14, decimal_places=3)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("commercial_line", "movement_line")

    def __str__(self):
        return f"{self.commercial_line_id} <- {self.movement_line_id}: {self.qty_linked_base}"


class Shipment(DocTypeProxyMixin, MovementDocument):
    DOC_TYPE = MovementDocument.DocType.SHIPMENT
    objects = DocTypeManager()

    class Meta:
        proxy = True

class Receipt(DocTypeProxyMixin, MovementDocument):
    DOC_TYPE = MovementDocument.DocType.RECEIPT
    objects = DocTypeManager()

    class Meta:
        proxy = True

class Transfer(DocTypeProxyMixin, MovementDocument):
    DOC_TYPE = MovementDocument.DocType.TRANSFER
    objects = DocTypeManager()

    class Meta:
        proxy = True

class Adjustment(DocTypeProxyMixin, MovementDocument):
    DOC_TYPE = MovementDocument.DocType.ADJUSTMENT
    objects = DocTypeManager()

    class Meta:
        proxy = True


class InventoryBalanceRow(models.Model):
    """Row shape for the admin inventory overview. No table; filled from posted lines."""
    item = models.ForeignKey("masterdata.Item", on_delete=models.DO_NOTHING, related_name="+")
    warehouse = models.ForeignKey("masterdata.Warehouse", on_delete=models.DO_NOTHING, related_name="+")
    inventory_state = models.CharField(max_length=20, choices=InventoryState.choices)
    qty = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0.000"))

    class Meta:
        managed = False
        verbose_name = "Inventory balance"
        verbose_name_plural = "Inventory overview"
