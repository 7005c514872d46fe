from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition
from django_fsm_log.decorators import fsm_log_by
from simple_history.models import HistoricalRecords

from core.exceptions import EmptySelection


class Invoice(models.Model):
    """Customer invoice for a sales order.

    An invoice line pointing at a sales order line is what takes that line out
    of the "shipped but uninvoiced" list, whatever the invoice status is.
    """

    class Status(models.TextChoices):
        DRAFT = "Draft", "Draft"
        ISSUED = "Issued", "Issued"
        PAID = "Paid", "Paid"
        CANCELED = "Canceled", "Canceled"

    sales_order = models.ForeignKey("documents.CommercialDocument", on_delete=models.PROTECT, related_name="invoices")
    shipment = models.ForeignKey("inventory.MovementDocument", null=True, blank=True, on_delete=models.PROTECT, related_name="invoices")

    invoice_no = models.CharField(max_length=40, blank=True, default="")
    invoice_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    terms = models.ForeignKey("masterdata.Terms", null=True, blank=True, on_delete=models.PROTECT)

    status = FSMField(default=Status.DRAFT, choices=Status.choices, protected=True)
    note = models.TextField(blank=True, default="")

    issued_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-invoice_date", "-id")

    def __str__(self):
        return f"Invoice {self.invoice_no or self.pk}"

    def save(self, *args, **kwargs):
        if not self.invoice_no:
            from core.models import NumberSeries
            self.invoice_no = NumberSeries.next_for(settings.NUMBER_SERIES_DEFAULTS["INVOICE"])
        super().save(*args, **kwargs)

    @property
    def total(self):
        return sum((line.amount for line in self.lines.all()), Decimal("0.00"))

    @fsm_log_by
    @transition(field=status, source=Status.DRAFT, target=Status.ISSUED)
    def issue(self, by=None):
        if not self.lines.exists():
            raise EmptySelection("An invoice needs at least one line before it can be issued.")
        self.issued_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source=Status.ISSUED, target=Status.PAID)
    def mark_paid(self, by=None):
        self.paid_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source="+", target=Status.CANCELED)
    def cancel(self, by=None):
        pass

    @fsm_log_by
    @transition(field=status, source=[Status.PAID, Status.CANCELED], target=Status.DRAFT)
    def reopen(self, by=None):
        self.paid_at = None


class InvoiceLine(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")
    line_no = models.IntegerField()

    so_line = models.ForeignKey("documents.CommercialLine", on_delete=models.PROTECT, related_name="invoice_lines")
    item = models.ForeignKey("masterdata.Item", on_delete=models.PROTECT, related_name="+")

    qty_invoiced = models.DecimalField(max_digits=14, decimal_places=3)
    uom = models.CharField(max_length=20, default="EA")
    price = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)

    class Meta:
        unique_together = ("invoice", "line_no")
        ordering = ["invoice_id", "line_no"]

    def __str__(self):
        return f"{self.invoice} #{self.line_no} {self.item}"

    @property
    def amount(self):
        if self.price is None:
            return Decimal("0.00")
        return (self.qty_invoiced * self.price).quantize(Decimal("0.01"))
