"""Which sales orders have shipped lines that nobody has invoiced yet."""

from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Sum

from documents.models import CommercialDocument, CommercialLine
from inventory.models import FulfillmentLink, MovementDocument
from invoicing.models import InvoiceLine
from masterdata.services.pack import as_decimal


def shipped_line_ids():
    """SO line ids with at least one link to a POSTED shipment. Partial shipments count."""
    return (
        FulfillmentLink.objects
        .filter(
            movement_line__document__doc_type=MovementDocument.DocType.SHIPMENT,
            movement_line__document__state=MovementDocument.State.POSTED,
            commercial_line__document__doc_type=CommercialDocument.DocType.SO,
        )
        .values_list("commercial_line_id", flat=True)
    )


def uninvoiced_sales_orders() -> set:
    """Ids of sales orders with a shipped line that no invoice line references.

    Any invoice line counts, whatever the invoice status.
    """
    return set(
        CommercialLine.objects
        .filter(pk__in=shipped_line_ids())
        .exclude(pk__in=InvoiceLine.objects.values_list("so_line_id", flat=True))
        .values_list("document_id", flat=True)
        .distinct()
    )


def invoiced_quantities(lines) -> dict:
    """{so_line_id: qty invoiced so far} for the given lines (ids or instances)."""
    ids = [getattr(line, "pk", line) for line in lines]
    rows = (
        InvoiceLine.objects
        .filter(so_line_id__in=ids)
        .values("so_line_id")
        .annotate(total=Sum("qty_invoiced"))
    )
    return {row["so_line_id"]: as_decimal(row["total"]) for row in rows}


def invoicing_progress(line, invoiced=None):
    """(invoiced, percentage, label) for one sales order line."""
    if invoiced is None:
        invoiced = invoiced_quantities([line]).get(line.pk, Decimal("0.000"))
    ordered = as_decimal(line.qty_ordered)
    percentage = 0
    if ordered > 0:
        percentage = int((invoiced / ordered * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if percentage == 0:
        label = "Not Invoiced"
    elif percentage < 100:
        label = "Partial"
    else:
        label = "Complete"
    return invoiced, percentage, label
