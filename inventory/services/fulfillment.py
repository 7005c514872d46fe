"""How much of each order line has been fulfilled by movements.

Fulfillment is never stored on the order line. It is the sum of the
FulfillmentLink rows whose movement header is in a counted state:
- POSTED always counts
- DRAFT counts while FULFILLMENT_COUNT_DRAFT_MOVEMENTS is on (it reserves the qty)
- CANCELED never counts
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Q, Sum, Value
from django.db.models.functions import Coalesce

from core.exceptions import NonPositiveQuantity
from documents.models import CommercialDocument
from inventory.models import FulfillmentLink, MovementDocument
from masterdata.services.pack import as_decimal, quantize_qty

logger = logging.getLogger(__name__)

ZERO = Decimal("0.000")
QTY_FIELD = DecimalField(max_digits=14, decimal_places=3)


def counted_states():
    states = [MovementDocument.State.POSTED]
    if getattr(settings, "FULFILLMENT_COUNT_DRAFT_MOVEMENTS", True):
        states.append(MovementDocument.State.DRAFT)
    return states


def fulfilled_qty(line) -> Decimal:
    total = (
        FulfillmentLink.objects
        .filter(commercial_line=line, movement_line__document__state__in=counted_states())
        .aggregate(total=Coalesce(Sum("qty_linked_base"), Value(ZERO, output_field=QTY_FIELD)))
    )["total"]
    return as_decimal(total)


def remaining_qty(line) -> Decimal:
    return as_decimal(line.qty_ordered) - fulfilled_qty(line)


def with_fulfillment(queryset):
    """Annotate commercial lines with qty_fulfilled and qty_remaining."""
    counted = Q(fulfillment_links__movement_line__document__state__in=counted_states())
    return (
        queryset
        .annotate(qty_fulfilled=Coalesce(
            Sum("fulfillment_links__qty_linked_base", filter=counted),
            Value(ZERO, output_field=QTY_FIELD),
        ))
        .annotate(qty_remaining=ExpressionWrapper(F("qty_ordered") - F("qty_fulfilled"), output_field=QTY_FIELD))
    )


@dataclass
class AvailableLine:
    """An order line offered for processing, pre-filled with its remaining qty."""
    line: object
    remaining: Decimal
    qty_to_process: Decimal


def available_lines(document):
    """Lines of `document` that still have something left to fulfill."""
    lines = with_fulfillment(document.lines.select_related("item", "item__pack_size", "warehouse")).order_by("line_no")
    result = []
    for line in lines:
        remaining = as_decimal(line.qty_remaining)
        if remaining > 0:
            result.append(AvailableLine(line=line, remaining=remaining, qty_to_process=remaining))
    return result


def clamp_to_remaining(available: AvailableLine, qty) -> Decimal:
    """Input-side clamp into [0, remaining]. Posting itself never clamps."""
    qty = as_decimal(qty)
    if qty < 0:
        return ZERO
    if qty > available.remaining:
        return available.remaining
    return qty


def record_link(commercial_line, movement_line, qty) -> FulfillmentLink:
    qty = quantize_qty(qty)
    if qty <= 0:
        raise NonPositiveQuantity(qty, what="Linked quantity")
    return FulfillmentLink.objects.create(
        commercial_line=commercial_line,
        movement_line=movement_line,
        qty_linked_base=qty,
    )


def _progress_label(percentage: int) -> str:
    if percentage == 0:
        return "Not Started"
    if percentage < 100:
        return "Partial"
    return "Complete"


def fulfillment_progress(line):
    """(fulfilled, percentage, label) for display next to an order line."""
    fulfilled = fulfilled_qty(line)
    ordered = as_decimal(line.qty_ordered)
    if ordered <= 0:
        return fulfilled, 0, _progress_label(0)
    percentage = int((fulfilled / ordered * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return fulfilled, percentage, _progress_label(percentage)


@transaction.atomic
def sync_order_status(document):
    """Move the order header between its pending / partial / complete status.

    Headers that were closed or canceled by hand are left alone.
    """
    doc = CommercialDocument.objects.select_for_update().get(pk=document.pk)
    pending, partial, complete = doc.fulfillment_statuses
    if doc.status not in (pending, partial, complete):
        return doc.status

    lines = list(with_fulfillment(doc.lines.all()))
    if not lines:
        return doc.status

    if all(as_decimal(line.qty_remaining) <= 0 for line in lines):
        new_status = complete
    elif any(as_decimal(line.qty_fulfilled) > 0 for line in lines):
        new_status = partial
    else:
        new_status = pending

    if new_status != doc.status:
        logger.info("Order %s status %s -> %s", doc, doc.status, new_status)
        doc.status = new_status
        doc.save(update_fields=["status", "updated_at"])
    return new_status
