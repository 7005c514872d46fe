import logging
import re
from datetime import timedelta

from django.db import transaction

from core.exceptions import DocumentMismatch, EmptySelection, NonPositiveQuantity
from documents.models import CommercialDocument
from invoicing.models import Invoice, InvoiceLine
from masterdata.services.pack import exact_qty

logger = logging.getLogger(__name__)

NET_DAYS = re.compile(r"Net (\d+)")


def due_date_for(terms_name, invoice_date):
    """Due date from "Net N" terms: invoice_date + N days. Other terms give None."""
    if not terms_name or invoice_date is None:
        return None
    match = NET_DAYS.search(terms_name)
    if not match:
        return None
    return invoice_date + timedelta(days=int(match.group(1)))


@transaction.atomic
def create_invoice(sales_order, invoice_date, terms=None, shipment=None, invoice_no="", lines=None, note=""):
    """Create a DRAFT invoice for a sales order.

    Without `lines` every order line is invoiced at its ordered qty in EA.
    Explicit lines are dicts: {"so_line", "qty_invoiced", "price", "uom"}.
    Lines with qty 0 are skipped.
    """
    order = CommercialDocument.objects.select_for_update().get(pk=sales_order.pk)
    if order.doc_type != CommercialDocument.DocType.SO:
        raise DocumentMismatch(f"{order} is not a sales order; only sales orders can be invoiced.")

    if shipment is not None and shipment.doc_type != shipment.DocType.SHIPMENT:
        raise DocumentMismatch(f"{shipment} is not a shipment.")

    if lines is None:
        lines = [
            {"so_line": line, "qty_invoiced": line.qty_ordered, "uom": "EA", "price": None}
            for line in order.lines.select_related("item").order_by("line_no")
        ]

    entries = []
    for entry in lines:
        so_line = entry["so_line"]
        qty = exact_qty(entry.get("qty_invoiced") or 0, what="Invoiced quantity")
        if qty < 0:
            raise NonPositiveQuantity(qty, what="Invoiced quantity")
        if qty == 0:
            continue
        if so_line.document_id != order.pk:
            raise DocumentMismatch(f"Line {so_line.line_no} does not belong to {order}.")
        entries.append((entry, so_line, qty))

    if not entries:
        raise EmptySelection("An invoice needs at least one line with a quantity greater than zero.")

    terms = terms or order.terms
    invoice = Invoice.objects.create(
        sales_order=order,
        shipment=shipment,
        invoice_no=invoice_no or "",
        invoice_date=invoice_date,
        due_date=due_date_for(terms.name if terms else None, invoice_date),
        terms=terms,
        note=note or "",
    )

    for line_no, (entry, so_line, qty) in enumerate(entries, start=1):
        InvoiceLine.objects.create(
            invoice=invoice,
            line_no=line_no,
            so_line=so_line,
            item=so_line.item,
            qty_invoiced=qty,
            uom=entry.get("uom") or "EA",
            price=entry.get("price"),
        )

    logger.info("Created invoice %s for %s: %d line(s)", invoice.invoice_no, order, len(entries))
    return invoice
