"""On-hand inventory, derived from posted movement lines only.

Nothing here is cached or stored: a balance is always the sum of qty_base over
POSTED movement lines for (item, warehouse, inventory_state). Draft and
canceled movements never count. Negative balances are returned as they are.
"""

from decimal import Decimal

from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce

from documents.models import InventoryState
from inventory.models import MovementDocument, MovementLine
from masterdata.models import Item, Warehouse
from masterdata.services.pack import as_decimal

ZERO = Decimal("0.000")
QTY_FIELD = DecimalField(max_digits=14, decimal_places=3)


def _item_filter(item):
    if isinstance(item, Item):
        return {"item": item}
    if isinstance(item, int):
        return {"item_id": item}
    return {"item__name": item}


def _warehouse_filter(warehouse):
    if isinstance(warehouse, Warehouse):
        return {"warehouse": warehouse}
    if isinstance(warehouse, int):
        return {"warehouse_id": warehouse}
    return {"warehouse__code": warehouse}


def posted_lines():
    return MovementLine.objects.filter(document__state=MovementDocument.State.POSTED)


def balance(item, warehouse, inventory_state=InventoryState.STOCK) -> Decimal:
    total = (
        posted_lines()
        .filter(inventory_state=inventory_state, **_item_filter(item), **_warehouse_filter(warehouse))
        .aggregate(total=Coalesce(Sum("qty_base"), Value(ZERO, output_field=QTY_FIELD)))
    )["total"]
    return as_decimal(total)


def balance_rows(item=None, warehouse=None, inventory_state=None, positive_only=False):
    """One dict per (item, warehouse, inventory_state) with posted lines.

    positive_only drops rows that are zero or negative (display lists do).
    """
    lines = posted_lines()
    if item is not None:
        lines = lines.filter(**_item_filter(item))
    if warehouse is not None:
        lines = lines.filter(**_warehouse_filter(warehouse))
    if inventory_state:
        lines = lines.filter(inventory_state=inventory_state)

    rows = (
        lines
        .values("item_id", "item__name", "warehouse_id", "warehouse__code", "warehouse__name", "inventory_state")
        .annotate(qty=Sum("qty_base"))
        .order_by("item__name", "warehouse__code", "inventory_state")
    )
    result = []
    for row in rows:
        qty = as_decimal(row["qty"] or ZERO)
        if positive_only and qty <= 0:
            continue
        result.append({
            "item_id": row["item_id"],
            "item_name": row["item__name"],
            "warehouse_id": row["warehouse_id"],
            "warehouse_code": row["warehouse__code"],
            "warehouse_name": row["warehouse__name"],
            "inventory_state": row["inventory_state"],
            "qty": qty,
        })
    return result


def item_balances(item, positive_only=False):
    return balance_rows(item=item, positive_only=positive_only)


def item_movements(item, limit=100):
    """Most recent movement lines for an item, any state, newest first."""
    return list(
        MovementLine.objects
        .filter(**_item_filter(item))
        .select_related("document", "warehouse")
        .order_by("-effective_date", "-document_id", "-line_no")[:limit]
    )
