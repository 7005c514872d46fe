"""Each <-> volume conversion for packed items.

An "each" is the base stock-keeping unit. A pack with `uom_per_each` shows
quantities in its display unit (`units_of_units`), e.g. a 50 LB bag is
1 EA = 50 LB. Packs without `uom_per_each` convert 1:1.

All functions accept a PackSize (or anything with the same attributes) or None.
"""

from decimal import Decimal, ROUND_CEILING

from core.exceptions import ExcessPrecision

QTY_PLACES = Decimal("0.001")


def as_decimal(value) -> Decimal:
    """Decimal from int/str/Decimal; floats go through str to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_qty(value) -> Decimal:
    """Round to the stored quantity precision (3 places)."""
    return as_decimal(value).quantize(QTY_PLACES)


def exact_qty(value, what="Quantity") -> Decimal:
    """Quantity at the stored precision, refusing anything that would need rounding."""
    qty = as_decimal(value)
    if qty.quantize(QTY_PLACES) != qty:
        raise ExcessPrecision(qty, what=what)
    return qty.quantize(QTY_PLACES)


def _divisor(pack):
    uom = getattr(pack, "uom_per_each", None) if pack is not None else None
    if not uom:
        return None
    return as_decimal(uom)


def _unit_label(pack) -> str:
    return (getattr(pack, "units_of_units", "") or "units") if pack is not None else "units"


def to_volume(qty_each, pack) -> Decimal:
    """Eaches -> display volume."""
    qty = as_decimal(qty_each)
    uom = _divisor(pack)
    if uom is None:
        return qty
    return qty * uom


def to_each(volume, pack) -> Decimal:
    """Display volume -> eaches. May be fractional (205 LB / 10 = 20.5 EA)."""
    vol = as_decimal(volume)
    uom = _divisor(pack)
    if uom is None:
        return vol
    return vol / uom


def divisibility_warning(volume, pack):
    """Advisory message when `volume` is not a whole number of eaches.

    Checked on the volume the user typed, not on the converted eaches.
    Returns None when the volume divides evenly or the pack has no volume unit.
    """
    uom = _divisor(pack)
    if uom is None:
        return None

    vol = as_decimal(volume)
    if vol % uom == 0:
        return None

    unit = _unit_label(pack)
    suggested = (vol / uom).to_integral_value(rounding=ROUND_CEILING) * uom
    return (
        f"Warning: {_fmt(vol)} {unit} (Volume) is not divisible by {_fmt(uom)} {unit} per EA. "
        f"Consider using {_fmt(suggested)} {unit} instead."
    )


def pallet_volume(pack):
    """Volume of one pallet, or None when the pack does not say."""
    uom = _divisor(pack)
    per_pallet = getattr(pack, "eaches_per_pallet", None) if pack is not None else None
    if uom is None or not per_pallet:
        return None
    return as_decimal(per_pallet) * uom


def truckload_volume(pack):
    """Volume of one truckload (TL), or None when the pack does not say."""
    uom = _divisor(pack)
    per_tl = getattr(pack, "eaches_per_tl", None) if pack is not None else None
    if uom is None or not per_tl:
        return None
    return as_decimal(per_tl) * uom


def _fmt(value) -> str:
    value = as_decimal(value)
    if value == value.to_integral_value():
        return f"{value.quantize(Decimal('1')):,f}"
    return f"{value.normalize():,f}"


def format_quantity(qty_each, pack=None, show_both_when_same=False) -> str:
    """Display string for an each quantity.

    "120 LB (12 EA)" for packs with a volume unit, "12 EA" otherwise.
    """
    qty = as_decimal(qty_each)
    uom = _divisor(pack)
    unit = getattr(pack, "units_of_units", "") if pack is not None else ""

    if uom is None or not unit:
        return f"{_fmt(qty)} EA"

    volume = qty * uom
    if not show_both_when_same and volume == qty:
        return f"{_fmt(qty)} EA"

    return f"{_fmt(volume)} {unit} ({_fmt(qty)} EA)"


def format_pack_size(pack) -> str:
    """Pack label with its conversion, e.g. "50LB BAG (50 LB/EA)"."""
    if pack is None:
        return "N/A"

    display = pack.pack_size
    uom = _divisor(pack)
    if uom is not None and pack.units_of_units:
        display += f" ({_fmt(uom)} {pack.units_of_units}/EA)"
    return display
