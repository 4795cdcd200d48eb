"""Price parsing and discount arithmetic shared by extractors and reconciler.

All money values are Decimal quantized to cents. Discounts are percentages
quantized to 2 places.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple
import re

from pricebook_ingest.models.grid import Cell, cell_text
from pricebook_ingest.models.variant_record import VariantRecord

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")

SPREADSHEET_ERRORS = {"#n/a", "#ref!", "#value!", "#div/0!", "#name?", "#num!", "#null!"}

_LABEL_MANUFACTURER_RE = re.compile(r"JOHNS MANVILLE|JM", re.IGNORECASE)
_MOQ_RE = re.compile(r"\s*\(MOQ\)", re.IGNORECASE)
_NON_STOCK_RE = re.compile(r"Non-Stock", re.IGNORECASE)


def parse_number(cell: Cell) -> Optional[Decimal]:
    """Parse a numeric cell, tolerating currency symbols and separators.

    Args:
        cell: Raw grid cell

    Returns:
        Finite Decimal, or None for empty, dash, error or non-numeric cells
    """
    if isinstance(cell, bool):
        return None
    if isinstance(cell, Decimal):
        return cell if cell.is_finite() else None
    if isinstance(cell, (int, float)):
        try:
            value = Decimal(str(cell))
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    text = cell_text(cell)
    if not text or text.lower() in SPREADSHEET_ERRORS:
        return None
    cleaned = text.replace("$", "").replace(",", "").strip()
    if not cleaned or cleaned == "-":
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_price(cell: Cell, require_currency: bool = False) -> Optional[Decimal]:
    """Parse a price cell into a positive Decimal quantized to cents.

    Args:
        cell: Raw grid cell
        require_currency: Only accept text cells carrying a '$'

    Returns:
        Price, or None when the cell holds no valid positive price
    """
    if require_currency and "$" not in cell_text(cell):
        return None
    value = parse_number(cell)
    if value is None or value <= 0:
        return None
    return value.quantize(CENTS)


def apply_discount(list_price: Decimal, discount_percent: Decimal) -> Decimal:
    """Net price of ``list_price`` after ``discount_percent`` off."""
    return (list_price * (Decimal(1) - discount_percent / HUNDRED)).quantize(CENTS)


def derive_discount(list_price: Decimal, net_price: Decimal) -> Decimal:
    """Discount percent implied by a list and net price.

    Example:
        >>> derive_discount(Decimal("100"), Decimal("60"))
        Decimal('40.00')
    """
    return ((list_price - net_price) / list_price * HUNDRED).quantize(CENTS)


def resolve_pricing(
    record: VariantRecord,
    sheet_discount: Optional[Decimal] = None,
) -> Tuple[Optional[Decimal], Optional[Decimal]]:
    """Work out net price and discount for a record.

    A sheet-level discount wins over anything implied by the record. Without
    one, a record net price implies its discount, and a record discount
    implies its net price.

    Returns:
        Tuple of (net_price, discount_percent)
    """
    if sheet_discount is not None:
        net = record.net_price
        if net is None:
            net = apply_discount(record.list_price, sheet_discount)
        return net, sheet_discount.quantize(CENTS)
    if record.net_price is not None:
        return record.net_price, derive_discount(record.list_price, record.net_price)
    if record.discount_percent is not None:
        return apply_discount(record.list_price, record.discount_percent), record.discount_percent
    return None, None


def normalize_label(label: str) -> str:
    """Clean a thickness or dimension label.

    Cuts at ' - ', cuts at embedded manufacturer names and drops '(MOQ)' and
    'Non-Stock' annotations.
    """
    text = label.strip()
    if " - " in text:
        text = text.split(" - ")[0].strip()
    text = _LABEL_MANUFACTURER_RE.split(text)[0].strip()
    text = _MOQ_RE.sub("", text)
    text = _NON_STOCK_RE.sub("", text)
    return text.strip()


def sku_fragment(text: str) -> str:
    """Digits of ``text`` only, for SKU building."""
    return re.sub(r"[^0-9]", "", text)
