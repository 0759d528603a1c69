"""
Module: consolidation_kernel.db.types
Responsibility: the precision and rounding rules shared by the ORM, the
    selectors and the engines.
Architecture position: Kernel > DB.  Imported by selectors/, engines and the
    statements module; imports nothing from them.

Invariants enforced:
    - Stored amounts carry MONEY_DECIMAL_PLACES (9) decimal places.  Engines
      never round sums; only spread shares and margin ratios are quantized,
      through round_money().
    - Values read back from the database become Decimal without a float
      intermediate.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 9

ZERO = Decimal("0")


def round_money(value: Decimal, decimal_places: int, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Quantize ``value`` to ``decimal_places`` places, half up by default."""
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def to_decimal(value: object) -> Decimal:
    """Coerce a stored numeric value to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    # SQLite may hand back a REAL; str() keeps its shortest repr
    return Decimal(str(value))
