"""Brazilian Portuguese number formatting for feed descriptions.

Parcels are priced in reais and measured in square metres; the GIS users
read ``1.234,5 m²`` and ``R$ 1.234,56``, so numbers are grouped with ``.``
and use ``,`` as the decimal mark.
"""

from __future__ import annotations

NOT_INFORMED = "Not informed"


def format_decimal(value: float, *, min_decimals: int = 0, max_decimals: int = 3) -> str:
    """Format *value* with ``.`` thousands grouping and ``,`` decimals.

    Trailing zeros beyond *min_decimals* are dropped.

    >>> format_decimal(1234.5)
    '1.234,5'
    >>> format_decimal(1234.5, min_decimals=2, max_decimals=2)
    '1.234,50'
    """
    text = f"{abs(value):,.{max_decimals}f}"
    integer, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) < min_decimals:
        fraction = fraction.ljust(min_decimals, "0")

    integer = integer.replace(",", ".")
    sign = "-" if value < 0 and (integer.strip("0.") or fraction.strip("0")) else ""
    return f"{sign}{integer},{fraction}" if fraction else f"{sign}{integer}"


def format_area(area_m2: float | None) -> str:
    """``1.234,5 m²``, or ``Not informed``."""
    if area_m2 is None:
        return NOT_INFORMED
    return f"{format_decimal(area_m2)} m²"


def format_currency(amount: float | None) -> str:
    """``R$ 1.234,56``, or ``Not informed``."""
    if amount is None:
        return NOT_INFORMED
    return f"R$ {format_decimal(amount, min_decimals=2, max_decimals=2)}"
