"""
Decimal helpers for money and quantity arithmetic.

Binary floats never touch amounts or prices. Values are converted through
their string form, computed under a wide fixed-precision context, and only
quantized (ROUND_HALF_UP) when presented.
"""

import re
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any

from modules.tax.config import DECIMAL_PRECISION, MONEY_PLACES

ZERO = Decimal(0)
HUNDRED = Decimal(100)

# 1,234 or 12,345,678.90; any other comma is ambiguous (decimal comma?)
_THOUSANDS_GROUPED = re.compile(r'^[+-]?\d{1,3}(,\d{3})+(\.\d*)?$')


def engine_context():
    """Local decimal context used for every engine computation."""
    return localcontext(Context(prec=DECIMAL_PRECISION, rounding=ROUND_HALF_UP))


def to_decimal(value: Any) -> Decimal:
    """
    Convert int/float/str to Decimal via its string form.

    Commas are accepted only as thousands separators ("1,234.50").

    Raises:
        ValueError: If the value is empty, unparseable, NaN or infinite,
            or has a comma that is not a thousands separator.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")

    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Empty numeric value")
        if ',' in text:
            if not _THOUSANDS_GROUPED.match(text):
                raise ValueError(f"Ambiguous comma in number: {value!r}")
            text = text.replace(',', '')
        try:
            result = Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e

    if not result.is_finite():
        raise ValueError(f"Non-finite number: {value!r}")

    return result


def round_half_up(value: Decimal, places: int = MONEY_PLACES) -> Decimal:
    """Quantize for presentation only."""
    quantizer = Decimal(10) ** -places
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)
