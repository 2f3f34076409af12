"""
Transaction Record Model and Normalization Boundary

Every ingestion path (CSV export, explorer log, hand-built rows) ends here.
Raw rows are validated into immutable TransactionRecord objects, so the
matcher never has to second-guess field types:
- Only BUY and SELL reach the engine
- Amount and price are finite, positive Decimals
- Missing price/value is derived from the other two fields
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from lib.utils.logging_config import setup_logger
from modules.tax.precision import engine_context, to_decimal

logger = setup_logger(__name__)


class TransactionTypeError(ValueError):
    """Raised when transaction type cannot be normalized to BUY or SELL."""
    pass


class TransactionType(str, Enum):
    """Transaction types understood by the lot matcher."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def normalize(cls, value: str) -> 'TransactionType':
        """Normalize an exchange/explorer label to BUY or SELL.

        Acquisitions (buy, deposit, receive) become BUY. Disposals
        (sell, withdraw, send, swap) become SELL.

        Raises:
            TransactionTypeError: For transfers and unknown labels.
        """
        if isinstance(value, cls):
            return value

        label = str(value or '').strip().lower()

        if not label or 'transfer' in label:
            raise TransactionTypeError(f"Unknown transaction type: '{value}'")

        if any(word in label for word in ('buy', 'deposit', 'receive')):
            return cls.BUY

        if any(word in label for word in ('sell', 'withdraw', 'send', 'swap')):
            return cls.SELL

        raise TransactionTypeError(f"Unknown transaction type: '{value}'")


DATE_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
    '%m/%d/%Y %H:%M:%S',
    '%m/%d/%Y',
    '%d.%m.%Y',
]


def parse_date(value: Any) -> datetime:
    """
    Parse a timestamp from common export formats or a unix epoch.

    Timezone-aware values are converted to naive UTC so that every record
    compares on the same clock.

    Raises:
        ValueError: If no format matches.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value or '').strip()
        if not text:
            raise ValueError("Missing date")

        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as e:
                raise ValueError(f"Could not parse date: '{value}'") from e

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    return parsed


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class TransactionRecord(BaseModel):
    """
    Normalized, immutable input event for the FIFO lot matcher.

    value = amount * price. Supply any two of amount/price/value with
    amount always required.
    """

    model_config = ConfigDict(frozen=True)

    date: datetime
    type: TransactionType
    symbol: str
    amount: Decimal
    price: Decimal
    value: Decimal

    # Where the record came from (row number in the source file)
    source_row: Optional[int] = None

    @model_validator(mode='before')
    @classmethod
    def derive_price_and_value(cls, data: Any) -> Any:
        """Fill in price or value when only one of them was supplied."""
        if not isinstance(data, Mapping):
            return data

        data = dict(data)
        amount = data.get('amount')
        price = data.get('price')
        value = data.get('value')

        # Unparseable fields are reported by their own field validators
        try:
            amount = to_decimal(amount)
            with engine_context():
                if _is_blank(price) and not _is_blank(value):
                    if amount != 0:
                        data['price'] = abs(to_decimal(value)) / abs(amount)
                elif _is_blank(value) and not _is_blank(price):
                    data['value'] = amount * to_decimal(price)
        except (ValueError, ArithmeticError):
            return data

        return data

    @field_validator('date', mode='before')
    @classmethod
    def parse_date_field(cls, v):
        return parse_date(v)

    @field_validator('type', mode='before')
    @classmethod
    def parse_type(cls, v):
        return TransactionType.normalize(v)

    @field_validator('symbol', mode='before')
    @classmethod
    def normalize_symbol(cls, v):
        symbol = str(v or '').strip().upper()
        if not symbol:
            raise ValueError("Missing symbol")
        return symbol

    @field_validator('amount', 'price', 'value', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        """Parse numeric input via its string form (never through float math)."""
        return to_decimal(v)

    @field_validator('amount', 'price')
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError(f"Value must be positive: {v}")
        return v


@dataclass
class ImportResult:
    """Outcome of normalizing a batch of raw rows."""

    records: List[TransactionRecord] = field(default_factory=list)
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    error_categories: Dict[str, int] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return len(self.records) + self.skipped

    def add_error(self, category: str, message: str):
        self.skipped += 1
        self.errors.append(message)
        self.error_categories[category] = self.error_categories.get(category, 0) + 1


def _categorize(error: ValidationError) -> str:
    """Map the first failing field of a validation error to a report category."""
    first = error.errors()[0]
    location = first.get('loc') or ('general',)
    field_name = str(location[0])

    if field_name == 'date':
        return 'invalid_date'
    if field_name == 'type':
        return 'unknown_type'
    if field_name == 'symbol':
        return 'missing_symbol'
    if field_name in ('amount', 'price', 'value'):
        return f'invalid_{field_name}'
    return 'general_error'


def normalize_transactions(rows: Iterable[Mapping[str, Any]]) -> ImportResult:
    """
    Validate raw rows into TransactionRecords sorted ascending by date.

    Malformed rows are skipped and counted; they never abort the batch.
    Rows sharing a timestamp keep their input order.

    Args:
        rows: Mappings with date/type/symbol/amount and price and/or value

    Returns:
        ImportResult with sorted records and skip statistics
    """
    result = ImportResult()

    for idx, row in enumerate(rows):
        data = dict(row)
        data.setdefault('source_row', idx)

        try:
            record = TransactionRecord(**data)
        except ValidationError as e:
            category = _categorize(e)
            message = f"Row {idx}: {e.errors()[0].get('msg', str(e))}"
            result.add_error(category, message)
            logger.warning(message)
            continue
        except (ValueError, ArithmeticError) as e:
            message = f"Row {idx}: {e}"
            result.add_error('general_error', message)
            logger.warning(message)
            continue

        result.records.append(record)

    # sorted() is stable: equal timestamps keep input order
    result.records = sorted(result.records, key=lambda r: r.date)

    logger.info(
        f"Normalized {len(result.records)} transactions, skipped {result.skipped}"
    )
    for category, count in result.error_categories.items():
        logger.info(f"  - {category}: {count}")

    return result
