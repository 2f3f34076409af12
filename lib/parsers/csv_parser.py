"""CSV ingestion: generic column mapping into normalized transaction records."""

import csv
import re
from difflib import SequenceMatcher
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from lib.parsers.transaction import ImportResult, normalize_transactions
from lib.utils.logging_config import setup_logger

logger = setup_logger(__name__)

_NON_NUMERIC = re.compile(r'[^0-9.\-]')
_SCIENTIFIC = re.compile(r'^[+-]?\d+(\.\d+)?[eE][+-]?\d+$')
_SEPARATORS_ONLY = re.compile(r'[^0-9.,]')


class CSVParser:
    """
    CSV parser with generic column detection.

    Handles:
    - Comma, semicolon and tab delimiters
    - Decimal point or decimal comma, detected from the numeric cells
    - Scientific notation (1E-8) for dust amounts
    - Column name variations (exact, contained, then fuzzy matching)
    - Currency symbols and thousands separators in numeric cells

    Exchange-specific export dialects are not detected; any file that has
    date, type, amount and a price or value column can be read.
    """

    # Column mapping templates
    COLUMN_MAPPINGS = {
        'date': ['date', 'datetime', 'timestamp', 'time', 'transaction_date'],
        'type': ['type', 'transaction_type', 'side', 'action', 'kind'],
        'symbol': ['symbol', 'asset', 'coin', 'ticker', 'token'],
        'amount': ['amount', 'quantity', 'qty', 'units', 'quantity_transacted'],
        'price': ['price', 'unit_price', 'spot_price', 'price_per_unit', 'rate'],
        'value': ['value', 'total', 'usd', 'total_value', 'subtotal', 'proceeds'],
    }

    REQUIRED_COLUMNS = ['date', 'type', 'amount']
    NUMERIC_FIELDS = ['amount', 'price', 'value']

    # Minimum score for a fuzzy match to be accepted
    MATCH_CUTOFF = 0.8

    def __init__(self, default_symbol: Optional[str] = None):
        """
        Args:
            default_symbol: Symbol for every row when the file has no symbol column
        """
        self.default_symbol = default_symbol
        self.delimiter = None
        self.decimal_separator = None

    def detect_delimiter(self, content: str) -> str:
        """Detect CSV delimiter from the first lines."""
        first_line = content.split('\n')[0] if content else ''

        if first_line.count(';') > first_line.count(','):
            return ';'

        sniffer = csv.Sniffer()
        try:
            sample = '\n'.join(content.split('\n')[:5])
            dialect = sniffer.sniff(sample, delimiters=";,|\t")
            return dialect.delimiter
        except csv.Error:
            return ','

    @staticmethod
    def normalize_header(column_name: str) -> str:
        """'Quantity Transacted' -> 'quantity_transacted'"""
        name = str(column_name).strip().strip('"').lower()
        name = re.sub(r'\(.*?\)', '', name).strip()
        return re.sub(r'[\s\-]+', '_', name)

    def score_column(self, column_name: str, templates: List[str]) -> float:
        """
        Return the best match score for a column against templates.
        Returns: 0.0 to 1.0
        """
        if column_name in templates:
            return 1.0

        parts = column_name.split('_')
        if any(template in parts for template in templates):
            return 0.9

        return max(
            (SequenceMatcher(None, column_name, template).ratio() for template in templates),
            default=0.0
        )

    def map_columns(self, columns: List[str]) -> Dict[str, str]:
        """
        Map actual column names to standardized names.

        Every (column, field) pair is scored and the best pairs win first,
        so a column is used for at most one field and vice versa.
        """
        candidates = []
        for std_name, templates in self.COLUMN_MAPPINGS.items():
            for col in columns:
                score = self.score_column(col, templates)
                if score >= self.MATCH_CUTOFF:
                    candidates.append((score, std_name, col))

        # Highest score first; ties keep column order
        candidates.sort(key=lambda c: -c[0])

        column_map = {}
        assigned_fields = set()
        for score, std_name, col in candidates:
            if col in column_map or std_name in assigned_fields:
                continue
            column_map[col] = std_name
            assigned_fields.add(std_name)
            logger.info(f"Mapped '{col}' to '{std_name}' (score: {score:.2f})")

        logger.info(f"Final column mapping: {column_map}")
        return column_map

    @staticmethod
    def _separator_vote(cell: str) -> Optional[str]:
        """
        Decimal separator a single cell implies, or None if it cannot tell.

        '30000.00' -> '.', '1.000,50' -> ',', '1.000.000' -> ',',
        '1,000' -> None (thousands group or three decimals).
        """
        text = _SEPARATORS_ONLY.sub('', cell)
        last_dot, last_comma = text.rfind('.'), text.rfind(',')

        if last_dot >= 0 and last_comma >= 0:
            return '.' if last_dot > last_comma else ','
        if last_dot < 0 and last_comma < 0:
            return None

        sep, other = ('.', ',') if last_dot >= 0 else (',', '.')
        groups = text.split(sep)

        if len(groups) > 2:
            # Repeated separator can only be grouping
            return other

        head, tail = groups
        if len(tail) == 3 and 1 <= len(head) <= 3 and not head.startswith('0'):
            return None
        return sep

    def detect_decimal_separator(self, df: pd.DataFrame) -> str:
        """
        Detect the decimal separator from the numeric cells.

        Every unambiguous cell votes; the majority wins. Files where no cell
        decides (e.g. only '1.000' style values) fall back to ',' for
        semicolon-delimited files and '.' otherwise.
        """
        votes = {'.': 0, ',': 0}
        for column in self.NUMERIC_FIELDS:
            if column not in df.columns:
                continue
            for cell in df[column]:
                if _SCIENTIFIC.match(str(cell).strip()):
                    continue
                vote = self._separator_vote(str(cell))
                if vote:
                    votes[vote] += 1

        if votes['.'] and votes[',']:
            logger.warning(
                "Mixed decimal separators in numeric columns",
                extra={'context': {'dot': votes['.'], 'comma': votes[',']}}
            )

        if votes['.'] == votes[',']:
            return ',' if votes['.'] == 0 and self.delimiter == ';' else '.'
        return '.' if votes['.'] > votes[','] else ','

    def clean_number(self, value: Any) -> str:
        """Strip currency symbols/separators; sign is dropped (type decides direction)."""
        text = str(value).strip()
        if not text:
            return ''

        if _SCIENTIFIC.match(text):
            return text.lstrip('+-')

        if self.decimal_separator == ',':
            text = text.replace('.', '').replace(',', '.')
        else:
            text = text.replace(',', '')

        return _NON_NUMERIC.sub('', text).lstrip('-')

    def parse_csv(self, file_content: str) -> ImportResult:
        """
        Parse CSV content into validated, date-sorted transaction records.

        Args:
            file_content: Raw CSV content as string

        Returns:
            ImportResult with records and per-category skip counts

        Raises:
            ValueError: If required columns are missing
        """
        self.delimiter = self.detect_delimiter(file_content)

        df = pd.read_csv(
            StringIO(file_content),
            delimiter=self.delimiter,
            quotechar='"',
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines='warn'
        )
        logger.info(f"Read transaction CSV: {len(df)} rows, {len(df.columns)} columns")

        df.columns = [self.normalize_header(c) for c in df.columns]
        df = df.rename(columns=self.map_columns(list(df.columns)))

        missing = [col for col in self.REQUIRED_COLUMNS if col not in df.columns]
        if 'price' not in df.columns and 'value' not in df.columns:
            missing.append('price or value')
        if 'symbol' not in df.columns and not self.default_symbol:
            missing.append('symbol')

        if missing:
            error_msg = f"Missing required columns: {missing}"
            logger.error(error_msg)
            raise ValueError(error_msg)

        self.decimal_separator = self.detect_decimal_separator(df)
        logger.info(f"Detected delimiter: '{self.delimiter}', decimal: '{self.decimal_separator}'")

        rows = []
        for idx, row in df.iterrows():
            rows.append({
                'date': row['date'],
                'type': row['type'],
                'symbol': row['symbol'] if 'symbol' in df.columns else self.default_symbol,
                'amount': self.clean_number(row['amount']),
                'price': self.clean_number(row['price']) if 'price' in df.columns else None,
                'value': self.clean_number(row['value']) if 'value' in df.columns else None,
                'source_row': int(idx),
            })

        result = normalize_transactions(rows)

        logger.info(f"CSV parsing complete: {len(result.records)} successful, {result.skipped} skipped")
        for i, error in enumerate(result.errors[:10], 1):
            logger.warning(f"  {i}. {error}")
        if len(result.errors) > 10:
            logger.warning(f"  ... and {len(result.errors) - 10} more errors")

        return result

    def parse_file(self, path: Union[str, Path]) -> ImportResult:
        """Read a CSV file (UTF-8, BOM tolerated) and parse it."""
        content = Path(path).read_text(encoding='utf-8-sig')
        return self.parse_csv(content)
