"""
Hashing Module - SHA256 Calculation Seal

Canonical JSON serialization and SHA256 hashing of a calculation
(input records, jurisdiction, resulting events). A stored report can be
re-verified by recomputing the seal from the same inputs.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel

from lib.parsers.transaction import TransactionRecord
from modules.tax.jurisdictions import Jurisdiction
from modules.tax.tax_events import TaxableEvent


def canonical_json_dumps(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.

    Ensures deterministic serialization for hashing:
    - Keys sorted alphabetically
    - No whitespace
    - Decimals as their exact string form (never floats)
    - Dates as ISO 8601

    Example:
        >>> canonical_json_dumps({"amount": Decimal("1.50"), "date": date(2024, 1, 15)})
        '{"amount":"1.50","date":"2024-01-15"}'
    """
    def default_handler(o):
        if isinstance(o, Decimal):
            return format(o, 'f')
        if isinstance(o, (date, datetime)):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, BaseModel):
            return o.model_dump()
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        default=default_handler,
        ensure_ascii=True
    )


def calculate_sha256(data: Any) -> str:
    """
    Calculate SHA256 hash of data.

    Returns:
        SHA256 hex digest prefixed with 'sha256:'
    """
    json_str = canonical_json_dumps(data)
    hash_obj = hashlib.sha256(json_str.encode('utf-8'))
    return f"sha256:{hash_obj.hexdigest()}"


def verify_hash(data: Any, expected_hash: str) -> bool:
    """Verify that data matches expected hash."""
    return calculate_sha256(data) == expected_hash


def seal_calculation(
    transactions: Iterable[TransactionRecord],
    jurisdiction: Jurisdiction,
    events: Iterable[TaxableEvent]
) -> str:
    """Hash the full calculation: inputs, rates and outputs."""
    payload = {
        "jurisdiction": jurisdiction.model_dump(),
        "transactions": [
            txn.model_dump(exclude={'source_row'}) for txn in transactions
        ],
        "events": [event.model_dump() for event in events],
    }
    return calculate_sha256(payload)
