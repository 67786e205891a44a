"""
Opaque cursor tokens.

A cursor holds the ordered ``(field, value)`` pairs of the active sort taken
from the last row of a page, plus the total row count so that follow-up
pages can skip the count query. Tokens are URL-safe base64 of compact JSON.

Values that JSON cannot carry natively (datetimes, dates, decimals, UUIDs)
are tagged with their type so they decode back to the same Python type.
"""

import base64
import binascii
import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple


class Cursor:
    """
    Decoded cursor.

    Attributes:
        values: Ordered ``(field, value)`` pairs of the active sort
        total: Row count captured on the first page, if any
    """

    def __init__(self, values: Sequence[Tuple[str, Any]], total: Optional[int] = None):
        self.values = list(values)
        self.total = total

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cursor):
            return NotImplemented
        return self.values == other.values and self.total == other.total

    def __repr__(self) -> str:
        return f"Cursor({self.values!r}, total={self.total!r})"


def encode_cursor(values: Sequence[Tuple[str, Any]], total: Optional[int] = None) -> str:
    """
    Encode ordered sort-key pairs into an opaque token.

    Args:
        values: ``(field, value)`` pairs in sort order
        total: Optional total row count to carry along

    Returns:
        URL-safe token without padding
    """
    payload: Dict[str, Any] = {"v": [[field, _dump(value)] for field, value in values]}
    if total is not None:
        payload["t"] = total
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Cursor:
    """
    Decode a token produced by ``encode_cursor``.

    Raises:
        ValueError: If the token is not a well-formed cursor
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed cursor: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("v"), list):
        raise ValueError("Malformed cursor: missing sort values")

    values: List[Tuple[str, Any]] = []
    for pair in payload["v"]:
        if not isinstance(pair, list) or len(pair) != 2 or not isinstance(pair[0], str):
            raise ValueError("Malformed cursor: bad sort value pair")
        values.append((pair[0], _load(pair[1])))

    total = payload.get("t")
    if total is not None and (not isinstance(total, int) or total < 0):
        raise ValueError("Malformed cursor: bad total")
    return Cursor(values, total)


def _dump(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$dt": value.isoformat()}
    if isinstance(value, date):
        return {"$d": value.isoformat()}
    if isinstance(value, Decimal):
        return {"$dec": str(value)}
    if isinstance(value, uuid.UUID):
        return {"$uuid": str(value)}
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _load(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    try:
        if "$dt" in value:
            return datetime.fromisoformat(value["$dt"])
        if "$d" in value:
            return date.fromisoformat(value["$d"])
        if "$dec" in value:
            return Decimal(value["$dec"])
        if "$uuid" in value:
            return uuid.UUID(value["$uuid"])
    except (ArithmeticError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed cursor value: {e}") from e
    raise ValueError("Malformed cursor value: unknown tag")
