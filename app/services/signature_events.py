"""
Inbound e-signature webhook ingestion.

The provider nests the same information differently across event variants:

    {"event": {"type": "document_completed", "time": 1700000000},
     "data": {"object": {"id": "doc_1", "completed_at": "..."}}}

    {"event": "document.completed", "data": {"document": {"id": "doc_1"}}}

    {"type": "document_signed", "id": "doc_1", "completed_at": "..."}

Everything is reduced to one SignatureEvent here so the state machine never
sees a raw payload. Bodies may also arrive form-encoded with the JSON in a
`json` field.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from app.services.errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("x-signwell-signature", "x-signature")


class EventKind(str, Enum):
    COMPLETED = "completed"
    DECLINED = "declined"
    CANCELED = "canceled"
    UNKNOWN = "unknown"


EVENT_ALIASES: Dict[str, EventKind] = {
    "document_completed": EventKind.COMPLETED,
    "document_signed": EventKind.COMPLETED,
    "document.finished": EventKind.COMPLETED,
    "document.completed": EventKind.COMPLETED,
    "document_declined": EventKind.DECLINED,
    "document.rejected": EventKind.DECLINED,
    "document.declined": EventKind.DECLINED,
    "document_canceled": EventKind.CANCELED,
    "document.cancelled": EventKind.CANCELED,
    "document.canceled": EventKind.CANCELED,
}


@dataclass(frozen=True)
class SignatureEvent:
    """Provider event reduced to what the state machine needs."""
    kind: EventKind
    document_id: Optional[str]
    timestamp: Optional[datetime] = None
    event_type: Optional[str] = None


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """
    Check the HMAC-SHA256 hex digest of the raw body.

    No secret configured means verification is disabled. With a secret, a
    missing or different signature raises AuthenticationError.
    """
    if not secret:
        return
    if not signature:
        raise AuthenticationError("Missing webhook signature")

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        logger.error("Webhook signature verification failed")
        raise AuthenticationError("Invalid signature")


def signature_from_headers(headers) -> Optional[str]:
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


def _load_body(body: bytes) -> Dict[str, Any]:
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        # Form-encoded fallback: json=<payload>
        fields = parse_qs(text)
        raw = fields.get("json")
        if not raw:
            raise ValidationError("Invalid webhook data")
        try:
            data = json.loads(raw[0])
        except ValueError:
            raise ValidationError("Invalid webhook data")

    if not isinstance(data, dict):
        raise ValidationError("Invalid webhook data")
    return data


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.utcfromtimestamp(value)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Ignoring out-of-range webhook timestamp: {value}")
            return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    except (OverflowError, ValueError):
        return None
    return parsed


def _event_type(data: Dict[str, Any]) -> Optional[str]:
    event = data.get("event")
    if isinstance(event, dict):
        return event.get("type")
    return event or data.get("type")


def _document_id(data: Dict[str, Any]) -> Optional[str]:
    for path in (
        ("data", "object", "id"),
        ("data", "document", "id"),
        ("document", "id"),
        ("data", "id"),
        ("id",),
    ):
        value = _dig(data, *path)
        if value:
            return str(value)
    return None


def _timestamp(data: Dict[str, Any]) -> Optional[datetime]:
    for path in (
        ("data", "object", "completed_at"),
        ("data", "document", "completed_at"),
        ("document", "completed_at"),
        ("completed_at",),
        ("finished_at",),
        ("event", "time"),
    ):
        value = _parse_time(_dig(data, *path))
        if value is not None:
            return value
    return None


def parse_event(body: bytes) -> SignatureEvent:
    """
    Parse a raw webhook body into a SignatureEvent.

    Raises:
        ValidationError: body is neither JSON nor form-encoded JSON
    """
    data = _load_body(body)
    event_type = _event_type(data)
    kind = EVENT_ALIASES.get(str(event_type).lower(), EventKind.UNKNOWN) if event_type else EventKind.UNKNOWN

    return SignatureEvent(
        kind=kind,
        document_id=_document_id(data),
        timestamp=_timestamp(data) if kind == EventKind.COMPLETED else None,
        event_type=event_type,
    )
