"""
Domain errors raised by the split ledger and the contract lifecycle services.

HTTP mapping (see app.main):
- ValidationError     -> 400
- AuthenticationError -> 401
- NotFoundError       -> 404
- LockedError         -> 409
- RenderError         -> 500
- ProviderError       -> 502
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ValidationError(LedgerError):
    """Malformed input or a split total outside tolerance."""

    status_code = 400

    def __init__(self, message: str, total: Optional[Decimal] = None):
        super().__init__(message)
        self.total = total

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.total is not None:
            # Reported as a 0-100 percentage, the convention at the API boundary
            data["total"] = float(self.total * 100)
        return data


class LockedError(LedgerError):
    """Mutation attempted against a locked facet."""

    status_code = 409


class NotFoundError(LedgerError):
    """Referenced work, share or contract does not exist."""

    status_code = 404


class AuthenticationError(LedgerError):
    """Webhook signature did not match the shared secret."""

    status_code = 401


class ProviderError(LedgerError):
    """The e-signature provider is unreachable or answered with an error."""

    status_code = 502


class RenderError(LedgerError):
    """Local contract rendering failed."""

    status_code = 500
