"""
SignWell e-signature API client.

https://developers.signwell.com/reference/getting-started-with-your-api-1

Only the three calls the contract lifecycle needs are wrapped:
- POST /v1/documents                     create and send a document
- GET  /v1/documents/{id}                poll status and signers
- GET  /v1/documents/{id}/completed_pdf  download the signed PDF

Every transport or HTTP failure surfaces as ProviderError.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import httpx

from app.core.config import settings
from app.services.errors import ProviderError

logger = logging.getLogger(__name__)


# Provider status -> local status vocabulary
_STATUS_MAP = {
    "completed": "signed",
    "signed": "signed",
    "declined": "declined",
    "rejected": "declined",
    "canceled": "canceled",
    "cancelled": "canceled",
    "sent": "sent",
    "pending": "sent",
}


@dataclass
class SignerStatus:
    email: str
    name: str
    status: str
    signed_at: Optional[datetime] = None


@dataclass
class ProviderStatus:
    """Document status as reported by the provider."""
    status: str
    signed_at: Optional[datetime] = None
    signers: List[SignerStatus] = field(default_factory=list)


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        # Stored as naive UTC like every other timestamp column
        if parsed.tzinfo is not None:
            parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    except (OverflowError, ValueError):
        return None
    return parsed


def _document(response: httpx.Response) -> dict:
    """Unwrap the document object from a SignWell JSON response."""
    try:
        data = response.json()
    except ValueError as e:
        logger.error(f"SignWell returned a non-JSON body: {response.text[:200]}")
        raise ProviderError("SignWell returned an invalid response") from e
    if isinstance(data, dict):
        data = data.get("document") or data.get("data") or data
    if not isinstance(data, dict):
        raise ProviderError("SignWell returned an unexpected response shape")
    return data


class SignWellClient:
    """Async client for the SignWell documents API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        test_mode: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.SIGNWELL_API_KEY if api_key is None else api_key
        self.api_url = (api_url or settings.SIGNWELL_API_URL).rstrip("/")
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        self.test_mode = settings.SIGNWELL_TEST_MODE if test_mode is None else test_mode
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={"X-Api-Key": self.api_key},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.configured:
            raise ProviderError("SignWell API key not configured")

        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"SignWell request {method} {path} failed: {e}")
            raise ProviderError(f"SignWell unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"SignWell {method} {path} returned {response.status_code}: {response.text}")
            raise ProviderError(f"SignWell returned {response.status_code}")
        return response

    async def send_document(
        self,
        pdf_bytes: bytes,
        signer_email: str,
        signer_name: str,
        title: str,
        countersigner_email: Optional[str] = None,
        countersigner_name: Optional[str] = None,
    ) -> str:
        """
        Create a document and send it for signature.

        When a countersigner is given, both parties sign in parallel.
        Signature and date fields are placed by the text tags rendered into
        the PDF (`sig|req|recipient_N`, `date|req|recipient_N`).

        Returns:
            Provider document ID
        """
        signers = []
        if countersigner_email and countersigner_name:
            signers.append((countersigner_email, countersigner_name))
        signers.append((signer_email, signer_name))

        recipients = []
        for index, (email, name) in enumerate(signers, start=1):
            recipient_id = f"recipient_{index}"
            recipients.append({
                "id": recipient_id,
                "email": email,
                "name": name,
                "role": "signer",
                "fields": [
                    {"type": "signature", "file_id": "file_1", "text_tag": f"sig|req|{recipient_id}"},
                    {"type": "date", "file_id": "file_1", "text_tag": f"date|req|{recipient_id}"},
                ],
            })

        payload = {
            "name": title,
            "files": [{
                "id": "file_1",
                "name": f"{title}.pdf",
                "file_base64": base64.b64encode(pdf_bytes).decode("ascii"),
            }],
            "recipients": recipients,
            "send": True,
        }
        if self.test_mode:
            payload["test_mode"] = True

        response = await self._request("POST", "/v1/documents", json=payload)
        document_id = _document(response).get("id")
        if not document_id:
            raise ProviderError("SignWell response did not include a document ID")

        logger.info(f"Sent '{title}' to {signer_email} (document {document_id})")
        return str(document_id)

    async def get_status(self, document_id: str) -> ProviderStatus:
        """Fetch the current status of a document."""
        response = await self._request("GET", f"/v1/documents/{document_id}")
        document = _document(response)

        raw_status = str(document.get("status", "")).lower()
        signers = [
            SignerStatus(
                email=recipient.get("email", ""),
                name=recipient.get("name", ""),
                status=recipient.get("status") or "pending",
                signed_at=_parse_timestamp(recipient.get("signed_at")),
            )
            for recipient in document.get("recipients") or []
            if isinstance(recipient, dict)
        ]
        return ProviderStatus(
            status=_STATUS_MAP.get(raw_status, "pending"),
            signed_at=_parse_timestamp(
                document.get("completed_at")
                or document.get("signed_at")
                or document.get("finished_at")
            ),
            signers=signers,
        )

    async def fetch_completed_pdf(self, document_id: str) -> bytes:
        """Download the completed (signed) PDF of a document."""
        response = await self._request("GET", f"/v1/documents/{document_id}/completed_pdf")
        return response.content


signwell_client = SignWellClient()
