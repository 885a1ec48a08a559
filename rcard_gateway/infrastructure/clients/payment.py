"""Payment API HTTP client used by partner organizations to charge cards"""

import secrets
import time
from typing import Any, Dict

import httpx

from rcard_gateway.config import settings
from rcard_gateway.domain.exceptions import DomainException
from rcard_gateway.infrastructure.security.signatures import SIGNATURE_FIELD, sign_payload


class PaymentAPIError(DomainException):
    """Payment API is unavailable or answered with a malformed response"""

    pass


def build_charge_request(
    api_key_public: str,
    api_key_secret: str,
    user_id: str,
    card_identifier: str,
    amount_credits: float,
    description: str,
    nonce: str | None = None,
    timestamp: int | None = None,
) -> Dict[str, Any]:
    """Assemble and sign a charge body"""
    body: Dict[str, Any] = {
        "api_key_public": api_key_public,
        "nonce": nonce or f"nonce_{secrets.token_hex(12)}",
        "timestamp": timestamp if timestamp is not None else int(time.time()),
        "operation": "charge",
        "card_identifier": card_identifier,
        "user_id": user_id,
        "amount_credits": amount_credits,
        "description": description,
    }
    body[SIGNATURE_FIELD] = sign_payload(api_key_secret, body)
    return body


class PaymentClient:
    """Client for the organization charge endpoint"""

    def __init__(
        self,
        api_key_public: str,
        api_key_secret: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key_public = api_key_public
        self.api_key_secret = api_key_secret
        self.base_url = base_url or settings.payment_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def charge(
        self,
        user_id: str,
        card_identifier: str,
        amount_credits: float,
        description: str,
    ) -> Dict[str, Any]:
        """
        Charge a card and return the decoded outcome.

        Declines and rejections are ordinary responses carrying a status and
        a reason; only transport failures raise.

        Raises:
            PaymentAPIError: On timeout, network errors, 5xx, or a non-JSON body
        """
        body = build_charge_request(
            self.api_key_public,
            self.api_key_secret,
            user_id,
            card_identifier,
            amount_credits,
            description,
        )
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(f"{self.base_url}/v1/payments/charge", json=body)
                if response.status_code >= 500:
                    response.raise_for_status()
                data = response.json()
                if "status" not in data:
                    raise KeyError("status")
                return data

            except httpx.TimeoutException as e:
                raise PaymentAPIError(f"Payment API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PaymentAPIError(f"Payment API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PaymentAPIError(f"Payment API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PaymentAPIError(f"Invalid response from payment API: {e}") from e
