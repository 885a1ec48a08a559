"""POST /v1/payments/charge - signed charge requests from partner organizations"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from rcard_gateway.api.dependencies import STATUS_BY_ERROR, get_payment_service, get_request_id
from rcard_gateway.services.payment_service import PaymentChargeService

router = APIRouter()


@router.post("/payments/charge")
def charge(
    body: Dict[str, Any] = Body(...),
    request_id: str = Depends(get_request_id),
    service: PaymentChargeService = Depends(get_payment_service),
):
    """
    Charge a user's card on behalf of an organization.

    The body is signed as a whole, so it is taken as a raw mapping:
    api_key_public, nonce, timestamp, signature, operation, card_identifier,
    user_id, amount_credits, description.

    Returns status approved, declined or rejected with a reason.
    """
    result = service.process(body)
    status_code = STATUS_BY_ERROR[result.error] if result.error is not None else 200

    if status_code >= 500:
        logging.error(f"Charge failed: {result.reason}", extra={"request_id": request_id})

    return JSONResponse(status_code=status_code, content=result.to_response())
