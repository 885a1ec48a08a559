"""/v1/cards - card listing and details for the holder"""

from fastapi import APIRouter, Depends

from rcard_gateway.api.dependencies import get_loan_service, get_user_id, unwrap
from rcard_gateway.api.v1.schemas import CardListResponse, CardSchema
from rcard_gateway.services.loan_service import LoanService

router = APIRouter()


@router.get("/cards", response_model=CardListResponse)
def list_cards(
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    cards = unwrap(service.list_cards(user_id))
    return CardListResponse(cards=[CardSchema(**card.public_view()) for card in cards])


@router.get("/cards/{card_ref}", response_model=CardSchema)
def get_card(
    card_ref: str,
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    """
    Fetch one card by internal id or external identifier.

    Blocked, stolen and expired cards answer 404 like unknown ones.
    """
    card = unwrap(service.card_details(user_id, card_id=card_ref, card_identifier=card_ref))
    return CardSchema(**card.public_view())
