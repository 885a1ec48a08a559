"""/v1/orgs - organization onboarding, keys, card catalog and transaction log"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from rcard_gateway.api.dependencies import get_org_id, get_org_service, unwrap
from rcard_gateway.api.v1.schemas import (
    OrgCardCreateRequest,
    OrgCardListResponse,
    OrgCardSchema,
    OrgCreateRequest,
    OrgCreateResponse,
    OrgKeysResponse,
    TransactionListResponse,
)
from rcard_gateway.services.org_service import OrgService

router = APIRouter()


@router.post("/orgs", response_model=OrgCreateResponse, status_code=201)
def create_org(request_body: OrgCreateRequest, service: OrgService = Depends(get_org_service)):
    org = unwrap(service.create_org(request_body.name))
    return OrgCreateResponse(
        org_id=org.org_id,
        name=org.name,
        status=org.status,
        api_key_public=org.api_key_public,
        api_key_secret=org.api_key_secret,
    )


@router.post("/orgs/{org_id}/keys", response_model=OrgKeysResponse)
def rotate_keys(org_id: str = Depends(get_org_id), service: OrgService = Depends(get_org_service)):
    """Regenerate the API key pair; the previous pair stops working immediately"""
    org = unwrap(service.rotate_keys(org_id))
    return OrgKeysResponse(org_id=org.org_id, api_key_public=org.api_key_public, api_key_secret=org.api_key_secret)


@router.get("/orgs/{org_id}/cards", response_model=OrgCardListResponse)
def list_org_cards(
    public_identifier: Optional[str] = Query(None, min_length=1),
    org_id: str = Depends(get_org_id),
    service: OrgService = Depends(get_org_service),
):
    cards = unwrap(service.list_cards(org_id, public_identifier=public_identifier))
    return OrgCardListResponse(cards=[OrgCardSchema(**card.to_document()) for card in cards])


@router.post("/orgs/{org_id}/cards", response_model=OrgCardSchema, status_code=201)
def create_org_card(
    request_body: OrgCardCreateRequest,
    org_id: str = Depends(get_org_id),
    service: OrgService = Depends(get_org_service),
):
    """Add a card product; its loan_policy, if any, overrides the base tier"""
    card = unwrap(service.create_card(org_id, request_body.model_dump()))
    return OrgCardSchema(**card.to_document())


@router.put("/orgs/{org_id}/cards/{card_id}", response_model=OrgCardSchema)
def update_org_card(
    card_id: str,
    request_body: OrgCardCreateRequest,
    org_id: str = Depends(get_org_id),
    service: OrgService = Depends(get_org_service),
):
    """
    Replace a card product.

    Existing loans keep the terms they were created with.
    """
    card = unwrap(service.update_card(org_id, card_id, request_body.model_dump()))
    return OrgCardSchema(**card.to_document())


@router.delete("/orgs/{org_id}/cards/{card_id}", status_code=204)
def delete_org_card(card_id: str, org_id: str = Depends(get_org_id), service: OrgService = Depends(get_org_service)):
    unwrap(service.delete_card(org_id, card_id))
    return Response(status_code=204)


@router.get("/orgs/{org_id}/transactions", response_model=TransactionListResponse)
def list_transactions(org_id: str = Depends(get_org_id), service: OrgService = Depends(get_org_service)):
    transactions = unwrap(service.list_transactions(org_id))
    return TransactionListResponse(org_id=org_id, transactions=transactions)
