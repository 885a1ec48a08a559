"""/v1/loans - loan bootstrap, preview, creation, listing and repayment"""

from fastapi import APIRouter, Depends, Query

from rcard_gateway.api.dependencies import get_loan_service, get_user_id, unwrap
from rcard_gateway.api.v1.schemas import (
    BootstrapResponse,
    LoanCreatedResponse,
    LoanListResponse,
    LoanSchema,
    LoanTermsRequest,
    PreviewResponse,
    RepayRequest,
    RepayResponse,
)
from rcard_gateway.services.loan_service import LoanService

router = APIRouter()


@router.get("/loans/bootstrap", response_model=BootstrapResponse)
def bootstrap_loans(
    card_id: str = Query(..., min_length=1, description="Internal card id"),
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    """Loan policy for a card plus how much of the yearly cap is left"""
    return unwrap(service.bootstrap(user_id, card_id))


@router.post("/loans/preview", response_model=PreviewResponse)
def preview_loan(
    request_body: LoanTermsRequest,
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    """
    Price a loan without creating it.

    Runs the same validation as POST /v1/loans.
    """
    return unwrap(service.preview(user_id, request_body.card_id, request_body.amount, request_body.days))


@router.post("/loans", response_model=LoanCreatedResponse, status_code=201)
def create_loan(
    request_body: LoanTermsRequest,
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    """Create a loan; the principal is credited to the card balance"""
    loan = unwrap(service.create(user_id, request_body.card_id, request_body.amount, request_body.days))
    return LoanCreatedResponse(loan_id=loan.loan_id, total_due=loan.total_due, due_date=loan.due_date)


@router.get("/loans", response_model=LoanListResponse)
def list_loans(
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    loans = unwrap(service.list_loans(user_id))
    return LoanListResponse(loans=[LoanSchema(**loan.to_document()) for loan in loans])


@router.post("/loans/{loan_id}/repay", response_model=RepayResponse)
def repay_loan(
    loan_id: str,
    request_body: RepayRequest | None = None,
    user_id: str = Depends(get_user_id),
    service: LoanService = Depends(get_loan_service),
):
    """
    Repay a loan in full from the card balance.

    Charges interest for max(elapsed days, minimum wait days).
    """
    source = request_body.source if request_body is not None else "card_balance"
    loan = unwrap(service.repay(user_id, loan_id, source))
    return RepayResponse(loan=LoanSchema(**loan.to_document()))
