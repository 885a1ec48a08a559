"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class CardSchema(BaseModel):
    """Card as shown to its holder (no payload)"""

    card_id: str
    card_identifier: str
    card_type: str
    tier_name: str
    current_balance: float
    credit_limit: float
    status: str
    expiry_date: Optional[str] = None
    issued_date: Optional[str] = None


class CardListResponse(BaseModel):
    cards: List[CardSchema]


class LoanPolicySchema(BaseModel):
    loan_enabled: bool
    loan_max_amount: float
    loan_max_year: float
    loan_interest_rate_monthly: float
    loan_min_wait_days: int
    loan_max_days: int


class BootstrapResponse(BaseModel):
    """Response for GET /v1/loans/bootstrap"""

    card_id: str
    loan_enabled: bool
    policy: LoanPolicySchema
    year_total: float
    remaining_year: float


class LoanTermsRequest(BaseModel):
    """Request body for POST /v1/loans/preview and POST /v1/loans"""

    card_id: str = Field(..., min_length=1, description="Internal card id")
    amount: float = Field(..., gt=0, description="Principal in credits")
    days: int = Field(..., description="Contracted duration in days")


class PreviewResponse(BaseModel):
    amount: float
    days: int
    interest_rate_monthly: float
    daily_rate: float
    interest_min_wait: float
    interest_selected: float
    total_due: float
    min_wait_days: int
    due_date: str


class LoanSchema(BaseModel):
    loan_id: str
    card_id: str
    amount: float
    days: int
    interest_rate_monthly: float
    interest_amount: float
    total_due: float
    min_wait_days: int
    created_at: str
    due_date: str
    status: str
    paid_at: Optional[str] = None
    actual_interest: Optional[float] = None
    actual_total_paid: Optional[float] = None
    days_elapsed: Optional[int] = None
    repayment_source: Optional[str] = None


class LoanCreatedResponse(BaseModel):
    loan_id: str
    total_due: float
    due_date: str
    message: str = "Loan created successfully"


class LoanListResponse(BaseModel):
    loans: List[LoanSchema]


class RepayRequest(BaseModel):
    source: str = Field("card_balance", min_length=1, description="Where the repayment is drawn from")


class RepayResponse(BaseModel):
    loan: LoanSchema
    message: str = "Loan repaid successfully"


class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)


class OrgCreateResponse(BaseModel):
    """Secret is only returned here and on key rotation"""

    org_id: str
    name: str
    status: str
    api_key_public: str
    api_key_secret: str


class OrgCardCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    card_type: str = Field("credit", pattern="^(credit|debit)$")
    public_identifier: Optional[str] = None
    credit_limit: float = Field(0, ge=0)
    loan_policy: Optional[Dict[str, Any]] = None


class OrgCardSchema(BaseModel):
    card_id: str
    org_id: str
    name: str
    card_type: str
    public_identifier: Optional[str] = None
    credit_limit: float
    loan_policy: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OrgKeysResponse(BaseModel):
    """Fresh key pair; the secret is only ever returned here and on creation"""

    org_id: str
    api_key_public: str
    api_key_secret: str


class OrgCardListResponse(BaseModel):
    cards: List[OrgCardSchema]


class TransactionListResponse(BaseModel):
    org_id: str
    transactions: List[Dict[str, Any]]
