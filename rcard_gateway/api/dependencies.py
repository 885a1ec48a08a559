"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rcard_gateway.config import settings
from rcard_gateway.domain.exceptions import ErrorKind
from rcard_gateway.domain.models import ServiceResult
from rcard_gateway.domain.policy import PolicyCatalog, load_base_catalog
from rcard_gateway.infrastructure.storage.session import get_db
from rcard_gateway.services.loan_service import LoanService
from rcard_gateway.services.org_service import OrgService
from rcard_gateway.services.payment_service import PaymentChargeService

STATUS_BY_ERROR = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.POLICY_DISABLED: 400,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.AUTHENTICATION_FAILED: 401,
    ErrorKind.PERSISTENCE_FAILURE: 500,
    ErrorKind.ALREADY_SETTLED: 409,
}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1)) -> str:
    """Authenticated user id, supplied by the session layer in front of this service"""
    return x_user_id


def get_org_id(org_id: str, x_org_id: str = Header(..., alias="X-Org-Id", min_length=1)) -> str:
    """
    Organization the caller acts for, bound to the `org_id` path segment.

    The org session layer in front of this service sets X-Org-Id; a caller
    may only reach its own organization.
    """
    if x_org_id != org_id:
        raise HTTPException(status_code=403, detail="Organization mismatch")
    return org_id


@lru_cache(maxsize=1)
def get_policy_catalog() -> PolicyCatalog:
    """Base catalog is loaded once per process and never mutated"""
    return PolicyCatalog(
        load_base_catalog(settings.base_catalog_path),
        default_min_wait_days=settings.loan_min_wait_days,
        default_max_days=settings.loan_max_days,
    )


def get_loan_service(
    db: Session = Depends(get_db),
    catalog: PolicyCatalog = Depends(get_policy_catalog),
) -> LoanService:
    return LoanService(db, catalog)


def get_payment_service(db: Session = Depends(get_db)) -> PaymentChargeService:
    return PaymentChargeService(db)


def get_org_service(db: Session = Depends(get_db)) -> OrgService:
    return OrgService(db)


def unwrap(result: ServiceResult):
    """Return the value of a successful result, or raise the matching HTTP error"""
    if result.ok:
        return result.value
    raise HTTPException(status_code=STATUS_BY_ERROR[result.error], detail=result.reason)
