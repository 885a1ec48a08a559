"""Organization administration: onboarding, card catalog and transaction log"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from rcard_gateway.domain.exceptions import ErrorKind, LockTimeoutError, PersistenceError
from rcard_gateway.domain.models import Organization, OrgCard, ServiceResult
from rcard_gateway.infrastructure.locks import KeyedLockRegistry, lock_registry, org_lock_key
from rcard_gateway.infrastructure.observability.logging import emit_event
from rcard_gateway.infrastructure.storage.documents import DocumentStore
from rcard_gateway.infrastructure.storage.repositories import OrgCardCatalog, OrgRepository, TransactionLog
from rcard_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class OrgService:
    """Organization-side operations, serialized per organization"""

    def __init__(
        self,
        db: Session,
        locks: KeyedLockRegistry = lock_registry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = DocumentStore(db)
        self.locks = locks
        self.clock = clock
        self.orgs = OrgRepository(self.store)
        self.catalog = OrgCardCatalog(self.store)
        self.transactions = TransactionLog(self.store)

    def _guarded(self, operation: Callable[[], ServiceResult]) -> ServiceResult:
        try:
            return operation()
        except LockTimeoutError:
            return ServiceResult.failure(ErrorKind.PERSISTENCE_FAILURE, "Service busy, try again")
        except PersistenceError as e:
            logger.error(f"Organization store failure: {e}")
            return ServiceResult.failure(ErrorKind.PERSISTENCE_FAILURE, "Internal server error")
        finally:
            self.store.rollback()

    def create_org(self, name: str) -> ServiceResult[Organization]:
        """Register an organization with a fresh API key pair"""

        def run() -> ServiceResult[Organization]:
            org = self.orgs.create_org(name, self.clock())
            self.store.commit()
            emit_event("orgs", "Organization created", {"org_id": org.org_id})
            return ServiceResult.success(org)

        return self._guarded(run)

    def create_card(self, org_id: str, fields: Dict[str, Any]) -> ServiceResult[OrgCard]:
        """Add a card product to the organization catalog"""

        def run() -> ServiceResult[OrgCard]:
            with self.locks.hold(org_lock_key(org_id)):
                if self.orgs.get(org_id) is None:
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
                card = self.catalog.create(org_id, fields, self.clock())
                self.store.commit()
            emit_event("orgs", "Org card created", {"org_id": org_id, "card_id": card.card_id})
            return ServiceResult.success(card)

        return self._guarded(run)

    def rotate_keys(self, org_id: str) -> ServiceResult[Organization]:
        """Issue a new API key pair; requests signed with the old pair are rejected"""

        def run() -> ServiceResult[Organization]:
            with self.locks.hold(org_lock_key(org_id)):
                org = self.orgs.get(org_id)
                if org is None:
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
                self.orgs.rotate_keys(org)
                self.store.commit()
            emit_event("orgs", "API keys regenerated", {"org_id": org_id})
            return ServiceResult.success(org)

        return self._guarded(run)

    def update_card(self, org_id: str, card_id: str, fields: Dict[str, Any]) -> ServiceResult[OrgCard]:
        """Replace a card product; new loans on linked cards use its new policy"""

        def run() -> ServiceResult[OrgCard]:
            with self.locks.hold(org_lock_key(org_id)):
                if self.orgs.get(org_id) is None:
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
                card = self.catalog.update(org_id, card_id, fields, self.clock())
                if card is None:
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")
                self.store.commit()
            emit_event("orgs", "Org card updated", {"org_id": org_id, "card_id": card_id})
            return ServiceResult.success(card)

        return self._guarded(run)

    def delete_card(self, org_id: str, card_id: str) -> ServiceResult[str]:
        """
        Remove a card product.

        User cards linked to it fall back to their base tier policy.
        """

        def run() -> ServiceResult[str]:
            with self.locks.hold(org_lock_key(org_id)):
                if self.orgs.get(org_id) is None:
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
                if not self.catalog.delete(org_id, card_id):
                    return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")
                self.store.commit()
            emit_event("orgs", "Org card deleted", {"org_id": org_id, "card_id": card_id})
            return ServiceResult.success(card_id)

        return self._guarded(run)

    def list_cards(self, org_id: str, public_identifier: Optional[str] = None) -> ServiceResult[List[OrgCard]]:
        """Card products of the org, or the one matching `public_identifier`"""

        def run() -> ServiceResult[List[OrgCard]]:
            if self.orgs.get(org_id) is None:
                return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
            if public_identifier is None:
                return ServiceResult.success(self.catalog.list(org_id))
            card = self.catalog.find_by_public_identifier(org_id, public_identifier)
            return ServiceResult.success([card] if card is not None else [])

        return self._guarded(run)

    def list_transactions(self, org_id: str) -> ServiceResult[List[Dict[str, Any]]]:
        """Transaction log, newest first"""

        def run() -> ServiceResult[List[Dict[str, Any]]]:
            if self.orgs.get(org_id) is None:
                return ServiceResult.failure(ErrorKind.NOT_FOUND, "Organization not found")
            return ServiceResult.success(list(reversed(self.transactions.list(org_id))))

        return self._guarded(run)
