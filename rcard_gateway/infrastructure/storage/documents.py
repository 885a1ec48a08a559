"""Key -> JSON document store over a SQLAlchemy session"""

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rcard_gateway.domain.exceptions import PersistenceError
from rcard_gateway.infrastructure.storage.models import Document

logger = logging.getLogger(__name__)

# Document kinds
USER_CARDS = "user_cards"
USER_LOANS = "user_loans"
ORGS = "orgs"
ORG_CARDS = "org_cards"
ORG_TRANSACTIONS = "org_transactions"
NONCES = "nonces"


class DocumentStore:
    """
    Whole-document get/put/list keyed by (kind, owner_id).

    Writes are flushed but not committed: the session is the unit of work, and
    the caller commits once every document of an operation has been staged.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self, kind: str, owner_id: str) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.kind == kind, Document.owner_id == owner_id)
            .first()
        )

    def get(self, kind: str, owner_id: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Return a copy of the document, or of `default` ({} if None) when absent"""
        try:
            row = self._row(kind, owner_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read {kind}/{owner_id}: {e}") from e

        if row is None:
            return copy.deepcopy(default) if default is not None else {}
        return copy.deepcopy(row.body)

    def put(self, kind: str, owner_id: str, body: Dict[str, Any]) -> None:
        """Replace the whole document"""
        try:
            row = self._row(kind, owner_id)
            if row is None:
                self.db.add(Document(kind=kind, owner_id=owner_id, body=copy.deepcopy(body)))
            else:
                row.body = copy.deepcopy(body)
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write {kind}/{owner_id}: {e}") from e

    def list(self, kind: str, prefix: str = "") -> List[Tuple[str, Dict[str, Any]]]:
        """All documents of a kind whose owner id starts with `prefix`"""
        try:
            query = self.db.query(Document).filter(Document.kind == kind)
            if prefix:
                query = query.filter(Document.owner_id.startswith(prefix, autoescape=True))
            rows = query.order_by(Document.owner_id).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list {kind}/{prefix}*: {e}") from e

        return [(row.owner_id, copy.deepcopy(row.body)) for row in rows]

    def delete(self, kind: str, owner_id: str) -> bool:
        """Remove a document; False if there was none"""
        try:
            row = self._row(kind, owner_id)
            if row is None:
                return False
            self.db.delete(row)
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete {kind}/{owner_id}: {e}") from e
        return True

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")
