"""SQLAlchemy ORM model backing the JSON document store"""

from sqlalchemy import Column, DateTime, Integer, String, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Document(Base):
    """One JSON document per (kind, owner), replaced whole on every write"""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("kind", "owner_id", name="uq_documents_kind_owner"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(64), nullable=False, index=True)  # user_cards | user_loans | orgs | org_cards | ...
    owner_id = Column(String(255), nullable=False)
    body = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Optimistic concurrency: UPDATE ... WHERE version = <read version>
    __mapper_args__ = {"version_id_col": version}
