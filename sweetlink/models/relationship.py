import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sweetlink.database import Base, utcnow


class RelationshipKind(str, enum.Enum):
    FAMILY = "family"
    FRIENDS = "friends"
    LOVED_ONE = "loved_one"


class Relationship(Base):
    __tablename__ = "relationships"
    __table_args__ = (
        CheckConstraint("account_a_id <> account_b_id", name="ck_relationships_distinct_accounts"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    # Unordered pair, stored in canonical (sorted) order
    account_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False,
    )
    account_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    invite_code_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("invite_codes.id"), nullable=True,
    )
    established_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(),
    )

    # Relationships
    members: Mapped[list["RelationshipMember"]] = relationship(back_populates="relation")

    def __repr__(self) -> str:
        return f"<Relationship(id={self.id}, kind={self.kind!r})>"


class RelationshipMember(Base):
    """One row per linked account; the primary key keeps each account in at most one relationship."""

    __tablename__ = "relationship_members"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), primary_key=True,
    )
    relationship_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("relationships.id"), nullable=False, index=True,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    # Relationships
    relation: Mapped["Relationship"] = relationship(back_populates="members")

    def __repr__(self) -> str:
        return f"<RelationshipMember(account_id={self.account_id}, relationship_id={self.relationship_id})>"
