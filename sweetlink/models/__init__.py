"""SQLAlchemy ORM models.

All models are imported here so that Alembic can discover them
via ``Base.metadata`` when generating migrations.
"""

from sweetlink.models.account import Account, RefreshToken  # noqa: F401
from sweetlink.models.invite_code import InviteCode, InviteStatus  # noqa: F401
from sweetlink.models.relationship import (  # noqa: F401
    Relationship,
    RelationshipKind,
    RelationshipMember,
)

__all__ = [
    "Account",
    "InviteCode",
    "InviteStatus",
    "RefreshToken",
    "Relationship",
    "RelationshipKind",
    "RelationshipMember",
]
