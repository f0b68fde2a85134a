from app.core.database import Base
from app.models.users import (
    Account,
    Invitation,
    InvitationStatus,
    User,
)

__all__ = [
    "Account",
    "Base",
    "Invitation",
    "InvitationStatus",
    "User",
]
