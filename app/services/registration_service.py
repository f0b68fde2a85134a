"""Account registration through a single-use invitation token.

A successful redemption provisions, in order, a new account, an owner
credential inside it, and the ``accepted_at`` stamp on the invitation. Each
step has a compensating delete so a failure part way through never leaves a
half-provisioned account behind.

A request that loses a race for the same token always ends with the generic
invalid-or-expired error, whichever step it loses at: the locked lookup, the
email check, the unique email index, or the conditional claim.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.errors import FieldValidationError
from app.core.security import hash_token
from app.models.users import ROLE_OWNER, Account, Invitation, utcnow
from app.services import credential_service
from app.services.invitation_service import get_invitation_by_token_hash
from app.services.validation import derive_account_name, password_errors

logger = logging.getLogger(__name__)

INVALID_INVITATION_MESSAGE = "This invitation link is invalid or expired"
EMAIL_EXISTS_MESSAGE = "An account with this email already exists"


@dataclass(frozen=True)
class RegisterResult:
    user_id: uuid.UUID
    requires_email_verification: bool = False


def _invalid_invitation() -> FieldValidationError:
    # Same text for unknown, expired and used tokens.
    return FieldValidationError.single("token", INVALID_INVITATION_MESSAGE)


def _validate_input(token: str, password: str) -> None:
    errors: dict[str, list[str]] = {}
    if not token or not token.strip():
        errors["token"] = ["Invitation token is required"]
    problems = password_errors(password)
    if problems:
        errors["password"] = problems
    if errors:
        raise FieldValidationError(errors)


def _claim_invitation(db: Session, invitation: Invitation) -> bool:
    """Stamp ``accepted_at`` only if nobody else has; True when this call won."""
    now = utcnow()
    result = db.execute(
        update(Invitation)
        .where(
            Invitation.id == invitation.id,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > now,
        )
        .values(accepted_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    set_committed_value(invitation, "accepted_at", now)
    return True


def _email_conflict(db: Session, invitation: Invitation) -> FieldValidationError:
    """Error for an invited email that already has a credential.

    If the invitation was redeemed meanwhile, the credential is the winner's
    and the caller gets the generic rejection instead.
    """
    db.refresh(invitation)
    if not invitation.is_valid():
        logger.info("Invitation %s was redeemed concurrently", invitation.id)
        return _invalid_invitation()
    logger.warning(
        "Invitation %s targets an email that already has an account", invitation.id
    )
    return FieldValidationError.single("email", EMAIL_EXISTS_MESSAGE)


def register_with_invitation(db: Session, token: str, password: str) -> RegisterResult:
    _validate_input(token, password)

    invitation = get_invitation_by_token_hash(db, hash_token(token), for_update=True)
    if invitation is None or not invitation.is_valid():
        raise _invalid_invitation()

    email = invitation.email
    if credential_service.email_exists(db, email):
        raise _email_conflict(db, invitation)

    account = Account(name=derive_account_name(email))
    db.add(account)
    db.flush()

    try:
        user = credential_service.create_user(
            db,
            email=email,
            password=password,
            account=account,
            role=ROLE_OWNER,
            email_verified=True,
        )
    except credential_service.CredentialRejected as exc:
        logger.info(
            "Credential rejected for invitation %s, removing account %s",
            invitation.id,
            account.id,
        )
        db.delete(account)
        db.flush()
        if exc.field == "email":
            raise _email_conflict(db, invitation) from exc
        raise FieldValidationError({exc.field: exc.messages}) from exc

    if not _claim_invitation(db, invitation):
        logger.info(
            "Invitation %s was claimed concurrently, removing account %s",
            invitation.id,
            account.id,
        )
        db.delete(user)
        db.delete(account)
        db.flush()
        raise _invalid_invitation()

    db.commit()
    logger.info(
        "Registered user %s in new account %s via invitation %s",
        user.id,
        account.id,
        invitation.id,
    )
    return RegisterResult(user_id=user.id, requires_email_verification=False)
