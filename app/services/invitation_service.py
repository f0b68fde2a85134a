import logging
import smtplib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import AuthorizationDenied, FieldValidationError
from app.core.security import generate_raw_token, hash_token
from app.models.users import ROLE_OWNER, Invitation, User, utcnow
from app.services.email_service import EmailNotConfigured, send_invitation_email
from app.services.validation import email_errors, normalize_email

logger = logging.getLogger(__name__)
settings = get_settings()

INVITE_TTL_HOURS = 24
PENDING_INVITATION_MESSAGE = (
    "A pending invitation already exists for this email address."
)


@dataclass(frozen=True)
class SendInvitationResult:
    success: bool
    error: str | None = None


def _require_base_url() -> str:
    base_url = settings.invite_base_url
    if not base_url:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invitation service is not configured",
        )
    return base_url.rstrip("/")


def build_registration_link(raw_token: str) -> str:
    return f"{_require_base_url()}/register?token={raw_token}"


def scoped_invitations(account_id: uuid.UUID) -> Select[tuple[Invitation]]:
    """Invitations issued by one tenant. Every listing goes through here."""
    return select(Invitation).where(Invitation.account_id == account_id)


def get_invitation_by_token_hash(
    db: Session, token_hash: str, *, for_update: bool = False
) -> Invitation | None:
    """Exact-hash lookup across all tenants.

    The redeeming caller has no tenant yet, so this is the one query that is
    not scoped. Do not reuse it for anything that enumerates rows.

    ``for_update`` takes a row lock on databases that support it, so a second
    redemption of the same token waits until the first one commits.
    """
    stmt = select(Invitation).where(Invitation.token_hash == token_hash)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def _has_valid_invitation_for(
    db: Session, account_id: uuid.UUID, email: str, now: datetime
) -> bool:
    stmt = (
        scoped_invitations(account_id)
        .with_only_columns(Invitation.id)
        .where(Invitation.email == email)
        .where(Invitation.accepted_at.is_(None))
        .where(Invitation.expires_at > now)
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def list_invitations(db: Session, inviter: User) -> list[Invitation]:
    stmt = scoped_invitations(inviter.account_id).order_by(
        Invitation.created_at.desc()
    )
    return list(db.execute(stmt).scalars())


def send_invitation(db: Session, inviter: User, email: str) -> SendInvitationResult:
    if inviter.role != ROLE_OWNER:
        raise AuthorizationDenied("Only account owners can send invitations.")

    normalized = normalize_email(email)
    errors = email_errors(normalized)
    if errors:
        raise FieldValidationError({"email": errors})

    now = utcnow()
    if _has_valid_invitation_for(db, inviter.account_id, normalized, now):
        logger.info(
            "Pending invitation already exists in account %s", inviter.account_id
        )
        return SendInvitationResult(success=False, error=PENDING_INVITATION_MESSAGE)

    raw_token = generate_raw_token()
    link = build_registration_link(raw_token)
    invitation = Invitation(
        account_id=inviter.account_id,
        email=normalized,
        token_hash=hash_token(raw_token),
        invited_by_user_id=inviter.id,
        expires_at=(now + timedelta(hours=INVITE_TTL_HOURS)).replace(microsecond=0),
    )
    db.add(invitation)
    db.flush()

    try:
        send_invitation_email(normalized, link, INVITE_TTL_HOURS)
    except (EmailNotConfigured, smtplib.SMTPException, OSError) as exc:
        logger.exception("Invitation email for %s could not be sent", invitation.id)
        db.delete(invitation)
        db.flush()
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send invitation email",
        ) from exc

    db.commit()
    logger.info(
        "Invitation %s issued by user %s in account %s",
        invitation.id,
        inviter.id,
        inviter.account_id,
    )
    return SendInvitationResult(success=True)
