import logging

from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.core.database import SessionLocal
from app.models.users import ROLE_OWNER, Account
from app.services import credential_service
from app.services.validation import email_errors, normalize_email

logger = logging.getLogger(__name__)


def _create_seed_owner(db: Session, settings: Settings, email: str) -> bool:
    if credential_service.email_exists(db, email):
        logger.info("Seed owner already exists")
        return False

    account = Account(name=settings.seed_account_name)
    db.add(account)
    db.flush()
    credential_service.create_user(
        db,
        email=email,
        password=settings.seed_owner_password or "",
        account=account,
        role=ROLE_OWNER,
        email_verified=True,
    )
    db.commit()
    logger.info("Seed owner created in account %s", account.id)
    return True


def run_seed_owner_bootstrap(
    settings: Settings | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> bool:
    """Create the first owner so someone can send invitations on a fresh install."""
    settings = settings or get_settings()
    if not settings.seed_owner_email or not settings.seed_owner_password:
        return False

    email = normalize_email(settings.seed_owner_email)
    if email_errors(email):
        logger.warning("SEED_OWNER_EMAIL is not a valid address, skipping seed")
        return False

    db = session_factory()
    try:
        return _create_seed_owner(db, settings, email)
    except credential_service.CredentialRejected as exc:
        db.rollback()
        logger.error("Seed owner could not be created: %s", exc)
        return False
    except Exception:
        db.rollback()
        logger.exception("Seed owner bootstrap failed")
        raise
    finally:
        db.close()
