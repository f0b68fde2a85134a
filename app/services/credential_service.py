from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models.users import ROLE_CONTRIBUTOR, Account, User

MAX_PASSWORD_LENGTH = 128
EMAIL_TAKEN_MESSAGE = "An account with this email already exists"


class CredentialRejected(Exception):
    def __init__(self, messages: list[str], field: str = "password"):
        super().__init__("; ".join(messages))
        self.messages = messages
        self.field = field


def email_exists(db: Session, email: str) -> bool:
    stmt = select(User.id).where(User.email == email).limit(1)
    return db.execute(stmt).first() is not None


def _password_problems(email: str, password: str) -> list[str]:
    problems = []
    if len(password) > MAX_PASSWORD_LENGTH:
        problems.append(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters"
        )
    local_part = email.split("@", 1)[0]
    if len(local_part) >= 3 and local_part.lower() in password.lower():
        problems.append("Password must not contain your email address")
    return problems


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    account: Account,
    role: str = ROLE_CONTRIBUTOR,
    email_verified: bool = False,
) -> User:
    if email_exists(db, email):
        raise CredentialRejected([EMAIL_TAKEN_MESSAGE], field="email")

    problems = _password_problems(email, password)
    if problems:
        raise CredentialRejected(problems)

    user = User(
        email=email,
        account_id=account.id,
        password_hash=hash_password(password),
        role=role,
        email_verified=email_verified,
    )
    # Savepoint keeps the caller's session usable if the unique email index
    # rejects a row inserted by a concurrent registration.
    try:
        with db.begin_nested():
            db.add(user)
    except IntegrityError as exc:
        raise CredentialRejected([EMAIL_TAKEN_MESSAGE], field="email") from exc
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if (
        not user
        or not user.password_hash
        or not verify_password(password, user.password_hash)
    ):
        return None
    return user
