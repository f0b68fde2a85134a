import os
from collections.abc import Generator

os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("INVITE_BASE_URL", "https://frontend.local")
os.environ.setdefault("SMTP_HOST", "smtp.local")
os.environ.setdefault("MAIL_FROM", "noreply@frontend.local")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool, create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.core.database import Base, get_db  # noqa: E402
from app.core.security import create_access, hash_password  # noqa: E402
from app.main import app  # noqa: E402
from app.models.users import ROLE_CONTRIBUTOR, ROLE_OWNER, Account, User  # noqa: E402
from app.services import invitation_service  # noqa: E402

OWNER_PASSWORD = "Owner@Pass123"


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    connection = engine.connect()
    trans = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, autoflush=False, expire_on_commit=False, future=True
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def client(db_session) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch) -> list[dict]:
    captured: list[dict] = []

    def fake_send(to_email: str, link: str, ttl_hours: int) -> None:
        captured.append({"to_email": to_email, "link": link, "ttl_hours": ttl_hours})

    monkeypatch.setattr(invitation_service, "send_invitation_email", fake_send)
    return captured


def create_test_user(
    db: Session,
    email: str = "owner@example.com",
    role: str = ROLE_OWNER,
    account: Account | None = None,
) -> User:
    if account is None:
        account = Account(name=email.split("@")[0])
        db.add(account)
        db.flush()
    user = User(
        email=email,
        account_id=account.id,
        password_hash=hash_password(OWNER_PASSWORD),
        role=role,
        email_verified=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db_session) -> User:
    return create_test_user(db_session)


@pytest.fixture
def contributor(db_session, owner) -> User:
    return create_test_user(
        db_session,
        email="helper@example.com",
        role=ROLE_CONTRIBUTOR,
        account=owner.account,
    )


def _login_cookie(client: TestClient, user: User) -> None:
    token = create_access(str(user.id), user.role, str(user.account_id))
    client.cookies.set("access_token", token, path="/")


@pytest.fixture
def other_owner(db_session) -> User:
    return create_test_user(db_session, email="someone.else@example.org")


@pytest.fixture
def owner_client(client, owner) -> tuple[TestClient, User]:
    _login_cookie(client, owner)
    return client, owner


@pytest.fixture
def contributor_client(client, contributor) -> tuple[TestClient, User]:
    _login_cookie(client, contributor)
    return client, contributor


@pytest.fixture
def owner_password() -> str:
    return OWNER_PASSWORD
