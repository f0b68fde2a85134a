from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, require_owner
from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import create_access
from app.models.users import User, utcnow
from app.schemas.users import (
    InvitationOut,
    InviteIn,
    InviteOut,
    LoginIn,
    RegisterIn,
    RegisterOut,
    TokenOut,
    UserOut,
)
from app.services import credential_service, invitation_service, registration_service
from app.services.validation import normalize_email

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


@router.post("/invite", response_model=InviteOut)
def send_invitation(
    payload: InviteIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = invitation_service.send_invitation(db, current_user, payload.email)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": result.error},
        )
    return InviteOut(success=True)


@router.get("/invitations", response_model=list[InvitationOut])
def list_invitations(
    db: Session = Depends(get_db),
    owner: User = Depends(require_owner),
) -> list[InvitationOut]:
    now = utcnow()
    return [
        InvitationOut(
            id=inv.id,
            email=inv.email,
            expires_at=inv.expires_at,
            accepted_at=inv.accepted_at,
            created_at=inv.created_at,
            status=inv.status(now),
        )
        for inv in invitation_service.list_invitations(db, owner)
    ]


@router.post(
    "/register",
    response_model=RegisterOut,
    status_code=status.HTTP_201_CREATED,
)
def register(payload: RegisterIn, db: Session = Depends(get_db)) -> RegisterOut:
    result = registration_service.register_with_invitation(
        db,
        payload.token.get_secret_value(),
        payload.password.get_secret_value(),
    )
    return RegisterOut(
        user_id=result.user_id,
        requires_email_verification=result.requires_email_verification,
    )


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = credential_service.authenticate(
        db, normalize_email(payload.email), payload.password.get_secret_value()
    )
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access = create_access(str(user.id), user.role, str(user.account_id))

    resp = JSONResponse(TokenOut(access_token=access).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(
        key="access_token",
        value=access,
        httponly=True,
        secure=settings.app_env == "production",
        samesite="lax",
        max_age=settings.access_min * 60,
        path="/",
    )
    return resp


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
