import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from app.models.users import InvitationStatus


class InviteIn(BaseModel):
    # Format is checked by the invitation service so errors come back per field.
    email: str = ""


class InviteOut(BaseModel):
    success: bool
    message: str | None = None


class InvitationOut(BaseModel):
    id: uuid.UUID
    email: str
    expires_at: datetime
    accepted_at: datetime | None
    created_at: datetime
    status: InvitationStatus


class RegisterIn(BaseModel):
    token: SecretStr = SecretStr("")
    password: SecretStr = SecretStr("")


class RegisterOut(BaseModel):
    user_id: uuid.UUID = Field(alias="userId")
    requires_email_verification: bool = Field(
        default=False, alias="requiresEmailVerification"
    )

    model_config = ConfigDict(populate_by_name=True)


class LoginIn(BaseModel):
    email: str
    password: SecretStr


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    account_id: uuid.UUID
    email_verified: bool

    model_config = ConfigDict(
        from_attributes=True,
    )
