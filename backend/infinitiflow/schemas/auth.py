from pydantic import EmailStr, Field, field_validator
from typing import Optional, Dict, Any

from infinitiflow.schemas.common import CamelModel, RequestModel
from infinitiflow.schemas.user import CompanyInfo, UserResponse


def _normalize_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserRegister(RequestModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    company: Optional[CompanyInfo] = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserLogin(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class EmailRequest(RequestModel):
    """Body for forgot-password and resend-verification"""
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class ResetPasswordRequest(RequestModel):
    password: str = Field(..., min_length=8)


class ChangePasswordRequest(RequestModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class RefreshTokenRequest(RequestModel):
    refresh_token: Optional[str] = None


class UserData(CamelModel):
    user: UserResponse


class AuthResponse(CamelModel):
    """Envelope returned whenever a fresh token pair is issued"""
    status: str = "success"
    message: Optional[str] = None
    token: str
    refresh_token: str
    data: UserData


class TokenPairResponse(CamelModel):
    status: str = "success"
    token: str
    refresh_token: str


class MeResponse(CamelModel):
    status: str = "success"
    data: Dict[str, Any]
