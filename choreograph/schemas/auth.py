from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: str

    class Config:
        from_attributes = True


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @validator("email")
    def normalize_email(cls, value):
        return value.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)

    @validator("email")
    def normalize_email(cls, value):
        return value.lower()


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")

    class Config:
        populate_by_name = True


class AccessTokenResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")

    class Config:
        populate_by_name = True


class AuthResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    user: UserResponse

    class Config:
        populate_by_name = True
