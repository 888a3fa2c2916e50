"""Request/response models for the account API"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = Field(False, description="Keep the session across restarts")


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None
    username: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class SpendRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Reward units to spend")
    feature_name: str = Field(..., min_length=1)


class UpgradeRequest(BaseModel):
    subscription_id: str = Field(..., min_length=1, description="Id from the PayPal approval callback")


class ActionResponse(BaseModel):
    success: bool
    message: str
    account: dict


class FeatureAccessResponse(BaseModel):
    feature_name: str
    has_access: bool
    cost: int
    reason: Optional[str] = None
