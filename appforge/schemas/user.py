"""
Pydantic schemas for users, subscriptions and auth endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field


class UserRecord(BaseModel):
    """Stored user identity."""
    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User's email address")
    name: str = Field(..., description="Display name")
    photo_url: Optional[str] = Field(None, description="Profile photo URL")
    provider: str = Field(default="email", description="Auth provider (email | google)")
    firebase_uid: Optional[str] = Field(None, description="External auth id")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    class Config:
        from_attributes = True


class SubscriptionRecord(BaseModel):
    """Stored quota record, one per user."""
    id: str = Field(..., description="Subscription ID")
    user_id: str = Field(..., description="Owning user ID")
    plan: str = Field(default="free", description="Plan tier (free | pro | enterprise)")
    status: str = Field(default="active", description="Subscription status")
    generations_used: int = Field(default=0, ge=0, description="Completed generations")
    generations_limit: int = Field(default=2, ge=0, description="Generation cap for capped plans")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    class Config:
        from_attributes = True


class RegisterRequest(BaseModel):
    """Request schema for email registration."""
    email: EmailStr = Field(..., description="User's email address")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    photo_url: Optional[str] = Field(None, description="Profile photo URL")
    provider: str = Field(default="email", description="Auth provider")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "name": "Jane Doe",
                "provider": "email"
            }
        }


class FirebaseAuthRequest(BaseModel):
    """Request schema for Firebase (Google) sign-in."""
    firebase_uid: str = Field(..., min_length=1, description="Firebase user id")
    email: EmailStr = Field(..., description="User's email address")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    photo_url: Optional[str] = Field(None, description="Profile photo URL")


class AuthResponse(BaseModel):
    """Response schema for register/firebase sign-in."""
    user: UserRecord
    access_token: str
    token_type: str = "bearer"


class UsageResponse(BaseModel):
    """Response schema for GET /api/user/usage."""
    plan: str = Field(..., description="Current plan")
    status: str = Field(..., description="Subscription status")
    used: int = Field(..., description="Completed generations")
    limit: Optional[int] = Field(None, description="Generation limit (None for unlimited)")
    remaining: Optional[int] = Field(None, description="Remaining generations (None for unlimited)")
    unlimited: bool = Field(..., description="Whether the plan is uncapped")

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "free",
                "status": "active",
                "used": 1,
                "limit": 2,
                "remaining": 1,
                "unlimited": False
            }
        }
