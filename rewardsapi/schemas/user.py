from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from rewardsapi.models.user import UserRole


class User(BaseModel):
    id: int
    email: EmailStr
    nickname: str = ""
    role: str = UserRole.USER.value
    is_active: bool = True
    email_verified: bool = False
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    subscription_tier: str = "free"
    subscription_status: Optional[str] = None
    subscription_ends_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)
