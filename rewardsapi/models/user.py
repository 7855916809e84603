from datetime import datetime
from enum import Enum
from typing import Optional, Union

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rewardsapi.models.base import BaseModel, BigIntPK

"""User role enumeration for role-based access control."""


class UserRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"  # 일반 사용자
    ADMIN = "admin"  # 관리자
    SUPER_ADMIN = "super_admin"  # 최고 관리자

    @classmethod
    def is_admin(cls, role: Union[str, "UserRole"]) -> bool:
        """관리자 권한 확인"""
        if isinstance(role, cls):
            role = role.value
        return role in [cls.ADMIN.value, cls.SUPER_ADMIN.value]


class SubscriptionTier(str, Enum):
    FREE = "free"
    BASE = "base"
    PRO = "pro"
    PREMIUM = "premium"


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_email", "email"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    nickname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # 추천 코드 - 사용자 고유 코드 / 가입 시 사용한 코드
    referral_code: Mapped[Optional[str]] = mapped_column(
        String(16), unique=True, nullable=True
    )
    referred_by: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # 구독/결제 정보 (결제 처리는 외부, 로컬에는 상태만 보관)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    subscription_tier: Mapped[str] = mapped_column(
        String(20), default=SubscriptionTier.FREE.value, nullable=False
    )
    subscription_status: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )
    subscription_ends_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(str(self.role))

    @property
    def is_paid_and_active(self) -> bool:
        """유료 플랜 + active 구독 여부 (리텐션 마일스톤 재검증용)"""
        return (
            self.subscription_tier != SubscriptionTier.FREE.value
            and self.subscription_status == "active"
        )
