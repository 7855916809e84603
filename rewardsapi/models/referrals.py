import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rewardsapi.models.base import BaseModel, BigIntPK


class ReferralStatus(str, enum.Enum):
    PENDING = "pending"  # 가입 + 코드 귀속
    ACTIVE = "active"  # 이메일 인증 완료
    COMPLETED = "completed"  # 90일 리텐션 마일스톤 지급 완료


class ReferralTracking(BaseModel):
    """
    추천 귀속 테이블

    referred_id 유니크 - 한 사용자는 단 한 번만 귀속 가능 (first-touch)
    """

    __tablename__ = "referral_tracking"
    __table_args__ = (
        Index("idx_referral_tracking_referrer", "referrer_id"),
        Index("idx_referral_tracking_status", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    referred_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), unique=True, nullable=False
    )
    referral_code: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReferralStatus.PENDING.value, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
