import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from rewardsapi.models.base import BaseModel, BigIntPK

# PostgreSQL은 JSONB, 그 외(sqlite 테스트)는 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


class RewardType(str, enum.Enum):
    STRIPE_CREDIT = "stripe_credit"  # 결제 계정 크레딧
    FREE_MONTHS = "free_months"  # 구독 기간 연장
    FEATURE_UNLOCK = "feature_unlock"  # 기능 잠금 해제


class RedemptionStatus(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"  # 자동 환불 없음 - 수동 검토 대상


class RewardsCatalog(BaseModel):
    __tablename__ = "rewards_catalog"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reward_value: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    min_tier: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Redemption(BaseModel):
    __tablename__ = "redemptions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    reward_id: Mapped[int] = mapped_column(
        ForeignKey("rewards_catalog.id"), nullable=False
    )
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=RedemptionStatus.PENDING.value, nullable=False
    )
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # "metadata"는 Declarative에서 예약된 이름이라 속성명만 바꿔서 매핑
    redemption_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata_json", JSONType, nullable=True
    )
