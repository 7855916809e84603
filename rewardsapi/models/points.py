"""
포인트 시스템 데이터 모델

이 파일은 사용자 포인트의 모든 변동 내역을 저장하는 원장(Ledger) 테이블을 정의합니다.
잔액은 별도 카운터로 저장하지 않고 항상 이 테이블에서 집계합니다.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from rewardsapi.models.base import BaseModel, BigIntPK


class LedgerType(str, enum.Enum):
    EARN = "earn"
    SPEND = "spend"
    ADJUSTMENT = "adjustment"


class LedgerStatus(str, enum.Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    EXPIRED = "expired"


class PointsLedger(BaseModel):
    """
    포인트 원장 테이블 - 모든 포인트 변동 내역을 저장

    원칙:
    1. 불변성(Immutable): status 전이(pending→available, pending→expired) 외에는 수정하지 않음
    2. 단일 테이블: pending/available/expired를 status 컬럼으로 구분해 잔액 집계를 한 번의 스캔으로 처리
    3. 중복 방지: (user_id, source, source_id) 조합으로 마일스톤 지급 여부를 확인

    points 부호:
    - earn / spend 는 항상 양수로 저장 (부호는 type으로 결정)
    - adjustment 는 관리자 입력값 그대로 (음수 = 차감)
    """

    __tablename__ = "points_ledger"
    __table_args__ = (
        Index("idx_points_ledger_user_status", "user_id", "status"),
        Index("idx_points_ledger_source", "user_id", "source", "source_id"),
        # 마일스톤/미션 적립은 (user_id, source, source_id) 당 1건
        Index(
            "uq_points_ledger_earn_source",
            "user_id",
            "source",
            "source_id",
            unique=True,
            postgresql_where=text("type = 'earn' AND source_id IS NOT NULL"),
            sqlite_where=text("type = 'earn' AND source_id IS NOT NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LedgerStatus.AVAILABLE.value
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    # 지급/차감 원인 태그 (예: "mission_first_upload", "referral_retention_30d", "redemption", "admin")
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
