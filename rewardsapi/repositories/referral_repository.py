from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from rewardsapi.models.referrals import ReferralStatus, ReferralTracking
from rewardsapi.repositories.base import BaseRepository


class ReferralTrackingRecord(BaseModel):
    """귀속 기록 읽기 전용 스키마 (상태 변경은 ORM 인스턴스로)"""

    id: int
    referrer_id: int
    referred_id: int
    referral_code: str
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReferralRepository(BaseRepository[ReferralTracking, ReferralTrackingRecord]):
    def __init__(self, db: Session):
        super().__init__(ReferralTracking, ReferralTrackingRecord, db)

    def get_by_referred(self, referred_id: int) -> Optional[ReferralTracking]:
        return (
            self.db.query(ReferralTracking)
            .filter(ReferralTracking.referred_id == referred_id)
            .first()
        )

    def create_tracking(
        self, referrer_id: int, referred_id: int, referral_code: str
    ) -> ReferralTrackingRecord:
        """귀속 기록 추가 - referred_id 유니크 위반 시 IntegrityError 전파"""
        tracking = self.add(
            ReferralTracking(
                referrer_id=referrer_id,
                referred_id=referred_id,
                referral_code=referral_code,
                status=ReferralStatus.PENDING.value,
            )
        )
        return self._to_schema(tracking)

    def update_status(
        self,
        tracking: ReferralTracking,
        status: str,
        completed_at: Optional[datetime] = None,
    ) -> ReferralTracking:
        tracking.status = status
        if completed_at is not None:
            tracking.completed_at = completed_at
        self.db.flush()
        return tracking

    def find_created_before(
        self, cutoff: datetime, statuses: Iterable[str]
    ) -> List[ReferralTracking]:
        """리텐션 스윕 대상 조회 (cutoff 이전 생성 + 상태 필터)"""
        return (
            self.db.query(ReferralTracking)
            .filter(
                ReferralTracking.status.in_(list(statuses)),
                ReferralTracking.created_at <= cutoff,
            )
            .order_by(ReferralTracking.id)
            .all()
        )

    def count_by_referrer(
        self, referrer_id: int, statuses: Optional[Iterable[str]] = None
    ) -> int:
        query = self.db.query(ReferralTracking).filter(
            ReferralTracking.referrer_id == referrer_id
        )
        if statuses is not None:
            query = query.filter(ReferralTracking.status.in_(list(statuses)))
        return query.count()
