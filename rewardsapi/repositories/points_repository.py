"""
포인트 리포지토리 - 원장 테이블 접근 전담

원장 테이블(points_ledger)은 이 리포지토리를 통해서만 변경됩니다.
1. 원장 항목 추가 (earn / spend / adjustment)
2. 상태 전이 (pending → available, pending → expired)
3. 잔액 집계 (available / pending / lifetime)
4. 마일스톤 중복 확인 (user_id, source, source_id)

잔액 공식:
- available = Σ(earn + adjustment, status=available) − Σ(spend, status=available)
- pending   = Σ(earn, status=pending)
- lifetime  = Σ(earn + adjustment, status=available)
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, case, desc, func
from sqlalchemy.orm import Session

from rewardsapi.models.points import LedgerStatus, LedgerType
from rewardsapi.models.points import PointsLedger as PointsLedgerModel
from rewardsapi.repositories.base import BaseRepository
from rewardsapi.schemas.points import LedgerEntry


class PointsRepository(BaseRepository[PointsLedgerModel, LedgerEntry]):
    def __init__(self, db: Session):
        super().__init__(PointsLedgerModel, LedgerEntry, db)

    # ------------------------------------------------------------------
    # 쓰기
    # ------------------------------------------------------------------

    def create_entry(
        self,
        user_id: int,
        type: str,
        points: int,
        source: str,
        status: str = LedgerStatus.AVAILABLE.value,
        source_id: Optional[str] = None,
        note: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> LedgerEntry:
        entry = PointsLedgerModel(
            user_id=user_id,
            type=type,
            status=status,
            points=points,
            source=source,
            source_id=source_id,
            note=note,
            expires_at=expires_at,
        )
        self.add(entry)
        return self._to_schema(entry)

    def transition_status(
        self,
        user_id: int,
        source: str,
        source_id: Optional[str],
        to_status: str,
    ) -> int:
        """pending earn 항목의 상태 전이 - 전이된 행 수 반환

        pending이 아닌 항목은 절대 건드리지 않습니다.
        """
        query = self.db.query(PointsLedgerModel).filter(
            PointsLedgerModel.user_id == user_id,
            PointsLedgerModel.source == source,
            PointsLedgerModel.type == LedgerType.EARN.value,
            PointsLedgerModel.status == LedgerStatus.PENDING.value,
        )
        if source_id is not None:
            query = query.filter(PointsLedgerModel.source_id == source_id)

        updated = query.update(
            {PointsLedgerModel.status: to_status}, synchronize_session="fetch"
        )
        self.db.flush()
        return updated

    def expire_due(self, now: datetime) -> int:
        """expires_at이 지난 모든 pending 항목을 expired로 전이"""
        updated = (
            self.db.query(PointsLedgerModel)
            .filter(
                PointsLedgerModel.status == LedgerStatus.PENDING.value,
                PointsLedgerModel.expires_at.isnot(None),
                PointsLedgerModel.expires_at <= now,
            )
            .update(
                {PointsLedgerModel.status: LedgerStatus.EXPIRED.value},
                synchronize_session="fetch",
            )
        )
        self.db.flush()
        return updated

    # ------------------------------------------------------------------
    # 집계
    # ------------------------------------------------------------------

    def _sum_points(
        self,
        user_id: int,
        types: Iterable[str],
        statuses: Iterable[str],
        since: Optional[datetime] = None,
        source_prefix: Optional[str] = None,
    ) -> int:
        query = self.db.query(
            func.coalesce(func.sum(PointsLedgerModel.points), 0)
        ).filter(
            PointsLedgerModel.user_id == user_id,
            PointsLedgerModel.type.in_(list(types)),
            PointsLedgerModel.status.in_(list(statuses)),
        )
        if since is not None:
            query = query.filter(PointsLedgerModel.created_at >= since)
        if source_prefix is not None:
            query = query.filter(
                PointsLedgerModel.source.startswith(source_prefix, autoescape=True)
            )
        return int(query.scalar() or 0)

    def get_available_balance(self, user_id: int) -> int:
        signed_points = case(
            (
                PointsLedgerModel.type == LedgerType.SPEND.value,
                -PointsLedgerModel.points,
            ),
            else_=PointsLedgerModel.points,
        )
        result = (
            self.db.query(func.coalesce(func.sum(signed_points), 0))
            .filter(
                and_(
                    PointsLedgerModel.user_id == user_id,
                    PointsLedgerModel.status == LedgerStatus.AVAILABLE.value,
                )
            )
            .scalar()
        )
        return int(result or 0)

    def get_pending_points(self, user_id: int) -> int:
        return self._sum_points(
            user_id, [LedgerType.EARN.value], [LedgerStatus.PENDING.value]
        )

    def get_lifetime_earned(self, user_id: int) -> int:
        return self._sum_points(
            user_id,
            [LedgerType.EARN.value, LedgerType.ADJUSTMENT.value],
            [LedgerStatus.AVAILABLE.value],
        )

    def get_earned_since(self, user_id: int, since: datetime) -> int:
        """기간 내 적립 합계 (pending + available) - 월간 한도 계산용"""
        return self._sum_points(
            user_id,
            [LedgerType.EARN.value],
            [LedgerStatus.PENDING.value, LedgerStatus.AVAILABLE.value],
            since=since,
        )

    def get_earned_by_source_prefix(self, user_id: int, source_prefix: str) -> int:
        return self._sum_points(
            user_id,
            [LedgerType.EARN.value],
            [LedgerStatus.AVAILABLE.value],
            source_prefix=source_prefix,
        )

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def has_entry(
        self,
        user_id: int,
        source: str,
        source_id: Optional[str] = None,
        type: str = LedgerType.EARN.value,
    ) -> bool:
        """마일스톤/미션 중복 지급 확인 - 상태와 무관하게 기록이 있으면 True"""
        query = self.db.query(PointsLedgerModel.id).filter(
            PointsLedgerModel.user_id == user_id,
            PointsLedgerModel.source == source,
            PointsLedgerModel.type == type,
        )
        if source_id is not None:
            query = query.filter(PointsLedgerModel.source_id == source_id)
        return query.first() is not None

    def get_history(
        self, user_id: int, limit: int, offset: int = 0
    ) -> List[LedgerEntry]:
        entries = (
            self.db.query(PointsLedgerModel)
            .filter(PointsLedgerModel.user_id == user_id)
            .order_by(desc(PointsLedgerModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_schema(entry) for entry in entries]

    def count_entries(self, user_id: int) -> int:
        return self.count({"user_id": user_id})
