from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from rewardsapi.models.rewards import Redemption, RedemptionStatus, RewardsCatalog
from rewardsapi.repositories.base import BaseRepository
from rewardsapi.schemas.rewards import RedemptionHistoryItem


class RewardsRepository(BaseRepository[Redemption, RedemptionHistoryItem]):
    """리워드 카탈로그 + 교환 기록 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(Redemption, RedemptionHistoryItem, db)

    def _to_history_item(self, redemption: Redemption) -> RedemptionHistoryItem:
        return RedemptionHistoryItem(
            id=redemption.id,
            user_id=redemption.user_id,
            reward_id=redemption.reward_id,
            points_spent=redemption.points_spent,
            status=redemption.status,
            fulfilled_at=redemption.fulfilled_at,
            metadata=redemption.redemption_metadata,
            created_at=redemption.created_at,
        )

    # ------------------------------------------------------------------
    # 카탈로그
    # ------------------------------------------------------------------

    def get_active_catalog(self) -> List[RewardsCatalog]:
        return (
            self.db.query(RewardsCatalog)
            .filter(RewardsCatalog.is_active.is_(True))
            .order_by(RewardsCatalog.sort_order, RewardsCatalog.id)
            .all()
        )

    def get_reward(self, reward_id: int) -> Optional[RewardsCatalog]:
        return self.db.get(RewardsCatalog, reward_id)

    def get_reward_by_title(self, title: str) -> Optional[RewardsCatalog]:
        return (
            self.db.query(RewardsCatalog).filter(RewardsCatalog.title == title).first()
        )

    def create_reward(self, **fields: Any) -> RewardsCatalog:
        return self.add(RewardsCatalog(**fields))

    # ------------------------------------------------------------------
    # 교환 기록
    # ------------------------------------------------------------------

    def create_redemption(
        self, user_id: int, reward_id: int, points_spent: int
    ) -> Redemption:
        return self.add(
            Redemption(
                user_id=user_id,
                reward_id=reward_id,
                points_spent=points_spent,
                status=RedemptionStatus.PENDING.value,
            )
        )

    def mark_fulfilled(
        self,
        redemption: Redemption,
        metadata: Dict[str, Any],
        fulfilled_at: datetime,
    ) -> Redemption:
        redemption.status = RedemptionStatus.FULFILLED.value
        redemption.fulfilled_at = fulfilled_at
        redemption.redemption_metadata = metadata
        self.db.flush()
        return redemption

    def mark_failed(self, redemption: Redemption, error: str) -> Redemption:
        redemption.status = RedemptionStatus.FAILED.value
        redemption.redemption_metadata = {"error": error}
        self.db.flush()
        return redemption

    def get_user_redemptions(
        self, user_id: int, limit: int, offset: int = 0
    ) -> List[RedemptionHistoryItem]:
        redemptions = (
            self.db.query(Redemption)
            .filter(Redemption.user_id == user_id)
            .order_by(desc(Redemption.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_history_item(r) for r in redemptions]

    def count_user_redemptions(self, user_id: int) -> int:
        return self.count({"user_id": user_id})

    def get_failed_redemptions(self, limit: int) -> List[RedemptionHistoryItem]:
        redemptions = (
            self.db.query(Redemption)
            .filter(Redemption.status == RedemptionStatus.FAILED.value)
            .order_by(desc(Redemption.id))
            .limit(limit)
            .all()
        )
        return [self._to_history_item(r) for r in redemptions]
