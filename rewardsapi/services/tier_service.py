from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from rewardsapi.repositories.points_repository import PointsRepository
from rewardsapi.schemas.tiers import TierDefinition, TierInfo, TierListResponse

# 누적 적립 포인트 기준 티어 (오름차순)
TIER_THRESHOLDS: List[TierDefinition] = [
    TierDefinition(level=1, name="Bronze", min_points=0),
    TierDefinition(level=2, name="Silver", min_points=500),
    TierDefinition(level=3, name="Gold", min_points=1500),
    TierDefinition(level=4, name="Platinum", min_points=3000),
    TierDefinition(level=5, name="Diamond", min_points=6000),
]


def calculate_tier(
    lifetime_points: int,
) -> Tuple[TierDefinition, Optional[TierDefinition]]:
    """누적 포인트로 (현재 티어, 다음 티어) 계산 - 조건을 만족하는 마지막 티어가 현재 티어"""
    current = TIER_THRESHOLDS[0]
    next_tier: Optional[TierDefinition] = None
    for tier in TIER_THRESHOLDS:
        if lifetime_points >= tier.min_points:
            current = tier
        else:
            next_tier = tier
            break
    return current, next_tier


def tier_progress(
    lifetime_points: int,
    current: TierDefinition,
    next_tier: Optional[TierDefinition],
) -> int:
    if next_tier is None:
        return 100
    span = next_tier.min_points - current.min_points
    earned_in_tier = lifetime_points - current.min_points
    return max(0, min(100, round(earned_in_tier / span * 100)))


class TierService:
    def __init__(self, db: Session):
        self.db = db
        self.points_repo = PointsRepository(db)

    def get_user_tier(self, user_id: int) -> TierInfo:
        lifetime = self.points_repo.get_lifetime_earned(user_id)
        return self.build_tier_info(lifetime)

    @staticmethod
    def build_tier_info(lifetime_points: int) -> TierInfo:
        current, next_tier = calculate_tier(lifetime_points)
        return TierInfo(
            level=current.level,
            name=current.name,
            min_points=current.min_points,
            lifetime_points=lifetime_points,
            next_tier_at=next_tier.min_points if next_tier else None,
            next_tier_name=next_tier.name if next_tier else None,
            progress=tier_progress(lifetime_points, current, next_tier),
        )

    @staticmethod
    def list_tiers() -> TierListResponse:
        return TierListResponse(tiers=list(TIER_THRESHOLDS))
