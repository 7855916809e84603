"""
리워드 API 라우터

- GET /rewards/catalog: 카탈로그 + 교환 가능 여부
- POST /rewards/redeem: 리워드 교환
- GET /rewards/my-redemptions: 내 교환 내역
- GET /rewards/admin/failed: 지급 실패 건 (수동 검토 대상, 관리자)
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from rewardsapi.core.auth_middleware import get_current_active_user, require_admin
from rewardsapi.deps import get_reward_service
from rewardsapi.schemas.rewards import (
    RedemptionHistoryItem,
    RedemptionHistoryResponse,
    RedemptionResult,
    RewardCatalogResponse,
    RewardRedemptionRequest,
)
from rewardsapi.schemas.user import User as UserSchema
from rewardsapi.services.reward_service import RewardService

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/catalog", response_model=RewardCatalogResponse)
def get_reward_catalog(
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardCatalogResponse:
    return reward_service.get_rewards_catalog(current_user.id)


@router.post("/redeem", response_model=RedemptionResult)
def redeem_reward(
    request: RewardRedemptionRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RedemptionResult:
    """
    리워드 교환

    HTTP Status:
        200: 교환 + 지급 완료
        400: 포인트 부족 (BALANCE_001) / 티어 부족 (TIER_REQUIRED)
        404: 리워드 없음 또는 비활성
        502: 지급 실패 (REDEMPTION_FAILED) - 포인트는 차감된 상태로 검토 대기
    """
    return reward_service.redeem_reward(current_user.id, request.reward_id)


@router.get("/my-redemptions", response_model=RedemptionHistoryResponse)
def get_my_redemptions(
    limit: int = Query(20, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RedemptionHistoryResponse:
    return reward_service.get_user_redemptions(current_user.id, limit=limit, offset=offset)


@router.get("/admin/failed", response_model=List[RedemptionHistoryItem])
def get_failed_redemptions(
    limit: int = Query(100, ge=1, le=500),
    _: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> List[RedemptionHistoryItem]:
    return reward_service.get_failed_redemptions(limit)
