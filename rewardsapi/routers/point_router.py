"""
포인트 시스템 API 라우터

사용자용 엔드포인트:
- GET /points: 내 잔액 + 원장 내역 (페이지)
- GET /points/tier: 내 티어
- GET /points/tiers: 티어 기준표

관리자용 엔드포인트:
- POST /points/admin/adjust: 포인트 조정 (양수 지급 / 음수 차감)
- GET /points/admin/balance/{user_id}: 사용자 잔액 조회
"""

from fastapi import APIRouter, Depends, Path, Query

from rewardsapi.core.auth_middleware import get_current_active_user, require_admin
from rewardsapi.deps import get_point_service, get_tier_service
from rewardsapi.schemas.points import (
    AdminPointsAdjustmentRequest,
    AdminPointsAdjustmentResponse,
    PointsBalance,
    PointsHistoryResponse,
)
from rewardsapi.schemas.tiers import TierInfo, TierListResponse
from rewardsapi.schemas.user import User as UserSchema
from rewardsapi.services.point_service import PointService
from rewardsapi.services.tier_service import TierService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("", response_model=PointsHistoryResponse)
def get_my_points(
    page: int = Query(1, ge=1, description="페이지 번호"),
    limit: int = Query(20, ge=1, le=100, description="페이지 크기"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsHistoryResponse:
    """
    내 포인트 잔액 + 원장 내역 (최신순)

    Returns:
        PointsHistoryResponse
        - balance: available / pending / lifetime
        - entries: 원장 항목
        - has_next: 다음 페이지 존재 여부
    """
    return point_service.get_history(current_user.id, page=page, limit=limit)


@router.get("/tier", response_model=TierInfo)
def get_my_tier(
    current_user: UserSchema = Depends(get_current_active_user),
    tier_service: TierService = Depends(get_tier_service),
) -> TierInfo:
    """누적 적립 포인트 기준 현재 티어와 다음 티어까지의 진행률"""
    return tier_service.get_user_tier(current_user.id)


@router.get("/tiers", response_model=TierListResponse)
def list_tiers() -> TierListResponse:
    return TierService.list_tiers()


# ---------------------------------------------------------------------------
# 관리자
# ---------------------------------------------------------------------------


@router.post("/admin/adjust", response_model=AdminPointsAdjustmentResponse)
def admin_adjust_points(
    request: AdminPointsAdjustmentRequest,
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> AdminPointsAdjustmentResponse:
    """
    관리자 포인트 조정

    - points != 0, note 필수
    - 차감 결과 잔액이 음수가 되면 400 (BALANCE_001)
    """
    logger.info(
        f"Admin {current_user.id} adjusting {request.points} points for user {request.user_id}"
    )
    return point_service.adjust_points(
        user_id=request.user_id,
        points=request.points,
        note=request.note,
        admin_id=current_user.id,
    )


@router.get("/admin/balance/{user_id}", response_model=PointsBalance)
def admin_get_user_balance(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    _: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalance:
    return point_service.get_balance(user_id)
