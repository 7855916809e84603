"""
크론 엔드포인트 - 외부 스케줄러가 호출

CRON_SECRET이 설정되어 있으면 Authorization: Bearer <CRON_SECRET> 필요
"""

from fastapi import APIRouter, Depends

from rewardsapi.core.security import verify_cron_secret
from rewardsapi.deps import get_point_service, get_referral_service
from rewardsapi.schemas.points import ExpireSweepResult
from rewardsapi.schemas.referrals import RetentionSweepResult
from rewardsapi.services.point_service import PointService
from rewardsapi.services.referral_service import ReferralService

router = APIRouter(
    prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)]
)


@router.post("/retention-check", response_model=RetentionSweepResult)
def run_retention_check(
    referral_service: ReferralService = Depends(get_referral_service),
) -> RetentionSweepResult:
    """30일/90일 리텐션 마일스톤 일괄 지급 (일 1회)"""
    return referral_service.run_retention_sweep()


@router.post("/expire-points", response_model=ExpireSweepResult)
def run_expire_points(
    point_service: PointService = Depends(get_point_service),
) -> ExpireSweepResult:
    return ExpireSweepResult(expired=point_service.expire_due_entries())
