from fastapi import APIRouter, Depends

from rewardsapi.core.auth_middleware import get_current_active_user, require_admin
from rewardsapi.core.exceptions import AuthorizationError
from rewardsapi.deps import get_referral_service
from rewardsapi.schemas.referrals import (
    AttributeReferralRequest,
    AttributeReferralResponse,
    ReferralMilestoneRequest,
    ReferralMilestoneResponse,
    ReferralStats,
    ReferralUserRequest,
    ReferralVerifiedResponse,
)
from rewardsapi.schemas.user import User as UserSchema
from rewardsapi.services.referral_service import ReferralService

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.get("", response_model=ReferralStats)
def get_my_referral_stats(
    current_user: UserSchema = Depends(get_current_active_user),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralStats:
    """내 추천 코드/링크 + 추천 현황 (코드가 없으면 발급)"""
    return referral_service.get_referral_stats(current_user.id)


@router.post("/attribute", response_model=AttributeReferralResponse)
def attribute_referral(
    request: AttributeReferralRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    referral_service: ReferralService = Depends(get_referral_service),
) -> AttributeReferralResponse:
    """
    가입자 추천 귀속

    일반 사용자는 본인만 귀속할 수 있고, 관리자(가입 처리 시스템)는 대상 지정 가능.
    """
    if request.referred_user_id != current_user.id and not current_user.is_admin:
        raise AuthorizationError("Cannot attribute a referral for another user")
    return referral_service.attribute_referral(
        request.referred_user_id, request.referral_code
    )


@router.post("/verified", response_model=ReferralVerifiedResponse)
def mark_referred_user_verified(
    request: ReferralUserRequest,
    _: UserSchema = Depends(require_admin),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralVerifiedResponse:
    activated = referral_service.on_referred_user_verified(request.referred_user_id)
    return ReferralVerifiedResponse(
        referred_user_id=request.referred_user_id, activated=activated
    )


@router.post("/milestone", response_model=ReferralMilestoneResponse)
def trigger_referral_milestone(
    request: ReferralMilestoneRequest,
    _: UserSchema = Depends(require_admin),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralMilestoneResponse:
    """마일스톤 트리거 (결제 웹훅 등 내부 시스템용) - 이미 지급된 경우 awarded=False"""
    awarded = referral_service.trigger_referral_milestone(
        request.referred_user_id, request.milestone_key
    )
    return ReferralMilestoneResponse(milestone_key=request.milestone_key, awarded=awarded)
