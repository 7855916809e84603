from pydantic import BaseModel, Field


class ReferralStats(BaseModel):
    code: str
    link: str
    total_referrals: int
    active_referrals: int
    total_points_earned: int


class AttributeReferralRequest(BaseModel):
    referred_user_id: int = Field(..., gt=0, description="가입한 사용자 ID")
    referral_code: str = Field(..., min_length=1, max_length=16, description="추천 코드")


class AttributeReferralResponse(BaseModel):
    success: bool = True
    referrer_id: int
    referred_id: int
    status: str


class ReferralUserRequest(BaseModel):
    referred_user_id: int = Field(..., gt=0)


class ReferralMilestoneRequest(BaseModel):
    referred_user_id: int = Field(..., gt=0)
    milestone_key: str = Field(..., description="PAID_SUBSCRIPTION_PRO | PAID_SUBSCRIPTION_PREMIUM | RETENTION_30D | RETENTION_90D")


class ReferralMilestoneResponse(BaseModel):
    milestone_key: str
    awarded: bool


class RetentionSweepResult(BaseModel):
    processed: int = 0
    awarded_30d: int = 0
    awarded_90d: int = 0
    errors: int = 0


class ReferralVerifiedResponse(BaseModel):
    referred_user_id: int
    activated: bool = Field(..., description="pending → active 전이 여부")
