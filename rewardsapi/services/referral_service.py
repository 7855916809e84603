"""
추천(Referral) 서비스

1. 추천 코드 발급 (8자리 대문자 hex, 충돌 시 재시도)
2. 가입 귀속 (first-touch, 자기 추천 차단)
3. 마일스톤 지급 (유료 전환 + 리텐션) - 포인트는 추천인에게 지급
4. 리텐션 스윕 (30일 / 90일, 크론)

가입/이메일 인증 시점에는 포인트를 지급하지 않습니다.
"""

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rewardsapi.config import Settings, settings as default_settings
from rewardsapi.core.exceptions import (
    ConflictError,
    NotFoundError,
    SelfReferralError,
    ValidationError,
)
from rewardsapi.models.referrals import ReferralStatus, ReferralTracking
from rewardsapi.models.user import SubscriptionTier
from rewardsapi.repositories.referral_repository import ReferralRepository
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.schemas.referrals import (
    AttributeReferralResponse,
    ReferralStats,
    RetentionSweepResult,
)
from rewardsapi.services.point_service import PointService
from rewardsapi.utils.time_utils import ensure_utc, utc_now
import logging

logger = logging.getLogger(__name__)

REFERRAL_MILESTONES: Dict[str, Dict] = {
    "PAID_SUBSCRIPTION_PRO": {"source": "referral_paid_sub_pro", "points": 600},
    "PAID_SUBSCRIPTION_PREMIUM": {"source": "referral_paid_sub_premium", "points": 1000},
    "RETENTION_30D": {"source": "referral_retention_30d", "points": 800},
    "RETENTION_90D": {"source": "referral_retention_90d", "points": 1500},
}

# 흔한 개인 메일 도메인은 같은 도메인이어도 자기 추천으로 보지 않음
COMMON_EMAIL_DOMAINS = {
    "gmail.com",
    "yahoo.com",
    "outlook.com",
    "hotmail.com",
    "icloud.com",
    "protonmail.com",
    "mail.com",
    "aol.com",
}


def get_paid_subscription_milestone_key(subscription_tier: str) -> Optional[str]:
    if subscription_tier == SubscriptionTier.PRO.value:
        return "PAID_SUBSCRIPTION_PRO"
    if subscription_tier == SubscriptionTier.PREMIUM.value:
        return "PAID_SUBSCRIPTION_PREMIUM"
    return None


def _email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].lower()


class ReferralService:
    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.settings = settings
        self.user_repo = UserRepository(db)
        self.referral_repo = ReferralRepository(db)
        self.point_service = PointService(db, settings)

    # ------------------------------------------------------------------
    # 추천 코드
    # ------------------------------------------------------------------

    def generate_referral_code(self, user_id: int) -> str:
        """새 추천 코드 발급 후 사용자에게 저장"""
        user = self.user_repo.get_model(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        for _ in range(self.settings.REFERRAL_CODE_MAX_ATTEMPTS):
            code = secrets.token_hex(4).upper()
            if self.user_repo.referral_code_exists(code):
                continue
            try:
                self.user_repo.set_referral_code(user, code)
                self.db.commit()
            except IntegrityError:
                # 조회와 저장 사이에 다른 사용자가 같은 코드를 가져간 경우
                self.db.rollback()
                user = self.user_repo.get_model(user_id)
                continue
            logger.info(f"Generated referral code for user {user_id}")
            return code

        logger.error(f"Could not generate a unique referral code for user {user_id}")
        raise ConflictError("Could not generate a unique referral code")

    def ensure_referral_code(self, user_id: int) -> str:
        user = self.user_repo.get_model(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        if user.referral_code:
            return user.referral_code
        return self.generate_referral_code(user_id)

    def get_referral_link(self, code: str) -> str:
        return f"{self.settings.APP_URL.rstrip('/')}/r/{code}"

    # ------------------------------------------------------------------
    # 귀속
    # ------------------------------------------------------------------

    def is_self_referral(self, referrer_id: int, referred_user_id: int) -> bool:
        """같은 사용자이거나 같은 회사 도메인 메일이면 자기 추천으로 판단"""
        if referrer_id == referred_user_id:
            return True

        referrer = self.user_repo.get_model(referrer_id)
        referred = self.user_repo.get_model(referred_user_id)
        if referrer is None or referred is None:
            return False

        referrer_domain = _email_domain(referrer.email)
        if not referrer_domain or referrer_domain in COMMON_EMAIL_DOMAINS:
            return False
        return referrer_domain == _email_domain(referred.email)

    def attribute_referral(
        self, referred_user_id: int, referral_code: str
    ) -> AttributeReferralResponse:
        """가입자를 추천인에게 귀속 (first-touch, 포인트 지급 없음)"""
        code = referral_code.strip().upper()
        referrer = self.user_repo.get_by_referral_code(code)
        if referrer is None:
            raise NotFoundError("Invalid referral code")

        if self.user_repo.get_model(referred_user_id) is None:
            raise NotFoundError(f"User not found: {referred_user_id}")

        if self.is_self_referral(referrer.id, referred_user_id):
            logger.warning(
                f"Self-referral blocked: referrer={referrer.id} referred={referred_user_id}"
            )
            raise SelfReferralError()

        if self.referral_repo.get_by_referred(referred_user_id) is not None:
            raise ConflictError("User already attributed")

        try:
            tracking = self.referral_repo.create_tracking(
                referrer_id=referrer.id,
                referred_id=referred_user_id,
                referral_code=code,
            )
            self.user_repo.set_referred_by(referred_user_id, code)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User already attributed")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Referral attribution failed for user {referred_user_id}: {str(e)}")
            raise

        logger.info(f"Referral attributed: referrer={referrer.id} referred={referred_user_id}")
        return AttributeReferralResponse(
            success=True,
            referrer_id=tracking.referrer_id,
            referred_id=tracking.referred_id,
            status=tracking.status,
        )

    def on_referred_user_verified(self, referred_user_id: int) -> bool:
        """이메일 인증 시 pending → active (포인트 없음)"""
        tracking = self.referral_repo.get_by_referred(referred_user_id)
        if tracking is None or tracking.status != ReferralStatus.PENDING.value:
            return False

        try:
            self.referral_repo.update_status(tracking, ReferralStatus.ACTIVE.value)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to activate referral for user {referred_user_id}: {str(e)}")
            raise

        logger.info(f"Referral activated for referred user {referred_user_id}")
        return True

    # ------------------------------------------------------------------
    # 마일스톤
    # ------------------------------------------------------------------

    def trigger_referral_milestone(
        self, referred_user_id: int, milestone_key: str
    ) -> bool:
        """추천인에게 마일스톤 포인트 지급 - 지급했으면 True

        (추천인, source, 피추천인) 조합으로 한 번만 지급하며
        월간 적립 한도를 넘는 부분은 잘라냅니다.
        """
        milestone = REFERRAL_MILESTONES.get(milestone_key)
        if milestone is None:
            raise ValidationError(
                f"Unknown referral milestone: {milestone_key}",
                {"field": "milestone_key"},
            )

        tracking = self.referral_repo.get_by_referred(referred_user_id)
        if tracking is None:
            return False

        referrer_id = tracking.referrer_id
        source_id = str(referred_user_id)
        try:
            # 추천인 행 잠금: 중복 확인 + 한도 계산 + 적립을 한 트랜잭션으로 직렬화
            self.user_repo.lock_user(referrer_id)
            if self.point_service.has_earned(referrer_id, milestone["source"], source_id):
                self.db.rollback()
                return False

            points = self.point_service.cap_to_monthly_limit(referrer_id, milestone["points"])
            if points <= 0:
                self.db.rollback()
                logger.warning(
                    f"Referral milestone {milestone_key} skipped for referrer {referrer_id}: monthly cap reached"
                )
                return False

            self.point_service.earn_points(
                user_id=referrer_id,
                points=points,
                source=milestone["source"],
                source_id=source_id,
                note=f"Referral milestone: {milestone_key} by user #{referred_user_id}",
                commit=False,
            )
            self.db.commit()
        except IntegrityError:
            # 동시 요청이 먼저 지급한 경우 (uq_points_ledger_earn_source)
            self.db.rollback()
            logger.info(
                f"Referral milestone {milestone_key} for user {referred_user_id} already awarded concurrently"
            )
            return False
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to award referral milestone {milestone_key} for user {referred_user_id}: {str(e)}"
            )
            raise

        logger.info(
            f"Referral milestone {milestone_key} awarded to referrer {referrer_id} (+{points})"
        )
        return True

    def on_subscription_paid(self, referred_user_id: int, subscription_tier: str) -> bool:
        milestone_key = get_paid_subscription_milestone_key(subscription_tier)
        if milestone_key is None:
            return False
        return self.trigger_referral_milestone(referred_user_id, milestone_key)

    def run_retention_sweep(self, now: Optional[datetime] = None) -> RetentionSweepResult:
        """30일/90일 리텐션 마일스톤 일괄 처리

        피추천인이 여전히 유료 + active 구독일 때만 지급합니다.
        행 단위 실패는 로그 후 집계만 하고 다음 행으로 진행합니다.
        """
        now = ensure_utc(now) or utc_now()
        cutoff_30d = now - timedelta(days=self.settings.RETENTION_30D_DAYS)
        cutoff_90d = now - timedelta(days=self.settings.RETENTION_90D_DAYS)

        candidates = self.referral_repo.find_created_before(
            cutoff_30d,
            [ReferralStatus.ACTIVE.value, ReferralStatus.COMPLETED.value],
        )
        result = RetentionSweepResult()
        paid_cache: Dict[int, bool] = {}

        for tracking in candidates:
            result.processed += 1
            try:
                if self._process_retention(tracking, cutoff_90d, now, paid_cache, result):
                    self.db.commit()
            except Exception as e:
                self.db.rollback()
                result.errors += 1
                logger.error(f"Retention check failed for referral {tracking.id}: {str(e)}")

        logger.info(
            f"Retention sweep: processed={result.processed} "
            f"awarded_30d={result.awarded_30d} awarded_90d={result.awarded_90d} "
            f"errors={result.errors}"
        )
        return result

    def _process_retention(
        self,
        tracking: ReferralTracking,
        cutoff_90d: datetime,
        now: datetime,
        paid_cache: Dict[int, bool],
        result: RetentionSweepResult,
    ) -> bool:
        """한 귀속 행 처리 - commit이 필요한 변경이 있으면 True"""
        referred_id = tracking.referred_id
        source_id = str(referred_id)
        dirty = False

        if not self.point_service.has_earned(
            tracking.referrer_id, REFERRAL_MILESTONES["RETENTION_30D"]["source"], source_id
        ) and self._is_still_paid(referred_id, paid_cache):
            if self.trigger_referral_milestone(referred_id, "RETENTION_30D"):
                result.awarded_30d += 1

        created_at = ensure_utc(tracking.created_at)
        if tracking.status == ReferralStatus.COMPLETED.value or created_at > cutoff_90d:
            return dirty

        source_90d = REFERRAL_MILESTONES["RETENTION_90D"]["source"]
        if self.point_service.has_earned(tracking.referrer_id, source_90d, source_id):
            # 지급은 끝났는데 상태 갱신만 누락된 경우
            self.referral_repo.update_status(tracking, ReferralStatus.COMPLETED.value, now)
            return True

        if self._is_still_paid(referred_id, paid_cache):
            if self.trigger_referral_milestone(referred_id, "RETENTION_90D"):
                result.awarded_90d += 1
                self.referral_repo.update_status(
                    tracking, ReferralStatus.COMPLETED.value, now
                )
                dirty = True
        return dirty

    def _is_still_paid(self, referred_id: int, cache: Dict[int, bool]) -> bool:
        if referred_id not in cache:
            user = self.user_repo.get_model(referred_id)
            cache[referred_id] = bool(user and user.is_paid_and_active)
        return cache[referred_id]

    # ------------------------------------------------------------------
    # 통계
    # ------------------------------------------------------------------

    def get_referral_stats(self, user_id: int) -> ReferralStats:
        code = self.ensure_referral_code(user_id)
        return ReferralStats(
            code=code,
            link=self.get_referral_link(code),
            total_referrals=self.referral_repo.count_by_referrer(user_id),
            active_referrals=self.referral_repo.count_by_referrer(
                user_id,
                [ReferralStatus.ACTIVE.value, ReferralStatus.COMPLETED.value],
            ),
            total_points_earned=self.point_service.points_repo.get_earned_by_source_prefix(
                user_id, "referral_"
            ),
        )
