from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rewardsapi.config import Settings, settings as default_settings
from rewardsapi.core.exceptions import (
    FulfillmentError,
    InsufficientBalanceError,
    NotFoundError,
    TierRequiredError,
)
from rewardsapi.models.rewards import Redemption, RewardsCatalog, RewardType
from rewardsapi.repositories.rewards_repository import RewardsRepository
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.schemas.rewards import (
    RedemptionHistoryItem,
    RedemptionHistoryResponse,
    RedemptionResult,
    RewardCatalogResponse,
    RewardItem,
)
from rewardsapi.services.payment_service import StripePaymentGateway
from rewardsapi.services.point_service import PointService
from rewardsapi.services.tier_service import TierService
from rewardsapi.utils.time_utils import add_months, ensure_utc, utc_now
import logging

logger = logging.getLogger(__name__)

DEFAULT_REWARDS: List[Dict[str, Any]] = [
    {
        "title": "$10 Account Credit",
        "description": "Apply a $10 credit to your next invoice",
        "points_cost": 500,
        "reward_type": RewardType.STRIPE_CREDIT.value,
        "reward_value": {"amount_cents": 1000},
        "min_tier": 1,
        "sort_order": 1,
    },
    {
        "title": "1 Month Base Plan Free",
        "description": "Get one month of the Base plan for free",
        "points_cost": 500,
        "reward_type": RewardType.FREE_MONTHS.value,
        "reward_value": {"months": 1, "tier": "base"},
        "min_tier": 1,
        "sort_order": 2,
    },
    {
        "title": "$25 Account Credit",
        "description": "Apply a $25 credit to your next invoice",
        "points_cost": 1000,
        "reward_type": RewardType.STRIPE_CREDIT.value,
        "reward_value": {"amount_cents": 2500},
        "min_tier": 2,
        "sort_order": 3,
    },
    {
        "title": "1 Month Premium Free",
        "description": "Get one month of the Premium plan for free",
        "points_cost": 1500,
        "reward_type": RewardType.FREE_MONTHS.value,
        "reward_value": {"months": 1, "tier": "premium"},
        "min_tier": 3,
        "sort_order": 4,
    },
    {
        "title": "$75 Account Credit",
        "description": "Apply a $75 credit to your next invoice",
        "points_cost": 3000,
        "reward_type": RewardType.STRIPE_CREDIT.value,
        "reward_value": {"amount_cents": 7500},
        "min_tier": 3,
        "sort_order": 5,
    },
    {
        "title": "3 Months Base Plan Free",
        "description": "Get three months of the Base plan for free",
        "points_cost": 3000,
        "reward_type": RewardType.FREE_MONTHS.value,
        "reward_value": {"months": 3, "tier": "base"},
        "min_tier": 3,
        "sort_order": 6,
    },
    {
        "title": "6 Months Premium Free",
        "description": "Get six months of the Premium plan for free",
        "points_cost": 6000,
        "reward_type": RewardType.FREE_MONTHS.value,
        "reward_value": {"months": 6, "tier": "premium"},
        "min_tier": 5,
        "sort_order": 7,
    },
    {
        "title": "$200 Account Credit",
        "description": "Apply a $200 credit to your account",
        "points_cost": 6000,
        "reward_type": RewardType.STRIPE_CREDIT.value,
        "reward_value": {"amount_cents": 20000},
        "min_tier": 5,
        "sort_order": 8,
    },
]


class RewardService:
    """리워드 카탈로그 / 교환 서비스

    교환 흐름:
    1. 리워드 확인 (존재 + 활성)
    2. 티어 확인
    3. 포인트 차감 + 교환 기록(pending) - 하나의 트랜잭션
    4. 타입별 지급 처리 - 실패 시 failed로 격리, 포인트는 자동 환불하지 않음
    """

    def __init__(
        self,
        db: Session,
        payment_gateway: Optional[StripePaymentGateway] = None,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.settings = settings
        self.payment_gateway = payment_gateway or StripePaymentGateway(settings)
        self.rewards_repo = RewardsRepository(db)
        self.user_repo = UserRepository(db)
        self.point_service = PointService(db, settings)
        self.tier_service = TierService(db)

    def get_rewards_catalog(self, user_id: int) -> RewardCatalogResponse:
        """활성 리워드 목록 + 사용자별 교환 가능 여부 (참고용)"""
        available = self.point_service.get_available_balance(user_id)
        tier = self.tier_service.get_user_tier(user_id)

        items = [
            RewardItem(
                id=reward.id,
                title=reward.title,
                description=reward.description,
                points_cost=reward.points_cost,
                reward_type=reward.reward_type,
                reward_value=reward.reward_value or {},
                min_tier=reward.min_tier,
                sort_order=reward.sort_order,
                can_redeem=tier.level >= reward.min_tier
                and available >= reward.points_cost,
            )
            for reward in self.rewards_repo.get_active_catalog()
        ]
        return RewardCatalogResponse(
            rewards=items,
            total_count=len(items),
            available_points=available,
            tier_level=tier.level,
        )

    def redeem_reward(self, user_id: int, reward_id: int) -> RedemptionResult:
        reward = self.rewards_repo.get_reward(reward_id)
        if reward is None or not reward.is_active:
            raise NotFoundError("Reward not found or inactive")

        tier = self.tier_service.get_user_tier(user_id)
        if tier.level < reward.min_tier:
            raise TierRequiredError(reward.min_tier, tier.level)

        try:
            self.point_service.spend_points(
                user_id,
                reward.points_cost,
                source="redemption",
                source_id=str(reward.id),
                commit=False,
            )
            redemption = self.rewards_repo.create_redemption(
                user_id=user_id, reward_id=reward.id, points_spent=reward.points_cost
            )
            self.db.commit()
        except (InsufficientBalanceError, NotFoundError):
            # spend_points에서 이미 롤백됨
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to redeem reward {reward_id} for user {user_id}: {str(e)}")
            raise

        try:
            metadata = self._fulfill(user_id, redemption, reward)
            self.rewards_repo.mark_fulfilled(redemption, metadata, utc_now())
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Reward fulfillment failed: redemption={redemption.id} "
                f"user={user_id} type={reward.reward_type}: {str(e)}"
            )
            self._quarantine(redemption.id, str(e))
            raise FulfillmentError(redemption.id)

        logger.info(
            f"User {user_id} redeemed reward {reward.id} for {reward.points_cost} points "
            f"(redemption {redemption.id})"
        )
        return RedemptionResult(
            success=True,
            redemption_id=redemption.id,
            status=redemption.status,
            points_spent=redemption.points_spent,
            message=f"Redeemed {reward.title}",
        )

    def _quarantine(self, redemption_id: int, error: str) -> None:
        """지급 실패 건을 failed로 표시 (수동 검토 대상)"""
        redemption = self.db.get(Redemption, redemption_id)
        self.rewards_repo.mark_failed(redemption, error)
        self.db.commit()

    # ------------------------------------------------------------------
    # 지급 처리
    # ------------------------------------------------------------------

    def _fulfill(
        self, user_id: int, redemption: Redemption, reward: RewardsCatalog
    ) -> Dict[str, Any]:
        value = reward.reward_value or {}
        if reward.reward_type == RewardType.STRIPE_CREDIT.value:
            return self._fulfill_stripe_credit(user_id, redemption, value)
        if reward.reward_type == RewardType.FREE_MONTHS.value:
            return self._fulfill_free_months(user_id, value)
        if reward.reward_type == RewardType.FEATURE_UNLOCK.value:
            return {"type": RewardType.FEATURE_UNLOCK.value, "feature": str(value.get("feature", ""))}
        raise ValueError(f"Unknown reward type: {reward.reward_type}")

    def _fulfill_stripe_credit(
        self, user_id: int, redemption: Redemption, value: Dict[str, Any]
    ) -> Dict[str, Any]:
        amount_cents = int(value["amount_cents"])
        metadata: Dict[str, Any] = {
            "type": RewardType.STRIPE_CREDIT.value,
            "amount_cents": amount_cents,
        }

        user = self.user_repo.get_model(user_id)
        if user is None or not user.stripe_customer_id:
            # 결제 고객이 아니면 크레딧 적용 없이 기록만 남김
            logger.info(f"User {user_id} has no payment customer, credit not applied")
            return metadata

        metadata["transaction_id"] = self.payment_gateway.create_customer_credit(
            customer_id=user.stripe_customer_id,
            amount_cents=amount_cents,
            description=f"ReimburseMe reward redemption #{redemption.id}",
            idempotency_key=f"redemption-{redemption.id}",
        )
        return metadata

    def _fulfill_free_months(self, user_id: int, value: Dict[str, Any]) -> Dict[str, Any]:
        months = int(value["months"])
        user = self.user_repo.get_model(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        now = utc_now()
        current_end = ensure_utc(user.subscription_ends_at)
        base = current_end if current_end and current_end > now else now
        new_end = add_months(base, months)
        self.user_repo.set_subscription_end(user, new_end)

        return {
            "type": RewardType.FREE_MONTHS.value,
            "months": months,
            "newEndDate": new_end.isoformat(),
        }

    # ------------------------------------------------------------------
    # 조회 / 관리
    # ------------------------------------------------------------------

    def get_user_redemptions(
        self, user_id: int, limit: int = 20, offset: int = 0
    ) -> RedemptionHistoryResponse:
        limit = max(1, min(limit, 100))
        history = self.rewards_repo.get_user_redemptions(user_id, limit, offset)
        total_count = self.rewards_repo.count_user_redemptions(user_id)
        return RedemptionHistoryResponse(
            history=history,
            total_count=total_count,
            has_next=offset + len(history) < total_count,
        )

    def get_failed_redemptions(self, limit: int = 100) -> List[RedemptionHistoryItem]:
        return self.rewards_repo.get_failed_redemptions(limit)

    def seed_rewards_catalog(self) -> int:
        """기본 리워드 추가 (title 기준으로 없는 것만) - 추가된 수 반환"""
        created = 0
        try:
            for reward in DEFAULT_REWARDS:
                if self.rewards_repo.get_reward_by_title(reward["title"]) is None:
                    self.rewards_repo.create_reward(is_active=True, **reward)
                    created += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to seed rewards catalog: {str(e)}")
            raise

        logger.info(f"Seeded {created} rewards")
        return created
