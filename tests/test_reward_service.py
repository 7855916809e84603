from datetime import timedelta

import pytest

from rewardsapi.core.exceptions import (
    FulfillmentError,
    InsufficientBalanceError,
    NotFoundError,
    TierRequiredError,
)
from rewardsapi.models.points import LedgerType, PointsLedger
from rewardsapi.models.rewards import Redemption, RewardsCatalog
from rewardsapi.services.reward_service import DEFAULT_REWARDS, RewardService
from rewardsapi.utils.time_utils import add_months, ensure_utc, utc_now


@pytest.fixture
def reward_service(db, payment_gateway):
    service = RewardService(db, payment_gateway=payment_gateway)
    service.seed_rewards_catalog()
    return service


def _reward_id(db, title):
    return db.query(RewardsCatalog).filter(RewardsCatalog.title == title).one().id


class TestCatalog:
    def test_seed_is_idempotent(self, db, reward_service):
        assert reward_service.seed_rewards_catalog() == 0
        assert db.query(RewardsCatalog).count() == len(DEFAULT_REWARDS)

    def test_catalog_can_redeem_flags(self, reward_service, make_user):
        # Given - Silver (600 누적), 사용 가능 600
        user = make_user()
        reward_service.point_service.earn_points(user.id, 600, "admin_seed")

        # When
        catalog = reward_service.get_rewards_catalog(user.id)

        # Then
        assert catalog.total_count == len(DEFAULT_REWARDS)
        assert catalog.available_points == 600
        assert catalog.tier_level == 2
        flags = {item.title: item.can_redeem for item in catalog.rewards}
        assert flags["$10 Account Credit"] is True
        assert flags["$25 Account Credit"] is False  # 잔액 부족
        assert flags["1 Month Premium Free"] is False  # 티어 부족
        assert [item.sort_order for item in catalog.rewards] == sorted(
            item.sort_order for item in catalog.rewards
        )

    def test_inactive_rewards_hidden(self, db, reward_service, make_user):
        user = make_user()
        reward = db.get(RewardsCatalog, _reward_id(db, "$10 Account Credit"))
        reward.is_active = False
        db.commit()

        titles = [r.title for r in reward_service.get_rewards_catalog(user.id).rewards]

        assert "$10 Account Credit" not in titles


class TestRedeem:
    """리워드 교환 테스트"""

    def test_stripe_credit(self, db, reward_service, payment_gateway, make_user):
        # Given
        user = make_user(stripe_customer_id="cus_123")
        reward_service.point_service.earn_points(user.id, 500, "admin_seed")
        reward_id = _reward_id(db, "$10 Account Credit")

        # When
        result = reward_service.redeem_reward(user.id, reward_id)

        # Then
        assert result.success is True
        assert result.status == "fulfilled"
        assert result.points_spent == 500
        payment_gateway.create_customer_credit.assert_called_once_with(
            customer_id="cus_123",
            amount_cents=1000,
            description=f"ReimburseMe reward redemption #{result.redemption_id}",
            idempotency_key=f"redemption-{result.redemption_id}",
        )
        redemption = db.get(Redemption, result.redemption_id)
        assert redemption.redemption_metadata["type"] == "stripe_credit"
        assert redemption.redemption_metadata["amount_cents"] == 1000
        assert redemption.fulfilled_at is not None
        assert reward_service.point_service.get_available_balance(user.id) == 0

    def test_stripe_credit_without_customer(self, db, reward_service, payment_gateway, make_user):
        user = make_user()
        reward_service.point_service.earn_points(user.id, 500, "admin_seed")

        result = reward_service.redeem_reward(user.id, _reward_id(db, "$10 Account Credit"))

        assert result.status == "fulfilled"
        payment_gateway.create_customer_credit.assert_not_called()

    def test_free_months_stack_on_future_end(self, db, reward_service, make_user):
        """구독 종료일이 미래면 그 날짜부터 연장"""
        # Given
        current_end = utc_now() + timedelta(days=10)
        user = make_user(subscription_ends_at=current_end)
        reward_service.point_service.earn_points(user.id, 500, "admin_seed")

        # When
        result = reward_service.redeem_reward(user.id, _reward_id(db, "1 Month Base Plan Free"))

        # Then
        assert result.status == "fulfilled"
        db.expire_all()
        refreshed = reward_service.user_repo.get_model(user.id)
        assert ensure_utc(refreshed.subscription_ends_at) == add_months(current_end, 1)
        redemption = db.get(Redemption, result.redemption_id)
        assert redemption.redemption_metadata["months"] == 1

    def test_free_months_from_now_when_lapsed(self, db, reward_service, make_user):
        user = make_user(subscription_ends_at=utc_now() - timedelta(days=100))
        reward_service.point_service.earn_points(user.id, 500, "admin_seed")
        before = utc_now()

        reward_service.redeem_reward(user.id, _reward_id(db, "1 Month Base Plan Free"))

        db.expire_all()
        new_end = ensure_utc(reward_service.user_repo.get_model(user.id).subscription_ends_at)
        assert new_end >= add_months(before, 1)

    def test_feature_unlock(self, db, reward_service, make_user):
        # Given
        reward = reward_service.rewards_repo.create_reward(
            title="Bulk Export",
            points_cost=100,
            reward_type="feature_unlock",
            reward_value={"feature": "bulk_export"},
            min_tier=1,
            sort_order=9,
            is_active=True,
        )
        db.commit()
        user = make_user()
        reward_service.point_service.earn_points(user.id, 100, "admin_seed")

        # When
        result = reward_service.redeem_reward(user.id, reward.id)

        # Then
        redemption = db.get(Redemption, result.redemption_id)
        assert redemption.redemption_metadata == {
            "type": "feature_unlock",
            "feature": "bulk_export",
        }

    def test_tier_required(self, db, reward_service, make_user):
        # Given - Gold (레벨 3) 사용자, 플래티넘(레벨 4) 전용 리워드
        reward = reward_service.rewards_repo.create_reward(
            title="Platinum Lounge",
            points_cost=1000,
            reward_type="feature_unlock",
            reward_value={"feature": "priority_support"},
            min_tier=4,
            sort_order=10,
            is_active=True,
        )
        db.commit()
        user = make_user()
        reward_service.point_service.earn_points(user.id, 1500, "admin_seed")
        assert reward_service.tier_service.get_user_tier(user.id).level == 3

        # When
        with pytest.raises(TierRequiredError) as exc_info:
            reward_service.redeem_reward(user.id, reward.id)

        # Then
        assert exc_info.value.error_code == "TIER_REQUIRED"
        assert exc_info.value.message == "Requires tier level 4"
        assert exc_info.value.details == {"required_tier": 4, "current_tier": 3}
        assert reward_service.point_service.get_available_balance(user.id) == 1500
        assert db.query(Redemption).count() == 0
        spends = db.query(PointsLedger).filter(
            PointsLedger.user_id == user.id, PointsLedger.type == LedgerType.SPEND.value
        ).count()
        assert spends == 0

    def test_insufficient_balance_leaves_no_rows(self, db, reward_service, make_user):
        # Given - Silver 티어지만 사용 가능 400
        user = make_user()
        reward_service.point_service.earn_points(user.id, 600, "admin_seed")
        reward_service.point_service.spend_points(user.id, 200, "redemption")

        # When / Then
        with pytest.raises(InsufficientBalanceError):
            reward_service.redeem_reward(user.id, _reward_id(db, "$10 Account Credit"))

        assert db.query(Redemption).count() == 0
        spends = db.query(PointsLedger).filter(
            PointsLedger.user_id == user.id, PointsLedger.type == LedgerType.SPEND.value
        ).count()
        assert spends == 1

    def test_missing_reward(self, reward_service, make_user):
        user = make_user()

        with pytest.raises(NotFoundError):
            reward_service.redeem_reward(user.id, 9999)

    def test_failed_fulfillment_keeps_points_spent(
        self, db, reward_service, payment_gateway, make_user
    ):
        """지급 실패 시 failed로 격리되고 포인트는 환불되지 않음"""
        # Given
        user = make_user(stripe_customer_id="cus_123")
        reward_service.point_service.earn_points(user.id, 500, "admin_seed")
        payment_gateway.create_customer_credit.side_effect = RuntimeError("stripe down")

        # When
        with pytest.raises(FulfillmentError) as exc_info:
            reward_service.redeem_reward(user.id, _reward_id(db, "$10 Account Credit"))

        # Then
        assert exc_info.value.status_code == 502
        assert exc_info.value.error_code == "REDEMPTION_FAILED"
        redemption = db.get(Redemption, exc_info.value.redemption_id)
        assert redemption.status == "failed"
        assert reward_service.point_service.get_available_balance(user.id) == 0

        failed = reward_service.get_failed_redemptions()
        assert [item.id for item in failed] == [redemption.id]

        catalog = reward_service.get_rewards_catalog(user.id)
        credit = next(item for item in catalog.rewards if item.title == "$10 Account Credit")
        assert credit.can_redeem is False

    def test_unknown_reward_type_fails_fulfillment(self, db, reward_service, make_user):
        reward = reward_service.rewards_repo.create_reward(
            title="Mystery Box",
            points_cost=10,
            reward_type="mystery",
            reward_value={},
            min_tier=1,
            sort_order=10,
            is_active=True,
        )
        db.commit()
        user = make_user()
        reward_service.point_service.earn_points(user.id, 10, "admin_seed")

        with pytest.raises(FulfillmentError):
            reward_service.redeem_reward(user.id, reward.id)

    def test_user_redemptions(self, db, reward_service, make_user):
        user = make_user()
        reward_service.point_service.earn_points(user.id, 1000, "admin_seed")
        reward_id = _reward_id(db, "$10 Account Credit")
        reward_service.redeem_reward(user.id, reward_id)
        reward_service.redeem_reward(user.id, reward_id)

        history = reward_service.get_user_redemptions(user.id, limit=1)

        assert history.total_count == 2
        assert history.has_next is True
        assert history.history[0].reward_id == reward_id
