from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from rewardsapi.config import settings
from rewardsapi.core.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from rewardsapi.models.points import LedgerStatus, LedgerType, PointsLedger
from rewardsapi.services.point_service import PointService
from rewardsapi.utils.time_utils import utc_now


@pytest.fixture
def point_service(db):
    return PointService(db, settings)


def _ledger_rows(db, user_id):
    return db.query(PointsLedger).filter(PointsLedger.user_id == user_id).all()


class TestEarnAndSpend:
    """적립/차감 테스트"""

    def test_earn_points_available(self, point_service, make_user):
        """available 적립은 즉시 잔액과 누적 포인트에 반영"""
        # Given
        user = make_user()

        # When
        entry = point_service.earn_points(user.id, 300, "mission_first_upload")

        # Then
        assert entry.type == LedgerType.EARN.value
        assert entry.status == LedgerStatus.AVAILABLE.value
        balance = point_service.get_balance(user.id)
        assert balance.available == 300
        assert balance.pending == 0
        assert balance.lifetime == 300

    def test_earn_points_rejects_non_positive(self, point_service, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            point_service.earn_points(user.id, 0, "mission_first_upload")
        with pytest.raises(ValidationError):
            point_service.earn_points(user.id, -10, "mission_first_upload")

    def test_earn_points_rejects_expired_status(self, point_service, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            point_service.earn_points(
                user.id, 10, "mission_first_upload", status=LedgerStatus.EXPIRED.value
            )

    def test_spend_points(self, point_service, make_user):
        # Given
        user = make_user()
        point_service.earn_points(user.id, 1000, "admin_seed")

        # When
        entry = point_service.spend_points(user.id, 400, "redemption", source_id="1")

        # Then
        assert entry.type == LedgerType.SPEND.value
        assert entry.points == 400
        balance = point_service.get_balance(user.id)
        assert balance.available == 600
        # 차감은 누적 포인트(티어 기준)에 영향 없음
        assert balance.lifetime == 1000

    def test_spend_insufficient_leaves_no_row(self, point_service, make_user, db):
        """잔액 500에서 600 차감 시도 → 실패, 원장 변화 없음"""
        # Given
        user = make_user()
        point_service.earn_points(user.id, 500, "admin_seed")
        rows_before = len(_ledger_rows(db, user.id))

        # When / Then
        with pytest.raises(InsufficientBalanceError) as exc_info:
            point_service.spend_points(user.id, 600, "redemption")

        assert exc_info.value.message == "Insufficient points. Available: 500, Requested: 600"
        assert exc_info.value.error_code == "BALANCE_001"
        assert len(_ledger_rows(db, user.id)) == rows_before
        assert point_service.get_available_balance(user.id) == 500

    def test_spend_exact_balance(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(user.id, 500, "admin_seed")

        point_service.spend_points(user.id, 500, "redemption")

        assert point_service.get_available_balance(user.id) == 0

    def test_spend_unknown_user(self, point_service):
        with pytest.raises(NotFoundError):
            point_service.spend_points(999, 10, "redemption")

    def test_pending_points_not_spendable(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(
            user.id, 500, "referral_paid_sub_pro", status=LedgerStatus.PENDING.value
        )

        with pytest.raises(InsufficientBalanceError):
            point_service.spend_points(user.id, 100, "redemption")


class TestStatusTransitions:
    """pending 상태 전이 테스트"""

    def test_convert_pending_to_available(self, point_service, make_user):
        # Given
        user = make_user()
        point_service.earn_points(
            user.id, 100, "referral_paid_sub_pro", status="pending", source_id="7"
        )
        assert point_service.get_pending_points(user.id) == 100

        # When
        converted = point_service.convert_pending_to_available(
            user.id, "referral_paid_sub_pro", "7"
        )

        # Then
        assert converted == 1
        balance = point_service.get_balance(user.id)
        assert balance.pending == 0
        assert balance.available == 100
        assert balance.lifetime == 100

        # 이미 전이된 항목은 다시 전이되지 않음
        assert point_service.convert_pending_to_available(
            user.id, "referral_paid_sub_pro", "7"
        ) == 0

    def test_expire_pending_points(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(user.id, 100, "referral_paid_sub_pro", status="pending")

        expired = point_service.expire_pending_points(user.id, "referral_paid_sub_pro")

        assert expired == 1
        balance = point_service.get_balance(user.id)
        assert balance.pending == 0
        assert balance.available == 0

    def test_expire_does_not_touch_available(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(user.id, 100, "referral_paid_sub_pro")

        assert point_service.expire_pending_points(user.id, "referral_paid_sub_pro") == 0
        assert point_service.get_available_balance(user.id) == 100

    def test_expire_due_entries(self, point_service, make_user):
        """expires_at이 지난 pending 항목만 만료"""
        # Given
        user = make_user()
        now = utc_now()
        point_service.earn_points(
            user.id, 100, "promo", status="pending", expires_at=now - timedelta(days=1)
        )
        point_service.earn_points(
            user.id, 50, "promo", status="pending", expires_at=now + timedelta(days=1)
        )
        point_service.earn_points(user.id, 70, "promo", status="pending")

        # When
        expired = point_service.expire_due_entries(now=now)

        # Then
        assert expired == 1
        assert point_service.get_pending_points(user.id) == 120


class TestAdminAdjust:
    """관리자 조정 테스트"""

    def test_admin_credit_scenario(self, point_service, make_user):
        """잔액 0인 사용자에게 +500 → available 500, Silver 진입"""
        # Given
        admin = make_user(role="admin")
        user = make_user()

        # When
        response = point_service.adjust_points(user.id, 500, "Goodwill credit", admin.id)

        # Then
        assert response.success is True
        assert response.entry.type == LedgerType.ADJUSTMENT.value
        assert response.entry.source == "admin"
        assert response.entry.source_id == str(admin.id)
        assert response.balance.available == 500
        assert response.balance.lifetime == 500

    def test_admin_debit(self, point_service, make_user):
        admin = make_user(role="admin")
        user = make_user()
        point_service.earn_points(user.id, 300, "admin_seed")

        response = point_service.adjust_points(user.id, -200, "Correction", admin.id)

        assert response.entry.points == -200
        assert response.balance.available == 100

    def test_admin_debit_cannot_go_negative(self, point_service, make_user, db):
        admin = make_user(role="admin")
        user = make_user()
        point_service.earn_points(user.id, 100, "admin_seed")

        with pytest.raises(InsufficientBalanceError):
            point_service.adjust_points(user.id, -200, "Correction", admin.id)

        assert len(_ledger_rows(db, user.id)) == 1

    @pytest.mark.parametrize("points, note", [(0, "note"), (100, ""), (100, "   ")])
    def test_admin_adjust_validation(self, point_service, make_user, points, note):
        admin = make_user(role="admin")
        user = make_user()

        with pytest.raises(ValidationError):
            point_service.adjust_points(user.id, points, note, admin.id)

    def test_admin_adjust_unknown_user(self, point_service, make_user):
        admin = make_user(role="admin")

        with pytest.raises(NotFoundError):
            point_service.adjust_points(12345, 100, "Goodwill credit", admin.id)


class TestHistoryAndCap:
    def test_history_newest_first_with_paging(self, point_service, make_user):
        # Given
        user = make_user()
        for i in range(5):
            point_service.earn_points(user.id, 10 + i, f"src_{i}")

        # When
        first = point_service.get_history(user.id, page=1, limit=2)
        last = point_service.get_history(user.id, page=3, limit=2)

        # Then
        assert first.total_count == 5
        assert [e.source for e in first.entries] == ["src_4", "src_3"]
        assert first.has_next is True
        assert [e.source for e in last.entries] == ["src_0"]
        assert last.has_next is False
        assert first.balance.available == 60

    def test_history_limit_capped(self, point_service, make_user):
        user = make_user()

        history = point_service.get_history(user.id, limit=1000)

        assert history.limit == settings.POINTS_HISTORY_MAX_LIMIT

    def test_has_earned(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(user.id, 800, "referral_retention_30d", source_id="42")

        assert point_service.has_earned(user.id, "referral_retention_30d", "42") is True
        assert point_service.has_earned(user.id, "referral_retention_30d", "43") is False

    def test_duplicate_keyed_earn_rejected(self, point_service, make_user):
        """같은 (source, source_id) 적립은 원장에 한 번만 기록됨"""
        user = make_user()
        point_service.earn_points(user.id, 800, "referral_retention_30d", source_id="42")

        with pytest.raises(IntegrityError):
            point_service.earn_points(
                user.id, 800, "referral_retention_30d", source_id="42"
            )

        assert point_service.get_available_balance(user.id) == 800
        # source_id 없는 적립과 차감은 제약 대상이 아님
        point_service.earn_points(user.id, 100, "admin_seed")
        point_service.earn_points(user.id, 100, "admin_seed")
        assert point_service.get_available_balance(user.id) == 1000

    def test_monthly_cap(self, point_service, make_user):
        # Given
        user = make_user()
        point_service.earn_points(user.id, 4800, "admin_seed")

        # When
        status = point_service.check_monthly_cap(user.id)

        # Then
        assert status.earned == 4800
        assert status.remaining == settings.MONTHLY_EARNING_CAP - 4800
        assert status.allowed is True
        assert point_service.cap_to_monthly_limit(user.id, 600) == 200

    def test_monthly_cap_counts_pending(self, point_service, make_user):
        user = make_user()
        point_service.earn_points(user.id, 5000, "admin_seed", status="pending")

        status = point_service.check_monthly_cap(user.id)

        assert status.allowed is False
        assert status.remaining == 0
