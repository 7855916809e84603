from datetime import timedelta

import pytest

from rewardsapi.config import settings
from rewardsapi.services.point_service import PointService
from rewardsapi.utils.time_utils import utc_now


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    return "s3cret"


class TestCronRoutes:
    """크론 엔드포인트 테스트"""

    def test_rejects_missing_secret(self, client, cron_secret):
        response = client.post("/api/v1/cron/retention-check")

        assert response.status_code == 401

    def test_rejects_wrong_secret(self, client, cron_secret):
        response = client.post(
            "/api/v1/cron/retention-check", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    def test_retention_check(self, client, cron_secret, make_user, make_referral):
        # Given
        referrer = make_user(referral_code="ABCD1234")
        referred = make_user(subscription_tier="pro", subscription_status="active")
        make_referral(referrer, referred, age_days=45)

        # When
        response = client.post(
            "/api/v1/cron/retention-check",
            headers={"Authorization": f"Bearer {cron_secret}"},
        )

        # Then
        assert response.status_code == 200
        assert response.json() == {
            "processed": 1,
            "awarded_30d": 1,
            "awarded_90d": 0,
            "errors": 0,
        }

    def test_expire_points(self, client, db, cron_secret, make_user):
        user = make_user()
        PointService(db).earn_points(
            user.id, 100, "promo", status="pending", expires_at=utc_now() - timedelta(hours=1)
        )

        response = client.post(
            "/api/v1/cron/expire-points",
            headers={"Authorization": f"Bearer {cron_secret}"},
        )

        assert response.json() == {"expired": 1}

    def test_open_when_secret_unset(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "")

        response = client.post("/api/v1/cron/expire-points")

        assert response.status_code == 200
