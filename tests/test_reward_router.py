from rewardsapi.services.point_service import PointService
from rewardsapi.services.reward_service import RewardService


def _seed(db, payment_gateway):
    RewardService(db, payment_gateway=payment_gateway).seed_rewards_catalog()


class TestRewardRoutes:
    """리워드 라우터 테스트"""

    def test_catalog(self, client, db, payment_gateway, make_user, login_as):
        _seed(db, payment_gateway)
        login_as(make_user())

        response = client.get("/api/v1/rewards/catalog")

        assert response.status_code == 200
        assert response.json()["total_count"] == 8

    def test_redeem_and_history(self, client, db, payment_gateway, make_user, login_as):
        # Given
        _seed(db, payment_gateway)
        user = make_user(stripe_customer_id="cus_1")
        PointService(db).earn_points(user.id, 500, "admin_seed")
        login_as(user)
        catalog = client.get("/api/v1/rewards/catalog").json()["rewards"]
        reward_id = next(r["id"] for r in catalog if r["title"] == "$10 Account Credit")

        # When
        response = client.post("/api/v1/rewards/redeem", json={"reward_id": reward_id})

        # Then
        assert response.status_code == 200
        assert response.json()["status"] == "fulfilled"
        history = client.get("/api/v1/rewards/my-redemptions").json()
        assert history["total_count"] == 1
        assert history["history"][0]["metadata"]["amount_cents"] == 1000

    def test_redeem_insufficient(self, client, db, payment_gateway, make_user, login_as):
        _seed(db, payment_gateway)
        login_as(make_user())

        catalog = client.get("/api/v1/rewards/catalog").json()["rewards"]
        response = client.post(
            "/api/v1/rewards/redeem", json={"reward_id": catalog[0]["id"]}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BALANCE_001"

    def test_redeem_fulfillment_failure(self, client, db, payment_gateway, make_user, login_as):
        # Given
        _seed(db, payment_gateway)
        admin = make_user(role="admin", stripe_customer_id="cus_2")
        PointService(db).earn_points(admin.id, 500, "admin_seed")
        payment_gateway.create_customer_credit.side_effect = RuntimeError("timeout")
        login_as(admin)
        catalog = client.get("/api/v1/rewards/catalog").json()["rewards"]
        reward_id = next(r["id"] for r in catalog if r["title"] == "$10 Account Credit")

        # When
        response = client.post("/api/v1/rewards/redeem", json={"reward_id": reward_id})

        # Then
        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "REDEMPTION_FAILED"
        assert error["message"] == "Fulfillment failed, points held for review"

        failed = client.get("/api/v1/rewards/admin/failed").json()
        assert failed[0]["id"] == error["details"]["redemption_id"]

        catalog = client.get("/api/v1/rewards/catalog").json()
        credit = next(r for r in catalog["rewards"] if r["id"] == reward_id)
        assert catalog["available_points"] == 0
        assert credit["can_redeem"] is False

    def test_redeem_validation(self, client, make_user, login_as):
        login_as(make_user())

        response = client.post("/api/v1/rewards/redeem", json={"reward_id": 0})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
