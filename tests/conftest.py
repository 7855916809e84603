import os

# 엔진이 import 시점에 생성되므로 rewardsapi import 전에 설정
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import timedelta
from typing import Optional
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rewardsapi.models  # noqa: F401
from rewardsapi.config import settings
from rewardsapi.models.base import Base
from rewardsapi.models.referrals import ReferralStatus, ReferralTracking
from rewardsapi.models.user import User
from rewardsapi.services.payment_service import StripePaymentGateway
from rewardsapi.utils.time_utils import utc_now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """테스트용 세션 (운영 설정과 동일하게 expire_on_commit=False)"""
    TestingSession = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """사용자 생성 팩토리"""
    counter = {"n": 0}

    def _make_user(
        email: Optional[str] = None,
        role: str = "user",
        referral_code: Optional[str] = None,
        subscription_tier: str = "free",
        subscription_status: Optional[str] = None,
        **fields,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@gmail.com",
            nickname=f"user{counter['n']}",
            role=role,
            referral_code=referral_code,
            subscription_tier=subscription_tier,
            subscription_status=subscription_status,
            **fields,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_referral(db):
    """귀속 행 생성 팩토리 (created_at을 과거로 지정)"""

    def _make_referral(
        referrer: User,
        referred: User,
        status: str = ReferralStatus.ACTIVE.value,
        age_days: int = 0,
    ) -> ReferralTracking:
        tracking = ReferralTracking(
            referrer_id=referrer.id,
            referred_id=referred.id,
            referral_code=referrer.referral_code or "TESTCODE",
            status=status,
            created_at=utc_now() - timedelta(days=age_days),
        )
        db.add(tracking)
        db.commit()
        return tracking

    return _make_referral


@pytest.fixture
def payment_gateway():
    gateway = Mock(spec=StripePaymentGateway)
    gateway.create_customer_credit.return_value = "cbtxn_test_1"
    return gateway


@pytest.fixture
def app(db, payment_gateway):
    """DB 세션과 결제 게이트웨이를 테스트용으로 교체한 앱"""
    from rewardsapi.database.session import get_db
    from rewardsapi.deps import get_reward_service
    from rewardsapi.main import create_app
    from rewardsapi.services.reward_service import RewardService

    app = create_app()

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_reward_service] = lambda: RewardService(
        db, payment_gateway=payment_gateway, settings=settings
    )
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login_as(app):
    """인증 우회 - 지정한 사용자로 로그인한 것처럼 처리"""
    from rewardsapi.core.auth_middleware import get_current_active_user
    from rewardsapi.schemas.user import User as UserSchema

    def _login_as(user: User) -> None:
        schema = UserSchema.model_validate(user, from_attributes=True)
        app.dependency_overrides[get_current_active_user] = lambda: schema

    return _login_as
