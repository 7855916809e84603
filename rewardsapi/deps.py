from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.orm import Session

from rewardsapi.config import settings
from rewardsapi.containers import Container
from rewardsapi.database.session import get_db

# Services
from rewardsapi.services.mission_service import MissionService
from rewardsapi.services.payment_service import StripePaymentGateway
from rewardsapi.services.point_service import PointService
from rewardsapi.services.referral_service import ReferralService
from rewardsapi.services.reward_service import RewardService
from rewardsapi.services.tier_service import TierService


def get_point_service(db: Session = Depends(get_db)) -> PointService:
    return PointService(db=db, settings=settings)


def get_tier_service(db: Session = Depends(get_db)) -> TierService:
    return TierService(db=db)


def get_mission_service(db: Session = Depends(get_db)) -> MissionService:
    return MissionService(db=db, settings=settings)


def get_referral_service(db: Session = Depends(get_db)) -> ReferralService:
    return ReferralService(db=db, settings=settings)


@inject
def get_reward_service(
    db: Session = Depends(get_db),
    payment_gateway: StripePaymentGateway = Depends(
        Provide[Container.services.payment_gateway]
    ),
) -> RewardService:
    return RewardService(db=db, payment_gateway=payment_gateway, settings=settings)
