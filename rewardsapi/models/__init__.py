from rewardsapi.models.base import Base
from rewardsapi.models.user import User
from rewardsapi.models.points import PointsLedger
from rewardsapi.models.missions import Mission, MissionCompletion
from rewardsapi.models.referrals import ReferralTracking
from rewardsapi.models.rewards import RewardsCatalog, Redemption

__all__ = [
    "Base",
    "User",
    "PointsLedger",
    "Mission",
    "MissionCompletion",
    "ReferralTracking",
    "RewardsCatalog",
    "Redemption",
]
