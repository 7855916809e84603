"""
기본 데이터 시드 스크립트
- 미션 (upsert)
- 리워드 카탈로그 (title 기준으로 없는 항목만)
- 추천 코드가 없는 기존 사용자에게 코드 발급
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rewardsapi.config import settings
from rewardsapi.database.session import get_db_context
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.services.mission_service import MissionService
from rewardsapi.services.referral_service import ReferralService
from rewardsapi.services.reward_service import RewardService


def seed():
    with get_db_context() as db:
        missions = MissionService(db, settings).seed_missions()
        rewards = RewardService(db, settings=settings).seed_rewards_catalog()

        referral_service = ReferralService(db, settings)
        users = UserRepository(db).get_users_without_referral_code()
        for user in users:
            referral_service.generate_referral_code(user.id)

    print(
        f"Seeded {missions} missions, {rewards} new rewards, "
        f"{len(users)} referral codes"
    )


if __name__ == "__main__":
    seed()
