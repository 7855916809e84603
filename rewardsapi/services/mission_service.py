from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rewardsapi.config import Settings, settings as default_settings
from rewardsapi.core.exceptions import NotFoundError
from rewardsapi.repositories.mission_repository import MissionRepository
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.schemas.missions import UserMission, UserMissionsResponse
from rewardsapi.services.point_service import PointService
import logging

logger = logging.getLogger(__name__)

# 기본 미션 (seed_missions로 upsert)
DEFAULT_MISSIONS = [
    {
        "key": "first_upload",
        "title": "Upload Your First Receipt",
        "description": "Upload and save your first receipt to get started",
        "points": 50,
        "sort_order": 1,
    },
    {
        "key": "connect_email",
        "title": "Connect Email Auto-Import",
        "description": "Connect your Gmail to automatically import receipts",
        "points": 100,
        "sort_order": 2,
    },
    {
        "key": "first_export",
        "title": "Generate Your First Report",
        "description": "Create your first expense reimbursement report",
        "points": 100,
        "sort_order": 3,
    },
    {
        "key": "invite_team",
        "title": "Invite a Team Member",
        "description": "Create a team and invite a colleague to collaborate",
        "points": 150,
        "sort_order": 4,
    },
]


class MissionService:
    """일회성 미션 완료 처리 - 사용자당 미션별 최대 1회 지급"""

    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.mission_repo = MissionRepository(db)
        self.user_repo = UserRepository(db)
        self.point_service = PointService(db, settings)

    def check_and_complete_mission(self, user_id: int, mission_key: str) -> bool:
        """미션 완료 처리 (멱등)

        Returns:
            bool: 이번 호출로 새로 완료되었으면 True, 이미 완료/미존재/비활성이면 False

        Raises:
            NotFoundError: 사용자가 없음
        """
        mission = self.mission_repo.get_by_key(mission_key)
        if mission is None or not mission.is_active:
            logger.info(f"Mission {mission_key} not found or inactive")
            return False

        if self.user_repo.get_model(user_id) is None:
            raise NotFoundError(f"User not found: {user_id}")

        if self.mission_repo.get_completion(user_id, mission.id) is not None:
            return False

        try:
            self.mission_repo.create_completion(user_id, mission.id)
            self.point_service.earn_points(
                user_id=user_id,
                points=mission.points,
                source=f"mission_{mission.key}",
                source_id=str(mission.id),
                note=f"Mission completed: {mission.title}",
                commit=False,
            )
            self.db.commit()
        except IntegrityError:
            # 사용자/미션 존재는 확인됨 - 남은 원인은 완료 기록 또는 적립의 유니크 위반 (동시 완료)
            self.db.rollback()
            logger.info(
                f"Mission {mission_key} already completed concurrently for user {user_id}"
            )
            return False
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to complete mission {mission_key} for user {user_id}: {str(e)}"
            )
            raise

        logger.info(
            f"User {user_id} completed mission {mission_key} (+{mission.points} points)"
        )
        return True

    def get_user_missions(self, user_id: int) -> UserMissionsResponse:
        missions = self.mission_repo.get_active_missions()
        completions = self.mission_repo.get_completions_by_mission(user_id)

        items: List[UserMission] = []
        for mission in missions:
            completion = completions.get(mission.id)
            items.append(
                UserMission(
                    id=mission.id,
                    key=mission.key,
                    title=mission.title,
                    description=mission.description,
                    points=mission.points,
                    sort_order=mission.sort_order,
                    completed=completion is not None,
                    completed_at=completion.completed_at if completion else None,
                )
            )
        return UserMissionsResponse(missions=items)

    def seed_missions(self) -> int:
        """기본 미션 upsert - 처리한 미션 수 반환"""
        try:
            for mission in DEFAULT_MISSIONS:
                self.mission_repo.upsert_mission(**mission)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to seed missions: {str(e)}")
            raise

        logger.info(f"Seeded {len(DEFAULT_MISSIONS)} missions")
        return len(DEFAULT_MISSIONS)
