from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from rewardsapi.models.missions import Mission as MissionModel
from rewardsapi.models.missions import MissionCompletion
from rewardsapi.repositories.base import BaseRepository
from rewardsapi.schemas.missions import UserMission


class MissionRepository(BaseRepository[MissionModel, UserMission]):
    def __init__(self, db: Session):
        super().__init__(MissionModel, UserMission, db)

    def get_by_key(self, key: str) -> Optional[MissionModel]:
        return self.db.query(MissionModel).filter(MissionModel.key == key).first()

    def get_active_missions(self) -> List[MissionModel]:
        return (
            self.db.query(MissionModel)
            .filter(MissionModel.is_active.is_(True))
            .order_by(MissionModel.sort_order, MissionModel.id)
            .all()
        )

    def get_completion(
        self, user_id: int, mission_id: int
    ) -> Optional[MissionCompletion]:
        return (
            self.db.query(MissionCompletion)
            .filter(
                MissionCompletion.user_id == user_id,
                MissionCompletion.mission_id == mission_id,
            )
            .first()
        )

    def get_completions_by_mission(self, user_id: int) -> Dict[int, MissionCompletion]:
        completions = (
            self.db.query(MissionCompletion)
            .filter(MissionCompletion.user_id == user_id)
            .all()
        )
        return {completion.mission_id: completion for completion in completions}

    def create_completion(self, user_id: int, mission_id: int) -> MissionCompletion:
        """완료 기록 추가 - 유니크 제약 위반 시 IntegrityError가 그대로 전파됨"""
        return self.add(MissionCompletion(user_id=user_id, mission_id=mission_id))

    def upsert_mission(
        self,
        key: str,
        title: str,
        points: int,
        description: Optional[str] = None,
        sort_order: int = 0,
    ) -> MissionModel:
        mission = self.get_by_key(key)
        if mission is None:
            return self.add(
                MissionModel(
                    key=key,
                    title=title,
                    description=description,
                    points=points,
                    sort_order=sort_order,
                    is_active=True,
                )
            )

        mission.title = title
        mission.description = description
        mission.points = points
        mission.sort_order = sort_order
        self.db.flush()
        return mission
