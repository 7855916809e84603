from fastapi import APIRouter, Depends, Path

from rewardsapi.core.auth_middleware import get_current_active_user, require_admin
from rewardsapi.deps import get_mission_service
from rewardsapi.schemas.missions import (
    MissionCompleteRequest,
    MissionCompleteResponse,
    UserMissionsResponse,
)
from rewardsapi.schemas.user import User as UserSchema
from rewardsapi.services.mission_service import MissionService

router = APIRouter(prefix="/missions", tags=["missions"])


@router.get("", response_model=UserMissionsResponse)
def get_my_missions(
    current_user: UserSchema = Depends(get_current_active_user),
    mission_service: MissionService = Depends(get_mission_service),
) -> UserMissionsResponse:
    """활성 미션 목록 + 내 완료 여부"""
    return mission_service.get_user_missions(current_user.id)


@router.post("/{mission_key}/complete", response_model=MissionCompleteResponse)
def complete_mission(
    request: MissionCompleteRequest,
    mission_key: str = Path(..., max_length=64, description="미션 키"),
    _: UserSchema = Depends(require_admin),
    mission_service: MissionService = Depends(get_mission_service),
) -> MissionCompleteResponse:
    """
    미션 완료 트리거 (내부 시스템/관리자용)

    이미 완료된 미션이면 completed=False 로 응답합니다 (멱등).
    """
    completed = mission_service.check_and_complete_mission(request.user_id, mission_key)
    return MissionCompleteResponse(mission_key=mission_key, completed=completed)
