from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class UserMission(BaseModel):
    id: int
    key: str
    title: str
    description: Optional[str] = None
    points: int
    sort_order: int
    completed: bool
    completed_at: Optional[datetime] = None


class UserMissionsResponse(BaseModel):
    missions: List[UserMission]


class MissionCompleteRequest(BaseModel):
    user_id: int = Field(..., gt=0, description="대상 사용자 ID")


class MissionCompleteResponse(BaseModel):
    mission_key: str
    completed: bool = Field(..., description="이번 호출로 새로 완료되었는지 여부")
