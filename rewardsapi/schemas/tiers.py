from typing import List, Optional

from pydantic import BaseModel, Field


class TierDefinition(BaseModel):
    level: int
    name: str
    min_points: int


class TierInfo(BaseModel):
    """사용자 티어 정보"""

    level: int = Field(..., description="티어 레벨 (1=Bronze ... 5=Diamond)")
    name: str
    min_points: int = Field(..., description="현재 티어 하한")
    lifetime_points: int
    next_tier_at: Optional[int] = Field(None, description="다음 티어 하한 (최고 티어면 None)")
    next_tier_name: Optional[str] = None
    progress: int = Field(..., ge=0, le=100, description="다음 티어까지 진행률 (%)")


class TierListResponse(BaseModel):
    tiers: List[TierDefinition]
