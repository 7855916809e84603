from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class RewardItem(BaseModel):
    """리워드 카탈로그 항목 (사용자별 교환 가능 여부 포함)"""

    id: int = Field(..., description="리워드 ID")
    title: str = Field(..., description="리워드 이름")
    description: Optional[str] = Field(None, description="리워드 설명")
    points_cost: int = Field(..., description="필요 포인트")
    reward_type: str = Field(..., description="stripe_credit | free_months | feature_unlock")
    reward_value: Dict[str, Any] = Field(default_factory=dict, description="타입별 파라미터")
    min_tier: int = Field(..., description="최소 티어 레벨")
    sort_order: int = Field(..., description="정렬 순서")
    can_redeem: bool = Field(..., description="교환 가능 여부 (참고용, 교환 시 재검증)")


class RewardCatalogResponse(BaseModel):
    rewards: List[RewardItem]
    total_count: int
    available_points: int
    tier_level: int


class RewardRedemptionRequest(BaseModel):
    reward_id: int = Field(..., gt=0, description="교환할 리워드 ID")


class RedemptionResult(BaseModel):
    success: bool
    redemption_id: int
    status: str
    points_spent: int
    message: str


class RedemptionHistoryItem(BaseModel):
    id: int
    user_id: int
    reward_id: int
    points_spent: int
    status: str
    fulfilled_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class RedemptionHistoryResponse(BaseModel):
    history: List[RedemptionHistoryItem]
    total_count: int
    has_next: bool
