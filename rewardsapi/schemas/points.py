from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class PointsBalance(BaseModel):
    """포인트 잔액 (원장에서 매번 집계)"""

    available: int = Field(..., description="사용 가능 포인트")
    pending: int = Field(..., description="적립 대기 포인트")
    lifetime: int = Field(..., description="누적 적립 포인트 (티어 계산 기준)")


class LedgerEntry(BaseModel):
    """포인트 원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    type: str = Field(..., description="earn | spend | adjustment")
    status: str = Field(..., description="pending | available | expired")
    points: int = Field(..., description="포인트")
    source: str = Field(..., description="지급/차감 원인")
    source_id: Optional[str] = Field(None, description="보조 참조 키")
    note: Optional[str] = Field(None, description="메모")
    expires_at: Optional[datetime] = Field(None, description="만료 시각")
    created_at: Optional[datetime] = Field(None, description="생성 시간")

    class Config:
        from_attributes = True


class PointsHistoryResponse(BaseModel):
    """포인트 잔액 + 원장 조회 응답"""

    balance: PointsBalance
    entries: List[LedgerEntry] = Field(..., description="원장 항목 목록 (최신순)")
    total_count: int = Field(..., description="전체 항목 수")
    page: int = Field(..., description="페이지 번호 (1부터)")
    limit: int = Field(..., description="페이지 크기")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class AdminPointsAdjustmentRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: int = Field(..., gt=0, description="사용자 ID")
    points: int = Field(..., description="조정할 포인트 (양수: 추가, 음수: 차감)")
    note: str = Field(..., max_length=500, description="조정 사유")


class AdminPointsAdjustmentResponse(BaseModel):
    success: bool = True
    entry: LedgerEntry
    balance: PointsBalance
    message: str


class MonthlyCapStatus(BaseModel):
    allowed: bool
    earned: int
    remaining: int


class ExpireSweepResult(BaseModel):
    expired: int = Field(..., description="만료 처리된 pending 항목 수")
