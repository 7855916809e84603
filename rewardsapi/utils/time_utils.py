"""
시간 유틸리티

원장/구독 계산은 모두 UTC 기준으로 처리합니다.
"""

from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """naive datetime은 UTC로 간주하고 tz-aware UTC로 맞춥니다.

    SQLite는 타임존 정보를 저장하지 않으므로 조회 결과가 naive로 돌아옵니다.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_months(dt: datetime, months: int) -> datetime:
    """월 단위 가산 (말일 보정: 1/31 + 1개월 = 2/28 또는 2/29)"""
    return dt + relativedelta(months=months)


def start_of_month(now: Optional[datetime] = None) -> datetime:
    """해당 월 1일 00:00 UTC"""
    now = ensure_utc(now) or utc_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
