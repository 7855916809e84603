from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rewardsapi.config import Settings, settings as default_settings
from rewardsapi.core.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from rewardsapi.models.points import LedgerStatus, LedgerType
from rewardsapi.repositories.points_repository import PointsRepository
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.schemas.points import (
    AdminPointsAdjustmentResponse,
    LedgerEntry,
    MonthlyCapStatus,
    PointsBalance,
    PointsHistoryResponse,
)
from rewardsapi.utils.time_utils import start_of_month, utc_now
import logging

logger = logging.getLogger(__name__)


class PointService:
    """포인트 원장 서비스 - 모든 포인트 변동은 이 서비스를 거칩니다.

    commit=False로 호출하면 현재 트랜잭션에 참여만 하고 commit은 호출자가 담당합니다.
    (미션 완료 기록 + 적립, 리워드 교환 기록 + 차감을 하나의 트랜잭션으로 묶기 위함)
    """

    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.settings = settings
        self.points_repo = PointsRepository(db)
        self.user_repo = UserRepository(db)

    def _finish(self, commit: bool) -> None:
        if commit:
            self.db.commit()

    # ------------------------------------------------------------------
    # 적립 / 차감
    # ------------------------------------------------------------------

    def earn_points(
        self,
        user_id: int,
        points: int,
        source: str,
        status: str = LedgerStatus.AVAILABLE.value,
        source_id: Optional[str] = None,
        note: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> LedgerEntry:
        """포인트 적립 (earn 항목 추가)

        멱등성 검사는 하지 않습니다. 마일스톤성 지급은 호출자가
        has_earned()로 먼저 확인해야 합니다.
        """
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError(
                "Points must be a positive integer", {"field": "points"}
            )
        if status not in (LedgerStatus.PENDING.value, LedgerStatus.AVAILABLE.value):
            raise ValidationError(
                f"Invalid earn status: {status}", {"field": "status"}
            )

        try:
            entry = self.points_repo.create_entry(
                user_id=user_id,
                type=LedgerType.EARN.value,
                points=points,
                source=source,
                status=status,
                source_id=source_id,
                note=note,
                expires_at=expires_at,
            )
            self._finish(commit)
        except IntegrityError:
            # 같은 (source, source_id) 적립이 이미 있음 - 호출자가 중복으로 처리
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to earn points for user {user_id}: {str(e)}")
            raise

        logger.info(
            f"Earned {points} points ({status}) for user {user_id} from {source}"
        )
        return entry

    def spend_points(
        self,
        user_id: int,
        points: int,
        source: str,
        source_id: Optional[str] = None,
        commit: bool = True,
    ) -> LedgerEntry:
        """포인트 차감 - 사용자 행 잠금 후 잔액 확인

        잔액이 부족하면 InsufficientBalanceError, 원장에는 아무 것도 남기지 않습니다.
        """
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError(
                "Points must be a positive integer", {"field": "points"}
            )

        try:
            self._lock_user_or_404(user_id)
            available = self.points_repo.get_available_balance(user_id)
            if points > available:
                raise InsufficientBalanceError(
                    f"Insufficient points. Available: {available}, Requested: {points}",
                    {"available": available, "requested": points},
                )

            entry = self.points_repo.create_entry(
                user_id=user_id,
                type=LedgerType.SPEND.value,
                points=points,
                source=source,
                status=LedgerStatus.AVAILABLE.value,
                source_id=source_id,
            )
            self._finish(commit)
        except (InsufficientBalanceError, NotFoundError) as e:
            self.db.rollback()
            logger.warning(f"Spend rejected for user {user_id}: {e.message}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to spend points for user {user_id}: {str(e)}")
            raise

        logger.info(f"Spent {points} points for user {user_id} on {source}")
        return entry

    def adjust_points(
        self, user_id: int, points: int, note: str, admin_id: int
    ) -> AdminPointsAdjustmentResponse:
        """관리자 포인트 조정 (양수: 지급, 음수: 차감)"""
        if isinstance(points, bool) or not isinstance(points, int) or points == 0:
            raise ValidationError(
                "Points must be a non-zero integer", {"field": "points"}
            )
        if not note or not note.strip():
            raise ValidationError("Note is required", {"field": "note"})

        try:
            self._lock_user_or_404(user_id)
            if points < 0:
                available = self.points_repo.get_available_balance(user_id)
                if available + points < 0:
                    raise InsufficientBalanceError(
                        f"Insufficient points. Available: {available}, Requested: {-points}",
                        {"available": available, "requested": -points},
                    )

            entry = self.points_repo.create_entry(
                user_id=user_id,
                type=LedgerType.ADJUSTMENT.value,
                points=points,
                source="admin",
                status=LedgerStatus.AVAILABLE.value,
                source_id=str(admin_id),
                note=note.strip(),
            )
            self.db.commit()
        except (InsufficientBalanceError, NotFoundError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to adjust points for user {user_id}: {str(e)}")
            raise

        logger.info(
            f"Admin {admin_id} adjusted {points} points for user {user_id}: {note}"
        )
        return AdminPointsAdjustmentResponse(
            success=True,
            entry=entry,
            balance=self.get_balance(user_id),
            message=f"Adjusted {points} points for user {user_id}",
        )

    # ------------------------------------------------------------------
    # 상태 전이
    # ------------------------------------------------------------------

    def convert_pending_to_available(
        self, user_id: int, source: str, source_id: Optional[str] = None
    ) -> int:
        """pending → available 전이 - 전이된 항목 수 반환"""
        try:
            converted = self.points_repo.transition_status(
                user_id, source, source_id, LedgerStatus.AVAILABLE.value
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to convert pending points for user {user_id}: {str(e)}")
            raise

        if converted:
            logger.info(
                f"Converted {converted} pending entries to available for user {user_id} ({source})"
            )
        return converted

    def expire_pending_points(
        self, user_id: int, source: str, source_id: Optional[str] = None
    ) -> int:
        """pending → expired 전이 (적립 취소)"""
        try:
            expired = self.points_repo.transition_status(
                user_id, source, source_id, LedgerStatus.EXPIRED.value
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to expire pending points for user {user_id}: {str(e)}")
            raise

        if expired:
            logger.info(f"Expired {expired} pending entries for user {user_id} ({source})")
        return expired

    def expire_due_entries(self, now: Optional[datetime] = None) -> int:
        """expires_at이 지난 pending 항목 일괄 만료 (크론)"""
        now = now or utc_now()
        try:
            expired = self.points_repo.expire_due(now)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to expire due entries: {str(e)}")
            raise

        logger.info(f"Expiry sweep finished: {expired} entries expired")
        return expired

    # ------------------------------------------------------------------
    # 잔액 조회
    # ------------------------------------------------------------------

    def get_available_balance(self, user_id: int) -> int:
        return self.points_repo.get_available_balance(user_id)

    def get_pending_points(self, user_id: int) -> int:
        return self.points_repo.get_pending_points(user_id)

    def get_lifetime_earned(self, user_id: int) -> int:
        return self.points_repo.get_lifetime_earned(user_id)

    def get_balance(self, user_id: int) -> PointsBalance:
        return PointsBalance(
            available=self.get_available_balance(user_id),
            pending=self.get_pending_points(user_id),
            lifetime=self.get_lifetime_earned(user_id),
        )

    def get_history(
        self, user_id: int, page: int = 1, limit: int = 20
    ) -> PointsHistoryResponse:
        """잔액 + 원장 내역 (최신순)

        Args:
            page: 1부터 시작
            limit: 페이지 크기 (POINTS_HISTORY_MAX_LIMIT로 제한)
        """
        page = max(page, 1)
        limit = max(1, min(limit, self.settings.POINTS_HISTORY_MAX_LIMIT))
        offset = (page - 1) * limit

        entries = self.points_repo.get_history(user_id, limit=limit, offset=offset)
        total_count = self.points_repo.count_entries(user_id)

        return PointsHistoryResponse(
            balance=self.get_balance(user_id),
            entries=entries,
            total_count=total_count,
            page=page,
            limit=limit,
            has_next=offset + len(entries) < total_count,
        )

    def has_earned(
        self, user_id: int, source: str, source_id: Optional[str] = None
    ) -> bool:
        return self.points_repo.has_entry(user_id, source, source_id)

    # ------------------------------------------------------------------
    # 월간 적립 한도
    # ------------------------------------------------------------------

    def check_monthly_cap(
        self, user_id: int, now: Optional[datetime] = None
    ) -> MonthlyCapStatus:
        cap = self.settings.MONTHLY_EARNING_CAP
        earned = self.points_repo.get_earned_since(user_id, start_of_month(now))
        remaining = max(0, cap - earned)
        return MonthlyCapStatus(allowed=remaining > 0, earned=earned, remaining=remaining)

    def cap_to_monthly_limit(
        self, user_id: int, points: int, now: Optional[datetime] = None
    ) -> int:
        """월간 한도를 넘지 않도록 지급 포인트를 잘라서 반환"""
        status = self.check_monthly_cap(user_id, now)
        capped = min(points, status.remaining)
        if capped < points:
            logger.warning(
                f"Monthly earning cap reached for user {user_id}: "
                f"requested {points}, allowed {capped}"
            )
        return capped

    def _lock_user_or_404(self, user_id: int):
        user = self.user_repo.lock_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user
