from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from rewardsapi.models.user import User as UserModel
from rewardsapi.repositories.base import BaseRepository
from rewardsapi.schemas.user import User as UserSchema


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리 - 원장 시스템에 필요한 계정 필드만 다룸"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_user(self, user_id: int) -> Optional[UserSchema]:
        return self.get_by_id(user_id)

    def lock_user(self, user_id: int) -> Optional[UserModel]:
        """사용자 행 잠금 (SELECT ... FOR UPDATE)

        같은 사용자의 잔액 확인 + 차감을 직렬화하기 위한 잠금.
        현재 트랜잭션이 끝날 때까지 유지됩니다.
        """
        return (
            self.db.query(UserModel)
            .filter(UserModel.id == user_id)
            .with_for_update()
            .first()
        )

    def get_by_referral_code(self, code: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel).filter(UserModel.referral_code == code).first()
        )

    def referral_code_exists(self, code: str) -> bool:
        return self.exists({"referral_code": code})

    def set_referral_code(self, user: UserModel, code: str) -> UserModel:
        user.referral_code = code
        self.db.flush()
        return user

    def set_referred_by(self, user_id: int, code: str) -> None:
        self.db.query(UserModel).filter(UserModel.id == user_id).update(
            {"referred_by": code}, synchronize_session="fetch"
        )

    def set_subscription_end(self, user: UserModel, ends_at: datetime) -> UserModel:
        user.subscription_ends_at = ends_at
        self.db.flush()
        return user

    def get_users_without_referral_code(self) -> List[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.referral_code.is_(None))
            .order_by(UserModel.id)
            .all()
        )
