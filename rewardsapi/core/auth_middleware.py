from fastapi import Depends
from sqlalchemy.orm import Session

from rewardsapi.core.exceptions import AuthenticationError, AuthorizationError
from rewardsapi.core.security import verify_token
from rewardsapi.database.session import get_db
from rewardsapi.repositories.user_repository import UserRepository
from rewardsapi.schemas.user import User as UserSchema


def get_current_user(
    user_id: int = Depends(verify_token),
    db: Session = Depends(get_db),
) -> UserSchema:
    """토큰의 user_id로 사용자 조회 - 삭제된 사용자면 401"""
    user = UserRepository(db).get_user(user_id)
    if user is None:
        raise AuthenticationError("User not found for token")
    return user


def get_current_active_user(
    current_user: UserSchema = Depends(get_current_user),
) -> UserSchema:
    if not current_user.is_active:
        raise AuthorizationError("Inactive user account")
    return current_user


def require_admin(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserSchema:
    """관리자 또는 내부 시스템(관리자 토큰) 전용 엔드포인트"""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
