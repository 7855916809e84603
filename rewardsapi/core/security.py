from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError

from rewardsapi.config import settings
from rewardsapi.core.exceptions import AuthenticationError


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


# Security scheme
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    user_id: int
    sub: Optional[str] = None


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """JWT 토큰을 검증하고 user_id를 반환합니다.

    토큰 발급은 외부 인증 서비스 담당 - 여기서는 서명/만료만 확인
    """
    if credentials is None:
        raise AuthenticationError("Authentication required")
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload.model_validate(payload).user_id
    except (JWTError, ValidationError):
        raise AuthenticationError("Invalid authentication credentials")


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """크론 엔드포인트 보호 - CRON_SECRET 미설정 시 검사 생략"""
    cron_secret = settings.CRON_SECRET
    if cron_secret and authorization != f"Bearer {cron_secret}":
        raise AuthenticationError("Invalid cron secret")
