from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# PostgreSQL에서는 BIGINT, SQLite에서는 INTEGER PRIMARY KEY(자동 증가)로 매핑
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class BaseModel(Base):
    """모든 테이블 공통 컬럼 (created_at / updated_at)

    created_at은 원장/리텐션 계산 기준이므로 생성 후 변경하지 않습니다.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
