from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from rewardsapi.database.connection import SessionLocal


def get_db() -> Iterator[Session]:
    """요청 단위 세션 - 커밋은 서비스가 담당, 예외 시 열린 트랜잭션만 롤백"""
    with SessionLocal() as db:
        try:
            yield db
        except Exception:
            if db.in_transaction():
                db.rollback()
            raise


@contextmanager
def get_db_context() -> Iterator[Session]:
    """스크립트/크론용 세션 - 정상 종료 시 커밋"""
    with SessionLocal() as db:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
