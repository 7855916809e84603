"""
주기 작업 수동 실행 스크립트 (HTTP 크론 엔드포인트와 동일한 로직)

usage: python scripts/run_sweeps.py [retention|expire|all]
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rewardsapi.config import settings
from rewardsapi.database.session import get_db_context
from rewardsapi.logging_config import setup_logging
from rewardsapi.services.point_service import PointService
from rewardsapi.services.referral_service import ReferralService


def run(job: str = "all"):
    setup_logging(settings.LOG_LEVEL)
    with get_db_context() as db:
        if job in ("retention", "all"):
            result = ReferralService(db, settings).run_retention_sweep()
            print(f"Retention sweep: {result.model_dump()}")
        if job in ("expire", "all"):
            expired = PointService(db, settings).expire_due_entries()
            print(f"Expired {expired} pending entries")


if __name__ == "__main__":
    run(sys.argv[1] if len(sys.argv) > 1 else "all")
