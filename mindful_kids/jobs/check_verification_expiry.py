"""Re-verification check for psychologists and credentials.

Run daily from cron:
    python -m mindful_kids.jobs.check_verification_expiry
Mark expired verifications:
    python -m mindful_kids.jobs.check_verification_expiry --apply
"""
import argparse
import json
import logging
import sys

from ..core.logging import setup_logging
from ..database import SessionLocal
from ..services.expiry_service import WARN_DAYS, check_verification_expiry

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Report (and optionally apply) verification expiry.")
    parser.add_argument("--apply", action="store_true", help="mark expired psychologists and credentials")
    parser.add_argument("--warn-days", type=int, default=WARN_DAYS, help="warning window in days")
    args = parser.parse_args(argv)

    setup_logging()
    db = SessionLocal()
    try:
        report = check_verification_expiry(db, apply=args.apply, warn_days=args.warn_days)
    except Exception:
        logger.exception("Verification expiry check failed")
        return 1
    finally:
        db.close()

    print(json.dumps(report, indent=2, default=str))
    return 1 if report["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
