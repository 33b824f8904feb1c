#!/usr/bin/env python3
"""
Pending payment expiry job runner

Moves PENDING payments older than PAYMENT_EXPIRY_MINUTES to EXPIRED.
Designed to run from cron every few minutes; safe to run concurrently with
webhooks and status polling.

Usage:
    # Expire with the configured timeout
    python -m scripts.expire_pending_payments

    # List what would expire without changing anything
    python -m scripts.expire_pending_payments --dry-run

    # Custom timeout
    python -m scripts.expire_pending_payments --older-than-minutes 30
"""

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from upi_gateway.infrastructure.database import SessionLocal
from upi_gateway.infrastructure.logging_config import setup_logging, trace_id_context
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.services.payment_service import expire_stale_payments


def generate_trace_id(now: datetime) -> str:
    """Format: job-expire-payments-YYYYMMDDHHMM-<shortuuid>"""
    return f"job-expire-payments-{now.strftime('%Y%m%d%H%M')}-{str(uuid4())[:8]}"


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the job runner; returns the exit code"""
    parser = argparse.ArgumentParser(
        description='Expire stale PENDING payments',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        '--older-than-minutes',
        type=int,
        default=None,
        help='Expire payments older than this (default: PAYMENT_EXPIRY_MINUTES)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List payments that would expire without changing them'
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    minutes = args.older_than_minutes if args.older_than_minutes is not None else settings.PAYMENT_EXPIRY_MINUTES
    if minutes <= 0:
        print(json.dumps({
            "job": "expire_pending_payments",
            "error": "--older-than-minutes must be greater than 0",
            "exit_code": 2,
        }), file=sys.stderr)
        return 2

    now = datetime.now(timezone.utc)
    trace_id = generate_trace_id(now)
    trace_id_context.set(trace_id)

    db = SessionLocal()
    try:
        expired = expire_stale_payments(
            db=db,
            now=now,
            older_than=timedelta(minutes=minutes),
            dry_run=args.dry_run,
        )
        print(json.dumps({
            "job": "expire_pending_payments",
            "trace_id": trace_id,
            "older_than_minutes": minutes,
            "dry_run": args.dry_run,
            "expired_count": len(expired),
            "transaction_ids": expired,
            "exit_code": 0,
        }))
        return 0

    except SQLAlchemyError as e:
        db.rollback()
        print(json.dumps({
            "job": "expire_pending_payments",
            "trace_id": trace_id,
            "dry_run": args.dry_run,
            "error": f"Database error: {type(e).__name__}: {str(e)}",
            "exit_code": 1,
        }), file=sys.stderr)
        return 1

    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
