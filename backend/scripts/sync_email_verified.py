#!/usr/bin/env python3
"""Copy the account-level email_verified flag onto member profiles.

One-time reconciliation for profiles created before verification was
mirrored onto the profile row.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session

from database import SessionLocal
from models import AuthAccount, UserProfile

logger = logging.getLogger(__name__)


def sync_email_verified(db: Session, dry_run: bool = False) -> Tuple[int, int]:
    updated = 0
    skipped = 0
    accounts = db.query(AuthAccount).order_by(AuthAccount.created_at.asc(), AuthAccount.uid.asc()).all()
    for account in accounts:
        if not account.email_verified:
            skipped += 1
            continue
        profile = db.query(UserProfile).filter(UserProfile.uid == account.uid).first()
        if not profile:
            logger.info("[SKIP] %s - no profile", account.email)
            skipped += 1
            continue
        if profile.email_verified:
            skipped += 1
            continue
        profile.email_verified = True
        logger.info("[UPDATED] %s", account.email)
        updated += 1

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return updated, skipped


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    parser = argparse.ArgumentParser(description="Sync email_verified from auth accounts onto profiles")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without committing")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        updated, skipped = sync_email_verified(db, dry_run=args.dry_run)
    finally:
        db.close()

    print("Email verification sync summary")
    print(f"- updated: {updated}")
    print(f"- skipped: {skipped}")
    print(f"- mode: {'dry-run' if args.dry_run else 'apply'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
