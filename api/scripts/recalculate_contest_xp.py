#!/usr/bin/env python3
"""
Contest XP Recalculation Script

Reverses every placement award of one contest, awards placements again from
the current votes, and reconciles each affected user against their ledger.
Safe to re-run: a failed run is recovered by running it again.

Usage (from within the API container):
    python /workspace/api/scripts/recalculate_contest_xp.py CONTEST_ID

Options:
    --dry-run     Show the transactions that would be removed and the new ranking
    --no-lock     Skip the Redis contest lock
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from pathlib import Path

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Add the app to the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.cache import contest_lock  # noqa: E402
from app.db import SessionLocal  # noqa: E402
from app.errors import ContestEngineError  # noqa: E402
from app.services.placements import placement_rewards  # noqa: E402
from app.services.ranking import rank_contest  # noqa: E402
from app.services.recalculation import find_placement_transactions, recalculate_contest_xp  # noqa: E402


def dry_run(db, contest_id: int) -> None:
    transactions = find_placement_transactions(db, contest_id)
    logger.info(f"Would remove {len(transactions)} transaction(s):")
    for tx in transactions:
        logger.info(f"  #{tx.id} user={tx.user_id} {tx.action_type} {tx.xp_amount:+d} ({tx.reason})")

    ranking = rank_contest(db, contest_id)
    logger.info(f"Would award placements for {len(ranking)} photo(s):")
    for entry in ranking:
        actions = ", ".join(a.value for a in placement_rewards(entry.placement, len(ranking)))
        logger.info(
            f"  #{entry.placement} photo={entry.photo_id} owner={entry.owner_id} "
            f"score={entry.total_score} votes={entry.vote_count} -> {actions or 'nothing'}"
        )


def main() -> int:
    parser = argparse.ArgumentParser(description="Recalculate placement XP for one contest")
    parser.add_argument("contest_id", type=int, help="Contest ID")
    parser.add_argument("--dry-run", action="store_true", help="Preview without making changes")
    parser.add_argument("--no-lock", action="store_true", help="Do not take the Redis contest lock")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.dry_run:
            dry_run(db, args.contest_id)
            return 0

        lock = contextlib.nullcontext() if args.no_lock else contest_lock(args.contest_id)
        with lock:
            report = recalculate_contest_xp(db, args.contest_id)

        logger.info("=" * 60)
        logger.info(f"Contest {args.contest_id} recalculated")
        logger.info(f"  Transactions removed: {len(report.removed_transaction_ids)}")
        logger.info(f"  Transactions awarded: {report.placements.transaction_count}")
        for change in report.reconciled:
            logger.info(
                f"  {change.user_id}: {change.new_xp} XP, level {change.new_level}"
            )
        logger.info("=" * 60)
        return 0
    except ContestEngineError as e:
        logger.error(f"Recalculation refused: {e.detail}")
        return 1
    except Exception as e:
        logger.error(f"Recalculation failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
