"""
Contest placement recalculation.

A compensating procedure for bad placement awards: reverse every placement
row of one contest, award placements again from the current votes, then
reconcile every touched user against their full ledger. Each step is safe to
repeat, so re-running from scratch is the recovery path after a failure.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_invalidate
from ..errors import ContestNotEnded
from .contests import get_contest
from .levels import level_from_xp
from .phase import ContestPhase, resolve_phase
from .placements import PlacementReport, award_contest_placements
from .xp import (
    LEGACY_PLACEMENT_REASONS,
    PLACEMENT_ACTIONS,
    XPCategory,
    XPChange,
    publish_level_change,
    recompute_user_totals,
)

logger = logging.getLogger(__name__)


@dataclass
class RecalculationReport:
    contest_id: int
    removed_transaction_ids: list[int] = field(default_factory=list)
    removed_by_user: dict[str, int] = field(default_factory=dict)
    placements: PlacementReport | None = None
    reconciled: list[XPChange] = field(default_factory=list)

    @property
    def affected_user_ids(self) -> list[str]:
        return sorted(change.user_id for change in self.reconciled)


def find_placement_transactions(db: Session, contest_id: int) -> list[models.XPTransaction]:
    """
    Placement rows for a contest.

    Categorized rows match on category or action type; rows written before
    categorization existed fall back to the reason text.
    """
    legacy_reason = or_(
        *[models.XPTransaction.reason.ilike(f"%{phrase}%") for phrase in LEGACY_PLACEMENT_REASONS]
    )
    rows = (
        db.query(models.XPTransaction)
        .filter(
            models.XPTransaction.contest_id == contest_id,
            or_(
                models.XPTransaction.category == XPCategory.PLACEMENT.value,
                models.XPTransaction.action_type.in_([a.value for a in PLACEMENT_ACTIONS]),
                and_(models.XPTransaction.category.is_(None), legacy_reason),
            ),
        )
        .order_by(models.XPTransaction.id.asc())
        .all()
    )
    seen: set[int] = set()
    unique = []
    for row in rows:
        if row.id not in seen:
            seen.add(row.id)
            unique.append(row)
    return unique


def _reverse_transactions(
    db: Session, transactions: list[models.XPTransaction], report: RecalculationReport
) -> dict[str, tuple[int, int]]:
    """
    Subtract the rows from cached totals, then delete exactly those rows.

    Returns each reversed user's (xp, level) as it stood before the reversal.
    """
    per_user: dict[str, int] = defaultdict(int)
    for tx in transactions:
        per_user[tx.user_id] += tx.xp_amount

    baseline: dict[str, tuple[int, int]] = {}
    for user_id, amount in sorted(per_user.items()):
        user = (
            db.query(models.User)
            .filter(models.User.id == user_id)
            .with_for_update()
            .first()
        )
        if user is None:
            logger.warning(f"User {user_id} not found while reversing placement XP")
            continue
        old_xp = user.xp or 0
        baseline[user_id] = (old_xp, user.level or 0)
        user.xp = max(0, old_xp - amount)
        user.level = level_from_xp(user.xp)
        logger.info(f"  Reversed {amount} XP from user {user_id}: {old_xp} -> {user.xp}")

    report.removed_transaction_ids = [tx.id for tx in transactions]
    for tx in transactions:
        db.delete(tx)
    db.flush()

    report.removed_by_user = dict(per_user)
    return baseline


def recalculate_contest_xp(db: Session, contest_id: int) -> RecalculationReport:
    """
    Undo and redo the placement XP of one ended contest.

    Reversal, re-award and reconciliation share one commit; a failure leaves
    the ledger as it was. Running it twice on an unchanged vote set leaves
    every user's XP and level where the first run left them, and level hooks
    fire only for the net change.
    """
    contest = get_contest(db, contest_id)
    if resolve_phase(contest) != ContestPhase.ENDED:
        raise ContestNotEnded()
    report = RecalculationReport(contest_id=contest_id)
    logger.info(f"Recalculating placement XP for contest {contest_id} ({contest.title})")

    try:
        transactions = find_placement_transactions(db, contest_id)
        logger.info(f"Found {len(transactions)} placement transaction(s) to remove")
        baseline = _reverse_transactions(db, transactions, report)

        logger.info("Awarding placements from current votes")
        report.placements = award_contest_placements(
            db, contest_id, allow_repeat=True, commit=False
        )
        for change in report.placements.changes:
            baseline.setdefault(change.user_id, (change.old_xp, change.old_level))

        logger.info(f"Reconciling {len(baseline)} user(s) against their ledgers")
        for user_id in sorted(baseline):
            reconciled = recompute_user_totals(db, user_id, commit=False)
            old_xp, old_level = baseline[user_id]
            report.reconciled.append(replace(reconciled, old_xp=old_xp, old_level=old_level))
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Recalculation for contest {contest_id} aborted", exc_info=True)
        raise

    cache_invalidate("xp:leaderboard:*")
    for change in report.reconciled:
        publish_level_change(change)

    logger.info(
        f"Recalculation for contest {contest_id} complete: removed {len(report.removed_transaction_ids)}, "
        f"awarded {report.placements.transaction_count}, reconciled {len(report.reconciled)} user(s)"
    )
    return report
