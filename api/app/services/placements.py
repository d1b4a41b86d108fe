"""
Placement XP.

Rewards stack: a finisher receives its podium reward (if any) plus every
percentile tier it qualifies for, each as its own ledger row. Podium
finishers qualify for all percentile tiers regardless of field size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from sqlalchemy.orm import Session

from .. import events
from ..cache import cache_invalidate
from ..errors import ContestNotEnded, PlacementsAlreadyAwarded
from ..utils.time import utcnow
from .contests import get_contest
from .phase import ContestPhase, resolve_phase
from .ranking import RankedEntry, percentile, rank_contest
from .xp import XPAction, XPChange, award_action, publish_level_change

logger = logging.getLogger(__name__)

PODIUM_ACTIONS: dict[int, XPAction] = {
    1: XPAction.PLACE_1ST,
    2: XPAction.PLACE_2ND,
    3: XPAction.PLACE_3RD,
}

# (inclusive percentile ceiling, tier); a placement earns every tier whose
# ceiling it is within.
PERCENTILE_TIERS: tuple[tuple[int, XPAction], ...] = (
    (10, XPAction.TOP_10_PERCENT),
    (25, XPAction.TOP_25_PERCENT),
    (50, XPAction.TOP_50_PERCENT),
)


def placement_rewards(placement: int, total_participants: int) -> list[XPAction]:
    """Every reward bucket a placement earns, podium first."""
    rewards: list[XPAction] = []
    podium = PODIUM_ACTIONS.get(placement)
    if podium:
        rewards.append(podium)
        rewards.extend(tier for _, tier in PERCENTILE_TIERS)
        return rewards

    pct = percentile(placement, total_participants)
    rewards.extend(tier for ceiling, tier in PERCENTILE_TIERS if pct <= ceiling)
    return rewards


@dataclass
class PlacementAward:
    entry: RankedEntry
    actions: list[XPAction] = field(default_factory=list)
    xp_awarded: int = 0


@dataclass
class PlacementReport:
    contest_id: int
    participants: int = 0
    awards: list[PlacementAward] = field(default_factory=list)
    changes: list[XPChange] = field(default_factory=list)

    @property
    def awarded_user_ids(self) -> set[str]:
        return {award.entry.owner_id for award in self.awards if award.actions}

    @property
    def transaction_count(self) -> int:
        return sum(len(award.actions) for award in self.awards)

    def net_changes(self) -> list[XPChange]:
        """One change per user, from their level before the first award to after the last."""
        net: dict[str, XPChange] = {}
        for change in self.changes:
            first = net.get(change.user_id)
            if first is None:
                net[change.user_id] = change
            else:
                net[change.user_id] = replace(
                    first, new_xp=change.new_xp, new_level=change.new_level
                )
        return list(net.values())


def award_contest_placements(
    db: Session,
    contest_id: int,
    *,
    allow_repeat: bool = False,
    commit: bool = True,
    now: datetime | None = None,
) -> PlacementReport:
    """
    Rank an ended contest and write placement XP for every qualifying entry.

    All ledger rows and the ``placements_awarded_at`` stamp go out in a single
    commit, so a failure part-way leaves no awards behind and the contest is
    still eligible for a clean retry.

    Refuses to run twice for a contest unless ``allow_repeat`` is set, which
    only the recalculation job does after reversing the previous awards. With
    ``commit=False`` the caller owns the transaction and no hooks fire.
    """
    contest = get_contest(db, contest_id)
    if resolve_phase(contest, now or utcnow()) != ContestPhase.ENDED:
        raise ContestNotEnded()
    if contest.placements_awarded_at is not None and not allow_repeat:
        raise PlacementsAlreadyAwarded()
    title = contest.title

    report = PlacementReport(contest_id=contest_id)
    try:
        ranking = rank_contest(db, contest_id)
        report.participants = len(ranking)
        if not ranking:
            logger.info(f"No photos found for contest {contest_id}; no placement XP awarded")

        for entry in ranking:
            award = PlacementAward(entry=entry)
            for action in placement_rewards(entry.placement, report.participants):
                change = award_action(
                    db,
                    entry.owner_id,
                    action,
                    contest_id=contest_id,
                    photo_id=entry.photo_id,
                    commit=False,
                )
                award.actions.append(action)
                award.xp_awarded += change.xp_delta
                report.changes.append(change)
            report.awards.append(award)

        contest.placements_awarded_at = utcnow()
        if commit:
            db.commit()
        else:
            db.flush()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Awarded placement XP for contest {contest_id}: {report.transaction_count} transaction(s) "
        f"to {len(report.awarded_user_ids)} user(s) across {report.participants} participant(s)"
    )
    if not commit:
        return report

    cache_invalidate("xp:leaderboard:*")
    for change in report.net_changes():
        publish_level_change(change)
    events.emit(
        events.CONTEST_ENDED,
        contest_id=contest_id,
        title=title,
        participant_ids=sorted({entry.owner_id for entry in ranking}),
        winners=[entry.to_dict() for entry in ranking[:3]],
    )
    return report
