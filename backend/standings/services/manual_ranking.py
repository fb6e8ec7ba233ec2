"""
Manual ranking: apply an organiser-decided order (e.g. after a drawn lottery)
to a tie group the engine could not resolve.

Invariants:
1. Only a group currently listed in lotteries_required can be ordered
2. The supplied ids must be exactly that group's members, each once
3. Teams outside the group keep their place and position
4. The input result is never mutated
"""

import dataclasses
import logging
from typing import List, Sequence

from standings.models.tie_breaking import (
    CalculationOutcome,
    TieBreakingCalculation,
    TieBreakingResult,
)

logger = logging.getLogger(__name__)

MANUAL_RULE_TYPE = "manual"


class ManualRankingError(Exception):
    """Base exception for manual ranking errors"""
    pass


class ManualRankingValidationError(ManualRankingError):
    """Supplied order does not match a pending lottery group"""
    pass


def _find_lottery_group(result: TieBreakingResult, team_ids: Sequence[str]) -> int:
    wanted = set(team_ids)
    for index, group in enumerate(result.lotteries_required):
        if set(group) == wanted and len(group) == len(team_ids):
            return index
    raise ManualRankingValidationError(
        f"Teams {','.join(team_ids)} do not form a tie group awaiting lottery"
    )


def apply_manual_ranking(result: TieBreakingResult, ordered_team_ids: Sequence[str]) -> TieBreakingResult:
    """
    Return a new result with one lottery group placed in the given order.

    Raises:
        ManualRankingValidationError if the ids are empty, repeated, not
        exactly one pending lottery group, or not adjacent teams of the
        standings.
    """
    ids: List[str] = [str(t) for t in ordered_team_ids]
    if len(ids) < 2:
        raise ManualRankingValidationError("A manual order needs at least two teams")
    if len(set(ids)) != len(ids):
        raise ManualRankingValidationError("A team appears more than once in the manual order")

    group_index = _find_lottery_group(result, ids)

    teams = [dataclasses.replace(t) for t in result.teams]
    slot_indexes = [i for i, t in enumerate(teams) if t.team_id in set(ids)]
    if len(slot_indexes) != len(ids):
        raise ManualRankingValidationError("Tie group members are missing from the standings")
    start = slot_indexes[0]
    if slot_indexes != list(range(start, start + len(ids))):
        raise ManualRankingValidationError("Tie group members are not adjacent in the standings")

    by_id = {t.team_id: t for t in teams[start:start + len(ids)]}
    base_position = teams[start].position
    for offset, team_id in enumerate(ids):
        team = by_id[team_id]
        team.position = base_position + offset
        teams[start + offset] = team

    lotteries = [list(g) for i, g in enumerate(result.lotteries_required) if i != group_index]
    calculations = [dataclasses.replace(c, teams_affected=list(c.teams_affected)) for c in result.calculations]
    calculations.append(TieBreakingCalculation(
        rule_type=MANUAL_RULE_TYPE,
        teams_affected=ids,
        description=f"Positions set manually ({len(ids)} teams)",
        result=CalculationOutcome.RESOLVED,
    ))
    logger.info("Manual order applied for teams %s from position %d", ",".join(ids), base_position)

    return TieBreakingResult(
        teams=teams,
        tie_breaking_applied=True,
        lotteries_required=lotteries,
        calculations=calculations,
    )
