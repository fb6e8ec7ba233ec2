"""
Standings Service - block and tournament standings in one call.

Runs the aggregator and the tie-breaking engine for a block:
1. Aggregate per-team statistics from confirmed matches
2. Rank and break ties with the phase's rule chain

Blocks are independent; a tournament is computed block by block and the
results collected by block id.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from standings.models.match import MatchRecord
from standings.models.team import RosterTeam
from standings.models.tie_breaking import PositionPolicy, TieBreakingResult, TieBreakingRule
from standings.models.tournament_rules import (
    DEFAULT_POINT_SYSTEM,
    DEFAULT_WALKOVER_SETTINGS,
    PointSystem,
    WalkoverSettings,
)
from standings.services.standings_aggregator import aggregate_block_standings
from standings.services.tie_breaking_engine import calculate_tie_breaking

logger = logging.getLogger(__name__)


@dataclass
class BlockInput:
    """Roster and matches of one block, as fetched by the caller."""

    roster: List[RosterTeam]
    matches: List[MatchRecord] = field(default_factory=list)


def compute_block_standings(
    roster: Sequence[RosterTeam],
    matches: Sequence[MatchRecord],
    sport_code: Optional[str],
    rules: Sequence[TieBreakingRule],
    point_system: PointSystem = DEFAULT_POINT_SYSTEM,
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
    position_policy: PositionPolicy = PositionPolicy.SHARED,
) -> TieBreakingResult:
    standings = aggregate_block_standings(roster, matches, point_system, walkover_settings)
    result = calculate_tie_breaking(
        standings,
        matches,
        sport_code,
        rules,
        point_system=point_system,
        walkover_settings=walkover_settings,
        position_policy=position_policy,
    )
    logger.debug(
        "Block standings: %d teams, %d matches, %d rule applications, %d lotteries",
        len(result.teams),
        len(matches),
        len(result.calculations),
        len(result.lotteries_required),
    )
    return result


def compute_tournament_standings(
    blocks: Mapping[int, BlockInput],
    sport_code: Optional[str],
    rules: Sequence[TieBreakingRule],
    point_system: PointSystem = DEFAULT_POINT_SYSTEM,
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
    position_policy: PositionPolicy = PositionPolicy.SHARED,
) -> Dict[int, TieBreakingResult]:
    """Standings for every block, keyed and ordered by block id."""
    results: Dict[int, TieBreakingResult] = {}
    for block_id in sorted(blocks):
        block = blocks[block_id]
        results[block_id] = compute_block_standings(
            block.roster,
            block.matches,
            sport_code,
            rules,
            point_system=point_system,
            walkover_settings=walkover_settings,
            position_policy=position_policy,
        )

    pending = [block_id for block_id, r in results.items() if r.lotteries_required]
    logger.info(
        "Tournament standings computed for %d blocks; blocks awaiting lottery: %s",
        len(results),
        pending or "none",
    )
    return results
