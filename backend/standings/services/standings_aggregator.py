"""
Standings Aggregator: per-team statistics for one block from confirmed matches.

Pure function of its inputs. Every call builds fresh TeamStanding objects;
nothing is cached or persisted between calls.

Data inconsistencies (unknown teams, missing winners, malformed scores) are
logged and skipped. Partial standings are always returned.
"""
import logging
import unicodedata
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from standings.models.match import MatchRecord
from standings.models.team import RosterTeam, TeamStanding
from standings.models.tournament_rules import (
    DEFAULT_POINT_SYSTEM,
    DEFAULT_WALKOVER_SETTINGS,
    PointSystem,
    WalkoverSettings,
)
from standings.services.score_parser import parse_total_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchOutcome:
    """Counted result of one confirmed match (totals already resolved)."""

    match_id: int
    team1_id: str
    team2_id: str
    team1_goals: int
    team2_goals: int
    winner_team_id: Optional[str]  # None = draw
    is_walkover: bool = False

    @property
    def is_draw(self) -> bool:
        return self.winner_team_id is None

    def goals_for(self, team_id: str) -> int:
        return self.team1_goals if team_id == self.team1_id else self.team2_goals

    def goals_against(self, team_id: str) -> int:
        return self.team2_goals if team_id == self.team1_id else self.team1_goals

    def points_for(self, team_id: str, point_system: PointSystem) -> int:
        if self.is_draw:
            return point_system.draw
        if self.winner_team_id == team_id:
            return point_system.win
        return point_system.loss


def resolve_match(
    match: MatchRecord,
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
) -> Optional[MatchOutcome]:
    """
    Decide whether a match counts and, if so, its totals and winner.

    Returns None for unconfirmed matches, matches without a recorded score,
    and matches whose outcome cannot be determined.
    """
    if not match.is_confirmed:
        return None

    if match.is_walkover:
        return _resolve_walkover(match, walkover_settings)

    team1_goals = parse_total_score(match.team1_scores)
    team2_goals = parse_total_score(match.team2_scores)
    if team1_goals is None or team2_goals is None:
        logger.debug("Match %s has no recorded score; not counted", match.match_id)
        return None

    if match.is_draw:
        winner = None
    else:
        winner = match.winner_team_id
        if winner is not None and not match.involves(winner):
            logger.warning(
                "Match %s winner %s is not one of its teams; deciding by score",
                match.match_id,
                winner,
            )
            winner = None
        if winner is None:
            if team1_goals > team2_goals:
                winner = match.team1_id
            elif team2_goals > team1_goals:
                winner = match.team2_id
            else:
                logger.warning(
                    "Match %s is level %d-%d but neither drawn nor decided; not counted",
                    match.match_id,
                    team1_goals,
                    team2_goals,
                )
                return None

    return MatchOutcome(
        match_id=match.match_id,
        team1_id=match.team1_id,
        team2_id=match.team2_id,
        team1_goals=team1_goals,
        team2_goals=team2_goals,
        winner_team_id=winner,
    )


def _resolve_walkover(match: MatchRecord, settings: WalkoverSettings) -> Optional[MatchOutcome]:
    # Both sides absent: counted as a 0-0 draw
    if match.is_draw:
        return MatchOutcome(
            match_id=match.match_id,
            team1_id=match.team1_id,
            team2_id=match.team2_id,
            team1_goals=0,
            team2_goals=0,
            winner_team_id=None,
            is_walkover=True,
        )

    winner = match.winner_team_id
    if winner is None or not match.involves(winner):
        logger.warning("Walkover match %s has no valid winner (%r); not counted", match.match_id, winner)
        return None

    if winner == match.team1_id:
        team1_goals, team2_goals = settings.winner_goals, settings.loser_goals
    else:
        team1_goals, team2_goals = settings.loser_goals, settings.winner_goals

    return MatchOutcome(
        match_id=match.match_id,
        team1_id=match.team1_id,
        team2_id=match.team2_id,
        team1_goals=team1_goals,
        team2_goals=team2_goals,
        winner_team_id=winner,
        is_walkover=True,
    )


def resolve_matches(
    matches: Iterable[MatchRecord],
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
) -> List[MatchOutcome]:
    """All counted outcomes, in match_id order."""
    outcomes = []
    for match in sorted(matches, key=lambda m: m.match_id):
        outcome = resolve_match(match, walkover_settings)
        if outcome is not None:
            outcomes.append(outcome)
    return outcomes


# -----------------------------------------------------------------------------
# Initial ordering
# -----------------------------------------------------------------------------


def display_name_key(name: Optional[str]) -> str:
    """Case- and width-insensitive comparison key for team names."""
    return unicodedata.normalize("NFKC", name or "").casefold()


def initial_sort_key(standing: TeamStanding) -> tuple:
    """
    Points desc, goal difference desc, goals for desc, then display name.

    The name (and team id) only give a stable starting order; they never
    decide a final position.
    """
    return (
        -standing.points,
        -standing.goal_difference,
        -standing.goals_for,
        display_name_key(standing.team_name),
        standing.team_name,
        standing.team_id,
    )


def sort_initial(standings: Iterable[TeamStanding]) -> List[TeamStanding]:
    return sorted(standings, key=initial_sort_key)


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------


def _new_standing(team: RosterTeam) -> TeamStanding:
    return TeamStanding(
        team_id=team.team_id,
        team_name=team.team_name,
        short_name=team.short_name,
        best_time=team.best_time,
        fair_play_points=team.fair_play_points,
        podium_count=team.podium_count,
    )


def aggregate_block_standings(
    roster: Sequence[RosterTeam],
    matches: Iterable[MatchRecord],
    point_system: PointSystem = DEFAULT_POINT_SYSTEM,
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
) -> List[TeamStanding]:
    """
    Build one TeamStanding per roster team from the block's matches.

    Returns standings in initial order (see initial_sort_key) with
    position left at 0; positions are assigned by the tie-breaking engine.
    """
    table: Dict[str, TeamStanding] = {}
    for team in roster:
        if team.team_id in table:
            logger.warning("Duplicate roster entry for team %s ignored", team.team_id)
            continue
        table[team.team_id] = _new_standing(team)

    for outcome in resolve_matches(matches, walkover_settings):
        for team_id in (outcome.team1_id, outcome.team2_id):
            standing = table.get(team_id)
            if standing is None:
                logger.warning(
                    "Match %s references team %s which is not in the block roster",
                    outcome.match_id,
                    team_id,
                )
                continue
            _apply_outcome(standing, outcome, point_system)

    return sort_initial(table.values())


def _apply_outcome(standing: TeamStanding, outcome: MatchOutcome, point_system: PointSystem) -> None:
    team_id = standing.team_id
    standing.matches_played += 1
    standing.goals_for += outcome.goals_for(team_id)
    standing.goals_against += outcome.goals_against(team_id)
    standing.points += outcome.points_for(team_id, point_system)

    if outcome.is_draw:
        standing.draws += 1
    elif outcome.winner_team_id == team_id:
        standing.wins += 1
        if outcome.is_walkover:
            standing.walkover_wins += 1
    else:
        standing.losses += 1
        if outcome.is_walkover:
            standing.walkover_losses += 1


def group_matches_by_block(matches: Iterable[MatchRecord]) -> Dict[Optional[int], List[MatchRecord]]:
    """Split a tournament's match list by match_block_id."""
    grouped: Dict[Optional[int], List[MatchRecord]] = defaultdict(list)
    for match in matches:
        grouped[match.match_block_id].append(match)
    return dict(grouped)
