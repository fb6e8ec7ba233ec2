"""
Tie-Breaking Engine: orders statistically tied teams within a block.

Pipeline:
1. Sort by the initial comparator and group teams whose
   (points, goal_difference, goals_for) are identical.
2. For each group of 2+ teams, apply the enabled rules in ascending order
   until one gives every team a distinct key.
3. Merge the groups back in order and assign positions.
4. Groups still tied after the last rule are reported for a manual lottery.

Each rule kind maps to one pure calculator function. Which kinds a sport may
use comes from tie_breaking_rules.available_rule_kinds(); the per-sport
lookup table is built once and cached.
"""

import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from standings.models.match import MatchRecord
from standings.models.team import TeamStanding
from standings.models.tie_breaking import (
    CalculationOutcome,
    PositionPolicy,
    RuleKind,
    TieBreakingCalculation,
    TieBreakingResult,
    TieBreakingRule,
)
from standings.models.tournament_rules import (
    DEFAULT_POINT_SYSTEM,
    DEFAULT_WALKOVER_SETTINGS,
    PointSystem,
    WalkoverSettings,
)
from standings.services.standings_aggregator import MatchOutcome, resolve_matches, sort_initial
from standings.services.tie_breaking_rules import (
    available_rule_kinds,
    resolve_sport_code,
    rule_label,
    sort_rules,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TieBreakingContext:
    """Read-only inputs shared by all calculators during one run."""

    outcomes: Tuple[MatchOutcome, ...]
    sport_code: str
    point_system: PointSystem = DEFAULT_POINT_SYSTEM


# (reordered group, every team distinguishable)
CalculatorResult = Tuple[List[TeamStanding], bool]
Calculator = Callable[[List[TeamStanding], TieBreakingContext], CalculatorResult]


# =============================================================================
# Calculators
# =============================================================================


def _sort_by_key(teams: List[TeamStanding], key: Callable[[TeamStanding], object]) -> CalculatorResult:
    """Stable sort, best first (ascending key). Resolved iff all keys differ."""
    ordered = sorted(teams, key=key)
    keys = [key(t) for t in ordered]
    return ordered, len(set(keys)) == len(keys)


def by_points(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.points)


def by_goal_difference(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.goal_difference)


def by_goals_for(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.goals_for)


def by_win_rate(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.win_rate)


def by_win_count(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.wins)


def by_podium_count(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, lambda t: -t.podium_count)


def by_fair_play(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    # Fewer fair-play (penalty) points ranks higher
    return _sort_by_key(teams, lambda t: t.fair_play_points)


def _best_time_key(team: TeamStanding) -> Tuple[int, float]:
    # Teams without a time sort after all timed teams and share one key
    if team.best_time is None or team.best_time <= 0:
        return (1, 0.0)
    return (0, float(team.best_time))


def by_best_time(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    return _sort_by_key(teams, _best_time_key)


def by_head_to_head(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    """
    Direct meetings between exactly two tied teams: points first, then goal
    difference in those meetings. Groups of three or more are left as-is.
    """
    if len(teams) != 2:
        return teams, False

    first, second = teams
    meetings = [
        o for o in context.outcomes
        if {o.team1_id, o.team2_id} == {first.team_id, second.team_id}
    ]
    if not meetings:
        return teams, False

    first_points = sum(o.points_for(first.team_id, context.point_system) for o in meetings)
    second_points = sum(o.points_for(second.team_id, context.point_system) for o in meetings)
    if first_points != second_points:
        return ([first, second] if first_points > second_points else [second, first]), True

    first_diff = sum(o.goals_for(first.team_id) - o.goals_against(first.team_id) for o in meetings)
    if first_diff != 0:
        return ([first, second] if first_diff > 0 else [second, first]), True

    return teams, False


def by_lottery(teams: List[TeamStanding], context: TieBreakingContext) -> CalculatorResult:
    # Terminal marker: the caller must collect a manual order
    return teams, False


CALCULATORS: Mapping[RuleKind, Calculator] = MappingProxyType({
    RuleKind.POINTS: by_points,
    RuleKind.GOAL_DIFFERENCE: by_goal_difference,
    RuleKind.RUN_DIFFERENCE: by_goal_difference,
    RuleKind.POINT_DIFFERENCE: by_goal_difference,
    RuleKind.GOALS_FOR: by_goals_for,
    RuleKind.RUNS_SCORED: by_goals_for,
    RuleKind.POINTS_SCORED: by_goals_for,
    RuleKind.WIN_RATE: by_win_rate,
    RuleKind.WIN_COUNT: by_win_count,
    RuleKind.PODIUM_COUNT: by_podium_count,
    RuleKind.FAIR_PLAY: by_fair_play,
    RuleKind.BEST_TIME: by_best_time,
    RuleKind.HEAD_TO_HEAD: by_head_to_head,
    RuleKind.LOTTERY: by_lottery,
})


@lru_cache(maxsize=None)
def _calculator_table(sport: str) -> Mapping[RuleKind, Calculator]:
    return MappingProxyType({kind: CALCULATORS[kind] for kind in available_rule_kinds(sport)})


def calculators_for_sport(sport_code: Optional[str]) -> Mapping[RuleKind, Calculator]:
    """Calculator table for one sport, built once per supported sport."""
    return _calculator_table(resolve_sport_code(sport_code))


# =============================================================================
# Grouping & positions
# =============================================================================


@dataclass
class TiedGroup:
    """Consecutive teams sharing (points, goal_difference, goals_for)."""

    position: int  # 1-based position of the first team in the group
    teams: List[TeamStanding]
    resolved: bool = False


def group_by_statistics(sorted_teams: Sequence[TeamStanding]) -> List[TiedGroup]:
    groups: List[TiedGroup] = []
    for index, team in enumerate(sorted_teams):
        if groups and groups[-1].teams[0].stat_key() == team.stat_key():
            groups[-1].teams.append(team)
        else:
            groups.append(TiedGroup(position=index + 1, teams=[team]))
    for group in groups:
        group.resolved = len(group.teams) == 1
    return groups


def assign_final_positions(groups: Sequence[TiedGroup], policy: PositionPolicy) -> List[TeamStanding]:
    """
    Flatten groups and number them.

    SHARED: every team in a group takes the group's position.
    RESOLVED_ORDER: teams in a rule-resolved group count up from it.
    """
    ordered: List[TeamStanding] = []
    for group in groups:
        for offset, team in enumerate(group.teams):
            if policy == PositionPolicy.RESOLVED_ORDER and group.resolved:
                team.position = group.position + offset
            else:
                team.position = group.position
            ordered.append(team)
    return ordered


def _describe(kind: RuleKind, sport_code: str, team_count: int) -> str:
    return f"Tie-break by {rule_label(kind, sport_code).lower()} ({team_count} teams)"


# =============================================================================
# Entry point
# =============================================================================


def calculate_tie_breaking(
    standings: Iterable[TeamStanding],
    matches: Iterable[MatchRecord],
    sport_code: Optional[str],
    rules: Sequence[TieBreakingRule],
    point_system: PointSystem = DEFAULT_POINT_SYSTEM,
    walkover_settings: WalkoverSettings = DEFAULT_WALKOVER_SETTINGS,
    position_policy: PositionPolicy = PositionPolicy.SHARED,
) -> TieBreakingResult:
    """
    Rank a block's teams, breaking statistical ties with the configured rules.

    The input standings are copied, never mutated. With no rules configured
    every multi-team tie is reported in lotteries_required.
    """
    sport = resolve_sport_code(sport_code)
    teams = sort_initial(dataclasses.replace(t) for t in standings)
    context = TieBreakingContext(
        outcomes=tuple(resolve_matches(matches, walkover_settings)),
        sport_code=sport,
        point_system=point_system,
    )
    calculators = calculators_for_sport(sport)
    chain = sort_rules(rules)

    calculations: List[TieBreakingCalculation] = []
    lotteries_required: List[List[str]] = []
    tie_breaking_applied = False

    groups = group_by_statistics(teams)
    for group in groups:
        if len(group.teams) <= 1:
            continue

        affected = [t.team_id for t in group.teams]
        group_teams = list(group.teams)
        resolved = False

        for rule in chain:
            calculator = calculators.get(rule.kind)
            if calculator is None:
                logger.debug("Rule %s is not available for %s; skipped", rule.kind.value, sport)
                continue

            try:
                group_teams, resolved = calculator(list(group_teams), context)
            except Exception as exc:
                logger.exception("Tie-break rule %s failed for teams %s", rule.kind.value, affected)
                calculations.append(TieBreakingCalculation(
                    rule_type=rule.kind.value,
                    teams_affected=list(affected),
                    description=f"Calculation error: {exc}",
                    result=CalculationOutcome.UNRESOLVED,
                ))
                resolved = False
                continue

            calculations.append(TieBreakingCalculation(
                rule_type=rule.kind.value,
                teams_affected=list(affected),
                description=_describe(rule.kind, sport, len(group_teams)),
                result=CalculationOutcome.RESOLVED if resolved else CalculationOutcome.UNRESOLVED,
            ))
            if resolved:
                tie_breaking_applied = True
                break

        group.teams = group_teams
        group.resolved = resolved

        if not resolved:
            remaining = [t.team_id for t in group_teams]
            lotteries_required.append(remaining)
            calculations.append(TieBreakingCalculation(
                rule_type=RuleKind.LOTTERY.value,
                teams_affected=remaining,
                description=f"Positions must be decided by lottery ({len(remaining)} teams)",
                result=CalculationOutcome.LOTTERY_REQUIRED,
            ))
            logger.info("Lottery required for teams %s at position %d", ",".join(remaining), group.position)

    return TieBreakingResult(
        teams=assign_final_positions(groups, position_policy),
        tie_breaking_applied=tie_breaking_applied,
        lotteries_required=lotteries_required,
        calculations=calculations,
    )


def requires_manual_ranking(result: TieBreakingResult) -> bool:
    return len(result.lotteries_required) > 0
