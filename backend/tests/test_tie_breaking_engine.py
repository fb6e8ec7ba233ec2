"""
Tests for the Tie-Breaking Engine: grouping, rule chains, positions, lotteries.
"""

import itertools

import pytest

from standings import config
from standings.models.match import MatchRecord
from standings.models.team import RosterTeam, TeamStanding
from standings.models.tie_breaking import (
    CalculationOutcome,
    PositionPolicy,
    RuleKind,
    TieBreakingRule,
)
from standings.services import tie_breaking_engine
from standings.services.standings_aggregator import aggregate_block_standings
from standings.services.tie_breaking_engine import (
    by_head_to_head,
    calculate_tie_breaking,
    calculators_for_sport,
    group_by_statistics,
    requires_manual_ranking,
)

_ids = itertools.count(1)


def _roster(*names: str) -> list[RosterTeam]:
    return [RosterTeam(team_id=n, team_name=f"Team {n}") for n in names]


def _match(t1: str, t2: str, s1, s2, **kwargs) -> MatchRecord:
    kwargs.setdefault("is_confirmed", True)
    return MatchRecord(match_id=next(_ids), team1_id=t1, team2_id=t2, team1_scores=s1, team2_scores=s2, **kwargs)


def _rules(*kinds: RuleKind) -> list[TieBreakingRule]:
    return [TieBreakingRule(kind=k, order=i) for i, k in enumerate(kinds, start=1)]


def _standing(team_id: str, **stats) -> TeamStanding:
    return TeamStanding(team_id=team_id, team_name=f"Team {team_id}", **stats)


def _run(roster, matches, rules, sport="soccer", **kwargs):
    standings = aggregate_block_standings(roster, matches)
    return calculate_tie_breaking(standings, matches, sport, rules, **kwargs)


def _order(result):
    return [t.team_id for t in result.teams]


def _positions(result):
    return {t.team_id: t.position for t in result.teams}


# -----------------------------------------------------------------------------
# Fixtures: small blocks with known ties
# -----------------------------------------------------------------------------


@pytest.fixture
def two_way_tie_block():
    """
    A and B each win once and lose once against different opponents and end
    level on points (3), goal difference (+2) and goals (3).
    C finishes first on 6 points; D last.
    """
    matches = [
        _match("A", "C", 3, 0),
        _match("D", "A", 1, 0),
        _match("B", "D", 3, 0),
        _match("C", "B", 1, 0),
        _match("C", "D", 1, 0),
    ]
    return _roster("A", "B", "C", "D"), matches


@pytest.fixture
def head_to_head_block():
    """A beat B 2-0; both finish on 3 pts, GD 0, GF 2. C first, D last."""
    matches = [
        _match("A", "B", 2, 0),
        _match("C", "A", 2, 0),
        _match("B", "D", 2, 0),
    ]
    return _roster("A", "B", "C", "D"), matches


@pytest.fixture
def circular_block():
    """A beats B, B beats C, C beats A, all 2-0: a perfect three-way tie."""
    matches = [
        _match("A", "B", 2, 0),
        _match("B", "C", 2, 0),
        _match("C", "A", 2, 0),
    ]
    return _roster("A", "B", "C"), matches


# -----------------------------------------------------------------------------
# Scenarios
# -----------------------------------------------------------------------------


class TestNoRulesConfigured:

    def test_tied_teams_share_position_and_need_lottery(self, two_way_tie_block):
        roster, matches = two_way_tie_block
        result = _run(roster, matches, [])

        assert _order(result) == ["C", "A", "B", "D"]
        assert _positions(result) == {"C": 1, "A": 2, "B": 2, "D": 4}
        assert result.lotteries_required == [["A", "B"]]
        assert result.lottery_keys() == ["A,B"]
        assert result.tie_breaking_applied is False
        assert requires_manual_ranking(result)

    def test_only_lottery_entry_is_logged(self, two_way_tie_block):
        roster, matches = two_way_tie_block
        result = _run(roster, matches, [])
        assert len(result.calculations) == 1
        entry = result.calculations[0]
        assert entry.rule_type == "lottery"
        assert entry.result == CalculationOutcome.LOTTERY_REQUIRED
        assert entry.teams_affected == ["A", "B"]

    def test_no_ties_no_lottery(self):
        matches = [_match("A", "B", 2, 0), _match("B", "C", 2, 1), _match("A", "C", 1, 0)]
        result = _run(_roster("A", "B", "C"), matches, [])
        assert _positions(result) == {"A": 1, "B": 2, "C": 3}
        assert result.lotteries_required == []
        assert result.calculations == []
        assert not requires_manual_ranking(result)


class TestHeadToHead:

    def test_winner_of_meeting_ranks_higher(self, head_to_head_block):
        roster, matches = head_to_head_block
        result = _run(roster, matches, _rules(RuleKind.HEAD_TO_HEAD))

        assert _order(result) == ["C", "A", "B", "D"]
        assert result.lotteries_required == []
        assert result.tie_breaking_applied is True
        assert [(c.rule_type, c.result) for c in result.calculations] == [
            ("head_to_head", CalculationOutcome.RESOLVED),
        ]
        assert result.calculations[0].teams_affected == ["A", "B"]

    def test_meeting_result_overrides_name_order(self):
        # B beat A; name order alone would put A first
        matches = [
            _match("B", "A", 2, 0),
            _match("C", "B", 2, 0),
            _match("A", "D", 2, 0),
        ]
        result = _run(_roster("A", "B", "C", "D"), matches, _rules(RuleKind.HEAD_TO_HEAD))
        assert _order(result) == ["C", "B", "A", "D"]

    def test_shared_policy_keeps_equal_position(self, head_to_head_block):
        roster, matches = head_to_head_block
        result = _run(roster, matches, _rules(RuleKind.HEAD_TO_HEAD))
        assert _positions(result) == {"C": 1, "A": 2, "B": 2, "D": 4}

    def test_resolved_order_policy_numbers_sequentially(self, head_to_head_block):
        roster, matches = head_to_head_block
        result = _run(
            roster,
            matches,
            _rules(RuleKind.HEAD_TO_HEAD),
            position_policy=PositionPolicy.RESOLVED_ORDER,
        )
        assert _positions(result) == {"C": 1, "A": 2, "B": 3, "D": 4}

    def test_three_way_tie_is_unresolved_then_lottery(self, circular_block):
        roster, matches = circular_block
        result = _run(roster, matches, _rules(RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY))

        assert [(c.rule_type, c.result) for c in result.calculations] == [
            ("head_to_head", CalculationOutcome.UNRESOLVED),
            ("lottery", CalculationOutcome.UNRESOLVED),
            ("lottery", CalculationOutcome.LOTTERY_REQUIRED),
        ]
        assert result.lotteries_required == [["A", "B", "C"]]
        assert set(_positions(result).values()) == {1}

    def test_head_to_head_goal_difference_after_level_points(self):
        # One win each across two legs; A is +1 on goals in those meetings
        a = _standing("A", points=3, goals_for=3, goals_against=2)
        b = _standing("B", points=3, goals_for=2, goals_against=3)
        matches = [
            _match("A", "B", 3, 1),
            _match("B", "A", 1, 0),
        ]
        context = tie_breaking_engine.TieBreakingContext(
            outcomes=tuple(tie_breaking_engine.resolve_matches(matches)),
            sport_code="soccer",
        )
        ordered, resolved = by_head_to_head([b, a], context)
        assert resolved is True
        assert [t.team_id for t in ordered] == ["A", "B"]

    def test_no_meeting_is_unresolved(self):
        a = _standing("A")
        b = _standing("B")
        context = tie_breaking_engine.TieBreakingContext(outcomes=(), sport_code="soccer")
        ordered, resolved = by_head_to_head([a, b], context)
        assert resolved is False
        assert [t.team_id for t in ordered] == ["A", "B"]


class TestRuleChain:

    def test_rules_applied_in_ascending_order(self, head_to_head_block):
        roster, matches = head_to_head_block
        rules = [
            TieBreakingRule(kind=RuleKind.HEAD_TO_HEAD, order=3),
            TieBreakingRule(kind=RuleKind.GOALS_FOR, order=1),
            TieBreakingRule(kind=RuleKind.POINTS, order=2),
        ]
        result = _run(roster, matches, rules)
        assert [c.rule_type for c in result.calculations] == ["goals_for", "points", "head_to_head"]

    def test_partial_reorder_carries_to_next_rule(self):
        teams = [
            _standing("A", points=3, fair_play_points=3),
            _standing("B", points=3, fair_play_points=1),
            _standing("C", points=3, fair_play_points=1),
        ]
        result = calculate_tie_breaking(teams, [], "soccer", _rules(RuleKind.FAIR_PLAY, RuleKind.LOTTERY))

        assert _order(result) == ["B", "C", "A"]
        assert result.lotteries_required == [["B", "C", "A"]]
        assert result.calculations[0].result == CalculationOutcome.UNRESOLVED

    def test_win_rate_resolves(self):
        teams = [
            _standing("A", points=3, wins=0, draws=3, matches_played=3, goals_for=1, goals_against=1),
            _standing("B", points=3, wins=1, losses=1, matches_played=2, goals_for=1, goals_against=1),
        ]
        result = calculate_tie_breaking(teams, [], "basketball", _rules(RuleKind.WIN_RATE))
        assert _order(result) == ["B", "A"]
        assert result.calculations[0].result == CalculationOutcome.RESOLVED

    def test_win_rate_with_no_matches_is_zero(self):
        teams = [_standing("A"), _standing("B")]
        result = calculate_tie_breaking(teams, [], "soccer", _rules(RuleKind.WIN_RATE))
        assert result.calculations[0].result == CalculationOutcome.UNRESOLVED
        assert result.lotteries_required == [["A", "B"]]

    def test_first_resolving_rule_stops_the_chain(self, head_to_head_block):
        roster, matches = head_to_head_block
        result = _run(roster, matches, _rules(RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY))
        assert [c.rule_type for c in result.calculations] == ["head_to_head"]


class TestSportSpecificRules:

    def test_best_time_lower_is_better_missing_last(self):
        teams = [
            _standing("A", best_time=12.5),
            _standing("B"),
            _standing("C", best_time=11.9),
        ]
        result = calculate_tie_breaking(teams, [], "track_and_field", _rules(RuleKind.BEST_TIME))
        assert _order(result) == ["C", "A", "B"]
        assert result.calculations[0].result == CalculationOutcome.RESOLVED

    def test_best_time_two_missing_is_unresolved(self):
        teams = [_standing("A", best_time=10.0), _standing("B"), _standing("C")]
        result = calculate_tie_breaking(teams, [], "track_and_field", _rules(RuleKind.BEST_TIME))
        assert _order(result) == ["A", "B", "C"]
        assert result.lotteries_required == [["A", "B", "C"]]

    def test_podium_count(self):
        teams = [_standing("A", podium_count=1), _standing("B", podium_count=4)]
        result = calculate_tie_breaking(teams, [], "track_and_field", _rules(RuleKind.PODIUM_COUNT))
        assert _order(result) == ["B", "A"]

    def test_fair_play_fewer_points_first(self):
        teams = [_standing("A", fair_play_points=5), _standing("B", fair_play_points=2)]
        result = calculate_tie_breaking(teams, [], "soccer", _rules(RuleKind.FAIR_PLAY))
        assert _order(result) == ["B", "A"]
        assert result.lotteries_required == []

    def test_rule_unavailable_for_sport_is_skipped(self):
        teams = [_standing("A", fair_play_points=5), _standing("B", fair_play_points=2)]
        result = calculate_tie_breaking(teams, [], "basketball", _rules(RuleKind.FAIR_PLAY))
        assert _order(result) == ["A", "B"]
        assert [c.rule_type for c in result.calculations] == ["lottery"]
        assert result.lotteries_required == [["A", "B"]]

    def test_sport_alias_uses_goal_comparator(self):
        # Equal triplet is required for grouping, so the alias cannot split;
        # it is applied and logged under its own name.
        teams = [_standing("A"), _standing("B")]
        result = calculate_tie_breaking(teams, [], "baseball", _rules(RuleKind.RUN_DIFFERENCE))
        assert result.calculations[0].rule_type == "run_difference"
        assert result.calculations[0].result == CalculationOutcome.UNRESOLVED

    def test_unknown_sport_falls_back_to_default(self, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_SPORT_CODE", "pk_championship")
        assert calculators_for_sport("curling") is calculators_for_sport("pk_championship")

    def test_unknown_sport_follows_configured_default(self, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_SPORT_CODE", "track_and_field")
        assert RuleKind.BEST_TIME in calculators_for_sport("curling")
        teams = [_standing("A", best_time=12.0), _standing("B", best_time=11.0)]
        result = calculate_tie_breaking(teams, [], "curling", _rules(RuleKind.BEST_TIME))
        assert _order(result) == ["B", "A"]

    def test_calculator_table_is_cached_per_sport(self):
        assert calculators_for_sport("soccer") is calculators_for_sport("soccer")
        assert RuleKind.BEST_TIME not in calculators_for_sport("soccer")
        assert RuleKind.BEST_TIME in calculators_for_sport("track_and_field")


class TestFailingRule:

    def test_error_is_logged_and_chain_continues(self, monkeypatch, head_to_head_block):
        def boom(teams, context):
            raise ZeroDivisionError("division by zero")

        table = {
            RuleKind.WIN_RATE: boom,
            RuleKind.HEAD_TO_HEAD: tie_breaking_engine.by_head_to_head,
        }
        monkeypatch.setattr(tie_breaking_engine, "calculators_for_sport", lambda sport: table)

        roster, matches = head_to_head_block
        result = _run(roster, matches, _rules(RuleKind.WIN_RATE, RuleKind.HEAD_TO_HEAD))

        first, second = result.calculations
        assert first.rule_type == "win_rate"
        assert first.result == CalculationOutcome.UNRESOLVED
        assert "division by zero" in first.description
        assert second.result == CalculationOutcome.RESOLVED
        assert _order(result) == ["C", "A", "B", "D"]


class TestProperties:

    def test_idempotent(self, circular_block):
        roster, matches = circular_block
        rules = _rules(RuleKind.GOAL_DIFFERENCE, RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY)
        first = _run(roster, matches, rules)
        second = _run(roster, matches, rules)
        assert first.to_dict() == second.to_dict()

    def test_input_standings_not_mutated(self, head_to_head_block):
        roster, matches = head_to_head_block
        standings = aggregate_block_standings(roster, matches)
        before = [s.to_dict() for s in standings]
        calculate_tie_breaking(standings, matches, "soccer", _rules(RuleKind.HEAD_TO_HEAD))
        assert [s.to_dict() for s in standings] == before

    @pytest.mark.parametrize("policy", list(PositionPolicy))
    def test_positions_monotonic_and_shared_only_on_equal_stats(self, policy, two_way_tie_block):
        roster, matches = two_way_tie_block
        result = _run(roster, matches, _rules(RuleKind.HEAD_TO_HEAD), position_policy=policy)
        teams = result.teams
        for prev, cur in zip(teams, teams[1:]):
            assert cur.position >= prev.position
            if cur.position == prev.position:
                assert cur.stat_key() == prev.stat_key()

    def test_each_team_in_at_most_one_lottery(self):
        teams = [
            _standing("A", points=3),
            _standing("B", points=3),
            _standing("C", points=1),
            _standing("D", points=1),
            _standing("E", points=0),
        ]
        result = calculate_tie_breaking(teams, [], "soccer", _rules(RuleKind.LOTTERY))
        flat = [tid for group in result.lotteries_required for tid in group]
        assert sorted(flat) == ["A", "B", "C", "D"]
        assert len(flat) == len(set(flat))

    def test_group_start_positions(self):
        teams = [
            _standing("A", points=6),
            _standing("B", points=3),
            _standing("C", points=3),
            _standing("D", points=0),
        ]
        groups = group_by_statistics(teams)
        assert [(g.position, [t.team_id for t in g.teams]) for g in groups] == [
            (1, ["A"]),
            (2, ["B", "C"]),
            (4, ["D"]),
        ]
