from standings.models.match import MatchRecord, ScoreValue
from standings.models.team import RosterTeam, TeamStanding
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

__all__ = [
    "MatchRecord",
    "ScoreValue",
    "RosterTeam",
    "TeamStanding",
    "RuleKind",
    "CalculationOutcome",
    "PositionPolicy",
    "TieBreakingRule",
    "TieBreakingCalculation",
    "TieBreakingResult",
    "PointSystem",
    "WalkoverSettings",
    "DEFAULT_POINT_SYSTEM",
    "DEFAULT_WALKOVER_SETTINGS",
]
