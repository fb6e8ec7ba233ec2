from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from standings.models.team import TeamStanding


class RuleKind(str, Enum):
    POINTS = "points"
    GOAL_DIFFERENCE = "goal_difference"
    GOALS_FOR = "goals_for"
    WIN_RATE = "win_rate"
    HEAD_TO_HEAD = "head_to_head"
    FAIR_PLAY = "fair_play"
    BEST_TIME = "best_time"
    WIN_COUNT = "win_count"
    PODIUM_COUNT = "podium_count"
    LOTTERY = "lottery"
    # Sport-specific names for the goal-based comparators
    RUN_DIFFERENCE = "run_difference"
    RUNS_SCORED = "runs_scored"
    POINT_DIFFERENCE = "point_difference"
    POINTS_SCORED = "points_scored"


class CalculationOutcome(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    LOTTERY_REQUIRED = "lottery_required"


class PositionPolicy(str, Enum):
    # Identical (points, GD, GF) always share a position number
    SHARED = "shared"
    # Groups resolved by a rule are numbered sequentially
    RESOLVED_ORDER = "resolved_order"


@dataclass(frozen=True)
class TieBreakingRule:
    kind: RuleKind
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "order": self.order}


@dataclass
class TieBreakingCalculation:
    rule_type: str
    teams_affected: List[str]
    description: str
    result: CalculationOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_type": self.rule_type,
            "teams_affected": list(self.teams_affected),
            "description": self.description,
            "result": self.result.value,
        }


@dataclass
class TieBreakingResult:
    teams: List[TeamStanding]
    tie_breaking_applied: bool = False
    lotteries_required: List[List[str]] = field(default_factory=list)
    calculations: List[TieBreakingCalculation] = field(default_factory=list)

    def lottery_keys(self) -> List[str]:
        """Lottery groups in their comma-joined form, e.g. ["12,15"]."""
        return [",".join(group) for group in self.lotteries_required]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teams": [t.to_dict() for t in self.teams],
            "tie_breaking_applied": self.tie_breaking_applied,
            "lotteries_required": [list(g) for g in self.lotteries_required],
            "calculations": [c.to_dict() for c in self.calculations],
        }
