"""
Tie-Breaking Rules: per-sport rule catalog (Single Source of Truth)

This module defines which tie-break rule kinds each sport supports, their
display labels, the default rule chain per sport, and validation/parsing of
stored rule configuration. The engine builds its calculator tables from
available_rule_kinds(); do NOT duplicate the availability matrix elsewhere.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from standings import config
from standings.models.tie_breaking import RuleKind, TieBreakingRule

logger = logging.getLogger(__name__)

Phase = Literal["preliminary", "final"]

# Used when DEFAULT_SPORT_CODE is unset or names an unsupported sport
BUILTIN_SPORT_CODE = "pk_championship"

# Maximum number of rules in one phase's chain
MAX_RULES = 5


# =============================================================================
# Availability Matrix
# =============================================================================

# Usable by every sport
COMMON_RULE_KINDS: Tuple[RuleKind, ...] = (
    RuleKind.POINTS,
    RuleKind.GOAL_DIFFERENCE,
    RuleKind.GOALS_FOR,
    RuleKind.WIN_RATE,
    RuleKind.HEAD_TO_HEAD,
    RuleKind.LOTTERY,
)

SPORT_RULE_KINDS: Dict[str, Tuple[RuleKind, ...]] = {
    "pk_championship": (RuleKind.FAIR_PLAY,),
    "soccer": (RuleKind.FAIR_PLAY,),
    "baseball": (RuleKind.RUN_DIFFERENCE, RuleKind.RUNS_SCORED, RuleKind.WIN_COUNT),
    "basketball": (RuleKind.POINT_DIFFERENCE, RuleKind.POINTS_SCORED),
    "track_and_field": (RuleKind.BEST_TIME, RuleKind.WIN_COUNT, RuleKind.PODIUM_COUNT),
}

SUPPORTED_SPORT_CODES = frozenset(SPORT_RULE_KINDS)


def default_sport_code() -> str:
    """The configured DEFAULT_SPORT_CODE if supported, otherwise BUILTIN_SPORT_CODE."""
    if config.DEFAULT_SPORT_CODE in SUPPORTED_SPORT_CODES:
        return config.DEFAULT_SPORT_CODE
    logger.warning(
        "Configured DEFAULT_SPORT_CODE %r is not supported, using %s",
        config.DEFAULT_SPORT_CODE,
        BUILTIN_SPORT_CODE,
    )
    return BUILTIN_SPORT_CODE


def resolve_sport_code(sport_code: Optional[str]) -> str:
    """Return sport_code if known, otherwise the default sport. None asks for the default."""
    if sport_code in SUPPORTED_SPORT_CODES:
        return sport_code
    fallback = default_sport_code()
    if sport_code is not None:
        logger.warning("Unknown sport code %r, falling back to %s", sport_code, fallback)
    return fallback


def available_rule_kinds(sport_code: Optional[str]) -> Tuple[RuleKind, ...]:
    sport = resolve_sport_code(sport_code)
    return COMMON_RULE_KINDS + SPORT_RULE_KINDS[sport]


# =============================================================================
# Labels
# =============================================================================


@dataclass(frozen=True)
class RuleTypeInfo:
    kind: RuleKind
    label: str
    description: str
    calculation_note: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "label": self.label,
            "description": self.description,
            "calculation_note": self.calculation_note,
        }


_RULE_INFO: Dict[RuleKind, Tuple[str, str, str]] = {
    RuleKind.POINTS: ("Points", "Win 3, draw 1, loss 0 by default", "wins x win points + draws x draw points"),
    RuleKind.GOAL_DIFFERENCE: ("Goal difference", "Goals scored minus goals conceded", "goals for - goals against"),
    RuleKind.GOALS_FOR: ("Goals scored", "Total goals scored", "sum of goals over all matches"),
    RuleKind.WIN_RATE: ("Win rate", "Wins divided by matches played", "wins / matches played"),
    RuleKind.HEAD_TO_HEAD: (
        "Head-to-head",
        "Results between the tied teams",
        "points then goal difference in direct meetings (two teams only)",
    ),
    RuleKind.FAIR_PLAY: ("Fair play", "Disciplinary points", "fewer fair-play points ranks higher"),
    RuleKind.BEST_TIME: ("Best time", "Fastest recorded time", "lower time ranks higher; no time ranks last"),
    RuleKind.WIN_COUNT: ("Wins", "Number of wins", "more wins ranks higher"),
    RuleKind.PODIUM_COUNT: ("Podium finishes", "Top-three finishes", "more podiums ranks higher"),
    RuleKind.LOTTERY: ("Lottery", "Drawn by the organiser", "positions must be set manually"),
    RuleKind.RUN_DIFFERENCE: ("Run difference", "Runs scored minus runs allowed", "runs for - runs against"),
    RuleKind.RUNS_SCORED: ("Runs scored", "Total runs scored", "sum of runs over all games"),
    RuleKind.POINT_DIFFERENCE: ("Point difference", "Points scored minus points allowed", "points for - points against"),
    RuleKind.POINTS_SCORED: ("Points scored", "Total points scored", "sum of points over all games"),
}

# Sport-specific wording where the generic label would mislead
_SPORT_LABEL_OVERRIDES: Dict[Tuple[str, RuleKind], Tuple[str, str, str]] = {
    ("track_and_field", RuleKind.POINTS): ("Total score", "Sum of event scores", "higher total ranks higher"),
    ("track_and_field", RuleKind.WIN_COUNT): ("Event wins", "Events won outright", "more event wins ranks higher"),
}


def get_available_rules(sport_code: Optional[str]) -> List[RuleTypeInfo]:
    sport = resolve_sport_code(sport_code)
    out: List[RuleTypeInfo] = []
    for kind in available_rule_kinds(sport):
        label, description, note = _SPORT_LABEL_OVERRIDES.get((sport, kind), _RULE_INFO[kind])
        out.append(RuleTypeInfo(kind=kind, label=label, description=description, calculation_note=note))
    return out


def rule_label(kind: RuleKind, sport_code: Optional[str]) -> str:
    for info in get_available_rules(sport_code):
        if info.kind == kind:
            return info.label
    return kind.value


# =============================================================================
# Default Chains
# =============================================================================


def _chain(*kinds: RuleKind) -> List[TieBreakingRule]:
    return [TieBreakingRule(kind=k, order=i) for i, k in enumerate(kinds, start=1)]


DEFAULT_TIE_BREAKING_RULES: Dict[str, List[TieBreakingRule]] = {
    "pk_championship": _chain(
        RuleKind.POINTS, RuleKind.GOAL_DIFFERENCE, RuleKind.GOALS_FOR, RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY
    ),
    "soccer": _chain(
        RuleKind.POINTS, RuleKind.GOAL_DIFFERENCE, RuleKind.GOALS_FOR, RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY
    ),
    "baseball": _chain(
        RuleKind.WIN_RATE, RuleKind.RUN_DIFFERENCE, RuleKind.RUNS_SCORED, RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY
    ),
    "track_and_field": _chain(
        RuleKind.BEST_TIME, RuleKind.POINTS, RuleKind.WIN_COUNT, RuleKind.PODIUM_COUNT, RuleKind.LOTTERY
    ),
    "basketball": _chain(
        RuleKind.WIN_RATE, RuleKind.POINT_DIFFERENCE, RuleKind.POINTS_SCORED, RuleKind.HEAD_TO_HEAD, RuleKind.LOTTERY
    ),
}


def get_default_rules(sport_code: Optional[str]) -> List[TieBreakingRule]:
    return list(DEFAULT_TIE_BREAKING_RULES[resolve_sport_code(sport_code)])


# =============================================================================
# Validation & (de)serialisation
# =============================================================================


def sort_rules(rules: Sequence[TieBreakingRule]) -> List[TieBreakingRule]:
    """Rules in application order (ascending `order`; stable for equal orders)."""
    return sorted(rules, key=lambda r: r.order)


def validate_rules(rules: Sequence[TieBreakingRule], sport_code: Optional[str]) -> Tuple[bool, List[str]]:
    """
    Check a configured rule chain.

    Rules:
    - at least one rule, at most MAX_RULES
    - no rule kind repeated
    - every kind available for the sport
    - orders run 1..n without gaps
    """
    errors: List[str] = []
    if not rules:
        errors.append("No tie-breaking rules configured")
        return False, errors

    if len(rules) > MAX_RULES:
        errors.append(f"At most {MAX_RULES} tie-breaking rules are allowed, got {len(rules)}")

    kinds = [r.kind for r in rules]
    if len(set(kinds)) != len(kinds):
        errors.append("The same rule type cannot be configured more than once")

    sport = resolve_sport_code(sport_code)
    allowed = set(available_rule_kinds(sport))
    for rule in rules:
        if rule.kind not in allowed:
            errors.append(f"'{rule.kind.value}' is not available for {sport}")

    orders = sorted(r.order for r in rules)
    if orders != list(range(1, len(orders) + 1)):
        errors.append("Rule orders must be consecutive starting at 1")

    return not errors, errors


def rules_from_dicts(items: Sequence[Mapping[str, Any]]) -> List[TieBreakingRule]:
    """Build rules from {"type": ..., "order": ...} dicts; unknown types are dropped."""
    rules: List[TieBreakingRule] = []
    for item in items:
        try:
            kind = RuleKind(str(item.get("type")))
            order = int(item.get("order"))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid tie-breaking rule entry: %r", item)
            continue
        rules.append(TieBreakingRule(kind=kind, order=order))
    return sort_rules(rules)


def parse_rules(rules_json: Optional[str]) -> List[TieBreakingRule]:
    """Parse stored rule JSON. Invalid JSON or a non-list yields []."""
    if not rules_json:
        return []
    try:
        parsed = json.loads(rules_json)
    except ValueError:
        logger.warning("Could not parse tie-breaking rules JSON: %r", rules_json)
        return []
    if not isinstance(parsed, list):
        return []
    return rules_from_dicts([p for p in parsed if isinstance(p, dict)])


def stringify_rules(rules: Sequence[TieBreakingRule]) -> str:
    return json.dumps([r.to_dict() for r in sort_rules(rules)])


def requires_lottery(rules: Sequence[TieBreakingRule]) -> bool:
    """True when the chain ends in the lottery marker."""
    if not rules:
        return False
    return max(rules, key=lambda r: r.order).kind == RuleKind.LOTTERY


def rules_for_phase(config: Optional[Mapping[str, Any]], phase: Phase) -> List[TieBreakingRule]:
    """
    Resolve the enabled chain for a phase from a stored tournament config:

        {"preliminary": {"enabled": true, "rules": [{"type": "points", "order": 1}, ...]},
         "final": {"enabled": false, "rules": "[...]"}}

    A missing or disabled phase means no tie-breaking ([]).
    """
    if not config:
        return []
    phase_cfg = config.get(phase)
    if not phase_cfg or not phase_cfg.get("enabled", False):
        return []
    raw = phase_cfg.get("rules")
    if isinstance(raw, str):
        return parse_rules(raw)
    if isinstance(raw, list):
        return rules_from_dicts([r for r in raw if isinstance(r, dict)])
    return []
