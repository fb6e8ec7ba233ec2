"""
Standings API: stateless block standings + tie-break computation.

The caller posts a block's roster, matches and rule chain; nothing is read
from or written to storage here. Persisting results is the caller's job.
"""
import logging
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from standings import config
from standings.models.match import MatchRecord
from standings.models.team import RosterTeam, TeamStanding
from standings.models.tie_breaking import (
    CalculationOutcome,
    PositionPolicy,
    RuleKind,
    TieBreakingCalculation,
    TieBreakingResult,
    TieBreakingRule,
)
from standings.models.tournament_rules import PointSystem, WalkoverSettings
from standings.services.manual_ranking import ManualRankingError, apply_manual_ranking
from standings.services.standings_service import compute_block_standings
from standings.services.tie_breaking_engine import requires_manual_ranking
from standings.services.tie_breaking_rules import (
    get_available_rules,
    get_default_rules,
    requires_lottery,
    resolve_sport_code,
    rules_for_phase,
    validate_rules,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ScoreIn = Union[int, float, str, List[Union[int, float, str]], None]


# ── Request models ───────────────────────────────────────────────────────

class RosterTeamIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    team_id: str
    team_name: str
    short_name: Optional[str] = None
    best_time: Optional[float] = None
    fair_play_points: int = 0
    podium_count: int = 0


class MatchIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    match_id: int
    team1_id: str
    team2_id: str
    team1_scores: ScoreIn = None
    team2_scores: ScoreIn = None
    is_draw: bool = False
    is_walkover: bool = False
    winner_team_id: Optional[str] = None
    is_confirmed: bool = False
    match_block_id: Optional[int] = None


class RuleIn(BaseModel):
    type: RuleKind
    order: int


class PointSystemIn(BaseModel):
    win: int = 3
    draw: int = 1
    loss: int = 0


class WalkoverSettingsIn(BaseModel):
    winner_goals: int = 3
    loser_goals: int = 0


class BlockStandingsRequest(BaseModel):
    sport_code: Optional[str] = None
    phase: Literal["preliminary", "final"] = "preliminary"
    roster: List[RosterTeamIn]
    matches: List[MatchIn] = Field(default_factory=list)
    rules: Optional[List[RuleIn]] = None
    # Stored per-phase config: {"preliminary": {"enabled": .., "rules": [..]}, "final": {..}}
    tie_breaking_config: Optional[Dict[str, Any]] = None
    use_default_rules: bool = False
    point_system: PointSystemIn = Field(default_factory=PointSystemIn)
    walkover_settings: WalkoverSettingsIn = Field(default_factory=WalkoverSettingsIn)
    position_policy: PositionPolicy = config.POSITION_POLICY


class RuleValidationItem(BaseModel):
    type: str
    order: int


class RuleValidationRequest(BaseModel):
    sport_code: Optional[str] = None
    rules: List[RuleValidationItem]


# ── Response models ──────────────────────────────────────────────────────

class TeamStandingOut(BaseModel):
    team_id: str
    team_name: str
    short_name: Optional[str] = None
    position: int
    points: int
    matches_played: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int
    walkover_wins: int = 0
    walkover_losses: int = 0
    win_rate: float = 0.0
    best_time: Optional[float] = None
    fair_play_points: int = 0
    podium_count: int = 0


class CalculationOut(BaseModel):
    rule_type: str
    teams_affected: List[str]
    description: str
    result: CalculationOutcome


class TieBreakingResultOut(BaseModel):
    teams: List[TeamStandingOut]
    tie_breaking_applied: bool
    lotteries_required: List[List[str]]
    calculations: List[CalculationOut]


class BlockStandingsResponse(TieBreakingResultOut):
    sport_code: str
    phase: str
    requires_manual_ranking: bool


class ManualRankingRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    result: TieBreakingResultOut
    ordered_team_ids: List[str]


class ManualRankingResponse(TieBreakingResultOut):
    requires_manual_ranking: bool


class RuleInfoOut(BaseModel):
    type: str
    label: str
    description: str
    calculation_note: str = ""


class RuleOut(BaseModel):
    type: str
    order: int


class SportRulesResponse(BaseModel):
    sport_code: str
    available: List[RuleInfoOut]
    defaults: List[RuleOut]
    requires_lottery: bool


class RuleValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]


# ── Conversions ──────────────────────────────────────────────────────────

def _roster_from_request(items: List[RosterTeamIn]) -> List[RosterTeam]:
    return [RosterTeam(**item.model_dump()) for item in items]


def _matches_from_request(items: List[MatchIn]) -> List[MatchRecord]:
    return [MatchRecord(**item.model_dump()) for item in items]


def _rules_from_request(payload: BlockStandingsRequest) -> List[TieBreakingRule]:
    """Explicit rules, else the stored config for the phase, else the sport default if asked."""
    if payload.rules is not None:
        return [TieBreakingRule(kind=r.type, order=r.order) for r in payload.rules]
    if payload.tie_breaking_config is not None:
        return rules_for_phase(payload.tie_breaking_config, payload.phase)
    if payload.use_default_rules:
        return get_default_rules(payload.sport_code)
    return []


def _result_from_payload(payload: TieBreakingResultOut) -> TieBreakingResult:
    derived = {"goal_difference", "win_rate"}
    teams = [
        TeamStanding(**{k: v for k, v in t.model_dump().items() if k not in derived})
        for t in payload.teams
    ]
    calculations = [
        TieBreakingCalculation(
            rule_type=c.rule_type,
            teams_affected=list(c.teams_affected),
            description=c.description,
            result=c.result,
        )
        for c in payload.calculations
    ]
    return TieBreakingResult(
        teams=teams,
        tie_breaking_applied=payload.tie_breaking_applied,
        lotteries_required=[list(g) for g in payload.lotteries_required],
        calculations=calculations,
    )


# ── Endpoints ────────────────────────────────────────────────────────────

@router.post("/standings/blocks/compute", response_model=BlockStandingsResponse)
def compute_block(payload: BlockStandingsRequest) -> BlockStandingsResponse:
    """Aggregate a block's matches and rank its teams with the given rule chain."""
    point_system = PointSystem(**payload.point_system.model_dump())
    walkover_settings = WalkoverSettings(**payload.walkover_settings.model_dump())
    result = compute_block_standings(
        _roster_from_request(payload.roster),
        _matches_from_request(payload.matches),
        payload.sport_code,
        _rules_from_request(payload),
        point_system=point_system,
        walkover_settings=walkover_settings,
        position_policy=payload.position_policy,
    )
    return BlockStandingsResponse(
        **result.to_dict(),
        sport_code=resolve_sport_code(payload.sport_code),
        phase=payload.phase,
        requires_manual_ranking=requires_manual_ranking(result),
    )


@router.get("/standings/rules/{sport_code}", response_model=SportRulesResponse)
def sport_rules(sport_code: str) -> SportRulesResponse:
    """Rule kinds a sport may use, and its default chain."""
    defaults = get_default_rules(sport_code)
    return SportRulesResponse(
        sport_code=resolve_sport_code(sport_code),
        available=[info.to_dict() for info in get_available_rules(sport_code)],
        defaults=[r.to_dict() for r in defaults],
        requires_lottery=requires_lottery(defaults),
    )


@router.post("/standings/rules/validate", response_model=RuleValidationResponse)
def validate_rule_chain(payload: RuleValidationRequest) -> RuleValidationResponse:
    errors: List[str] = []
    rules: List[TieBreakingRule] = []
    for item in payload.rules:
        try:
            rules.append(TieBreakingRule(kind=RuleKind(item.type), order=item.order))
        except ValueError:
            errors.append(f"Unknown rule type '{item.type}'")

    if not errors:
        _, errors = validate_rules(rules, payload.sport_code)
    return RuleValidationResponse(is_valid=not errors, errors=errors)


@router.post("/standings/manual-ranking", response_model=ManualRankingResponse)
def manual_ranking(payload: ManualRankingRequest) -> ManualRankingResponse:
    """Apply an organiser-decided order to one pending lottery group."""
    try:
        updated = apply_manual_ranking(_result_from_payload(payload.result), payload.ordered_team_ids)
    except ManualRankingError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ManualRankingResponse(
        **updated.to_dict(),
        requires_manual_ranking=requires_manual_ranking(updated),
    )
