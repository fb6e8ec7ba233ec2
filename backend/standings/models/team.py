from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RosterTeam:
    """A team registered in a block, plus sport metrics supplied by the caller."""

    team_id: str
    team_name: str
    short_name: Optional[str] = None
    best_time: Optional[float] = None  # seconds, lower is better (timed sports)
    fair_play_points: int = 0  # penalty points, lower is better
    podium_count: int = 0


@dataclass
class TeamStanding:
    """
    Aggregated record of one team in one block.

    Rebuilt from the match set on every standings request; goal_difference
    is derived and never stored.
    """

    team_id: str
    team_name: str
    short_name: Optional[str] = None
    position: int = 0
    points: int = 0
    matches_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    walkover_wins: int = 0
    walkover_losses: int = 0
    best_time: Optional[float] = None
    fair_play_points: int = 0
    podium_count: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def win_rate(self) -> float:
        if self.matches_played <= 0:
            return 0.0
        return self.wins / self.matches_played

    def stat_key(self) -> tuple:
        """(points, goal_difference, goals_for): the triplet teams tie on."""
        return (self.points, self.goal_difference, self.goals_for)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "short_name": self.short_name,
            "position": self.position,
            "points": self.points,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "walkover_wins": self.walkover_wins,
            "walkover_losses": self.walkover_losses,
            "win_rate": self.win_rate,
            "best_time": self.best_time,
            "fair_play_points": self.fair_play_points,
            "podium_count": self.podium_count,
        }
