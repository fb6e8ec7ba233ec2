import json
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointSystem:
    """Points awarded per result. Configured per tournament."""

    win: int = 3
    draw: int = 1
    loss: int = 0

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "PointSystem":
        """Parse stored {"win": .., "draw": .., "loss": ..}; missing or bad fields keep defaults."""
        if not raw:
            return cls()
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.error("Could not parse point system JSON: %r", raw)
            return cls()
        if not isinstance(parsed, dict):
            return cls()
        default = cls()
        return cls(
            win=_int_or(parsed.get("win"), default.win),
            draw=_int_or(parsed.get("draw"), default.draw),
            loss=_int_or(parsed.get("loss"), default.loss),
        )


@dataclass(frozen=True)
class WalkoverSettings:
    """Score credited for a walkover, in place of the recorded score."""

    winner_goals: int = 3
    loser_goals: int = 0


def _int_or(value, fallback: int) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


DEFAULT_POINT_SYSTEM = PointSystem()
DEFAULT_WALKOVER_SETTINGS = WalkoverSettings()
