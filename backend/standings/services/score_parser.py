"""
Score parser for per-period match scores.

Supports formats like:
  3               → [3]
  [1, 1, 1, 0]    → [1, 1, 1, 0]   (one entry per period)
  "[1,1,1,0]"     → [1, 1, 1, 0]   JSON array text
  "1,1,1,0"       → [1, 1, 1, 0]   legacy comma-separated text
  "3"             → [3]            legacy single number text

None (or blank text) means the score has not been entered and yields None.
Malformed entries count as 0 and are logged (non-fatal).
"""
from __future__ import annotations

import json
import logging
import math
from typing import List, Optional

from standings.models.match import ScoreValue

logger = logging.getLogger(__name__)


def parse_score_array(score: ScoreValue) -> Optional[List[int]]:
    """Normalise a raw score into a list of per-period integers.

    Returns None if no score has been recorded.
    """
    if score is None:
        return None

    if isinstance(score, bool):
        logger.warning("Unexpected boolean score %r, counting as 0", score)
        return [0]

    if isinstance(score, (int, float)):
        return [_to_int(score)]

    if isinstance(score, (list, tuple)):
        if not score:
            return [0]
        return [_to_int(s) for s in score]

    if isinstance(score, str):
        return _parse_score_string(score.strip())

    logger.warning("Unexpected score type %s (%r), counting as 0", type(score).__name__, score)
    return [0]


def parse_total_score(score: ScoreValue) -> Optional[int]:
    """Sum of all periods, or None if no score has been recorded."""
    periods = parse_score_array(score)
    if periods is None:
        return None
    return sum(periods)


def _parse_score_string(raw: str) -> Optional[List[int]]:
    if not raw:
        return None

    if raw.startswith("[") and raw.endswith("]"):
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Could not parse score JSON %r, counting as 0", raw)
            return [0]
        if isinstance(parsed, list):
            return [_to_int(s) for s in parsed] or [0]
        return [0]

    if "," in raw:
        return [_to_int(part.strip()) for part in raw.split(",")]

    return [_to_int(raw)]


def _to_int(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            logger.warning("Non-finite score value %r, counting as 0", value)
            return 0
        if not value.is_integer():
            logger.warning("Non-integral score value %r, truncating to %d", value, int(value))
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        logger.warning("Malformed score value %r, counting as 0", value)
        return 0
