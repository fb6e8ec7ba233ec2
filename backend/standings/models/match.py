from dataclasses import dataclass
from typing import List, Optional, Union

# Raw score encodings accepted from the results layer:
#   3, [1, 1, 1, 0], "[1,1,1,0]", "1,1,1,0", "3", None
ScoreValue = Union[int, float, str, List[Union[int, float, str]], None]


@dataclass(frozen=True)
class MatchRecord:
    """One match result inside a block. Immutable input to the aggregator."""

    match_id: int
    team1_id: str
    team2_id: str
    team1_scores: ScoreValue = None
    team2_scores: ScoreValue = None
    is_draw: bool = False
    is_walkover: bool = False
    winner_team_id: Optional[str] = None
    is_confirmed: bool = False
    match_block_id: Optional[int] = None

    def involves(self, team_id: str) -> bool:
        return team_id in (self.team1_id, self.team2_id)
