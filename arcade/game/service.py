"""
Game session glue: per-play game data, scores and player stats
"""

import uuid
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field
import structlog

from arcade.payments.models import utcnow

logger = structlog.get_logger()


class GameData(BaseModel):
    """Parameters handed to the client for one play"""
    gameId: str
    levelDifficulty: int
    rewards: List[str]
    powerUps: List[str]


class UserStats(BaseModel):
    """Aggregated stats for a player"""
    address: str
    totalScore: int = 0
    bestScore: int = 0
    gamesPlayed: int = 0
    isPremium: bool = False
    lastPlayed: datetime | None = None


class ScoreSubmission(BaseModel):
    """Body of POST /score"""
    address: str = Field(min_length=1)
    score: int = Field(ge=0)
    isPremium: bool = False
    gameMode: str = "classic"


class GameService:
    """In-memory game state"""

    def __init__(self):
        self._stats: Dict[str, UserStats] = {}

    def get_game_data(self, address: str, is_premium: bool) -> GameData:
        return GameData(
            gameId=f"game_{uuid.uuid4().hex[:12]}",
            levelDifficulty=2 if is_premium else 1,
            rewards=["xp", "coins", "gem"] if is_premium else ["xp"],
            powerUps=(
                ["shield", "timefreeze", "doubletap", "multiplier"]
                if is_premium
                else ["shield"]
            ),
        )

    def get_user_stats(self, address: str) -> UserStats:
        key = address.lower()
        if key not in self._stats:
            self._stats[key] = UserStats(address=key)
        return self._stats[key]

    def record_score(self, address: str, score: int, is_premium: bool) -> UserStats:
        stats = self.get_user_stats(address)
        stats.totalScore += score
        stats.bestScore = max(stats.bestScore, score)
        stats.gamesPlayed += 1
        stats.isPremium = is_premium
        stats.lastPlayed = utcnow()

        logger.info("score_recorded", address=stats.address, score=score, premium=is_premium)
        return stats

    def get_leaderboard(self, limit: int = 10) -> List[UserStats]:
        ranked = sorted(self._stats.values(), key=lambda s: s.bestScore, reverse=True)
        return ranked[:limit]
