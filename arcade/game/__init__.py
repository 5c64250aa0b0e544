"""
Game module for Gasless Arcade
Play data, scores and score rewards
"""

from arcade.game.service import GameService, GameData, UserStats, ScoreSubmission
from arcade.game.rewards import RewardService, RewardClaim, RewardResult

__all__ = [
    "GameService",
    "GameData",
    "UserStats",
    "ScoreSubmission",
    "RewardService",
    "RewardClaim",
    "RewardResult",
]
