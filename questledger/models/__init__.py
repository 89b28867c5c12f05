"""Database models."""
from questledger.models.quest import UserQuest, Goal, QuestStatus
from questledger.models.player import PlayerStat, PlayerProfile

__all__ = [
    "UserQuest",
    "Goal",
    "QuestStatus",
    "PlayerStat",
    "PlayerProfile",
]
