"""API routers."""
from questledger.routers import health, notifications, quests, stats

__all__ = ["health", "notifications", "quests", "stats"]
