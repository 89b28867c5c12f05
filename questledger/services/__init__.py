"""Quest engine services."""
from questledger.services.notification_service import (
    NotificationService,
    QuestEventBus,
    get_event_bus,
    get_notification_service,
)
from questledger.services.quest_repository import InMemoryQuestRepository, QuestRepository, SqlQuestRepository
from questledger.services.quest_service import QuestService, QuestServiceRegistry
from questledger.services.reward_ledger import RewardLedger
from questledger.services.snapshot_ledger import SnapshotLedger
from questledger.services.stat_service import ProfileStatService, StatService
