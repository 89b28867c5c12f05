"""Quest engine exceptions."""


class QuestServiceError(RuntimeError):
    """Base exception for quest lifecycle errors."""


class QuestNotFoundError(QuestServiceError):
    """The referenced quest does not exist in the repository or the local list."""

    def __init__(self, quest_id: str):
        super().__init__(f"Quest not found: {quest_id}")
        self.quest_id = quest_id


class InvalidStateError(QuestServiceError):
    """The quest's status does not permit the requested transition."""

    def __init__(self, quest_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} quest {quest_id} while it is {status}")
        self.quest_id = quest_id
        self.status = status
        self.action = action


class NoSnapshotError(QuestServiceError):
    """Undo was requested but no pre-transition snapshot exists."""

    def __init__(self, quest_id: str):
        super().__init__(f"Nothing to undo for quest {quest_id}")
        self.quest_id = quest_id


class RemoteError(QuestServiceError):
    """The quest repository rejected or failed a write."""
