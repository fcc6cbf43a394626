from app.domains.collaboration.assignment import Assignment, AssignmentPlanner, AssignmentPreview
from app.domains.collaboration.document import CollaborativeDocument, EditSession
from app.domains.collaboration.feed import ChangeFeed, change_feed
from app.domains.collaboration.locks import LockManager, LockResult
from app.domains.collaboration.presence import PresenceEntry, PresenceTracker, presence_tracker
from app.domains.collaboration.replica import LocalDraft, LocalReplica
from app.domains.collaboration.services import CollaborationService
from app.domains.collaboration.versions import RestoreResult, VersionStore
from app.domains.collaboration.workflow import StatusWorkflow, TRANSITIONS

__all__ = [
    "Assignment", "AssignmentPlanner", "AssignmentPreview",
    "CollaborativeDocument", "EditSession",
    "ChangeFeed", "change_feed",
    "LockManager", "LockResult",
    "PresenceEntry", "PresenceTracker", "presence_tracker",
    "LocalDraft", "LocalReplica",
    "CollaborationService",
    "RestoreResult", "VersionStore",
    "StatusWorkflow", "TRANSITIONS"
]
