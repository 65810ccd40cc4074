from app.domains.artifacts.entities import ArtifactKind, Draft, DraftStatus, Suggestion, Version
from app.domains.artifacts.deltas import Delta, DeltaType, parse_delta
from app.domains.artifacts.reducer import ContentPolicy, reduce
from app.domains.artifacts.visibility import VisibilityGate
from app.domains.artifacts.versions import RestorePolicy, VersionStore, ViewMode
from app.domains.artifacts.console import ConsoleAggregator, ConsoleOutput, ConsoleStatus
from app.domains.artifacts.suggestions import AnchoredSuggestion, SuggestionOverlay
from app.domains.artifacts.coordinator import SyncCoordinator, SyncFailure
from app.domains.artifacts.services import ArtifactSession, ArtifactSessionManager, build_version_store

__all__ = [
    "ArtifactKind", "Draft", "DraftStatus", "Suggestion", "Version",
    "Delta", "DeltaType", "parse_delta",
    "ContentPolicy", "reduce",
    "VisibilityGate",
    "RestorePolicy", "VersionStore", "ViewMode",
    "ConsoleAggregator", "ConsoleOutput", "ConsoleStatus",
    "AnchoredSuggestion", "SuggestionOverlay",
    "SyncCoordinator", "SyncFailure",
    "ArtifactSession", "ArtifactSessionManager", "build_version_store"
]
