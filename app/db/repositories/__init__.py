from app.db.repositories.version_repository import VersionRepository
from app.db.repositories.suggestion_repository import SuggestionRepository

__all__ = [
    "VersionRepository",
    "SuggestionRepository"
]
