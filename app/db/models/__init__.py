from app.db.models.artifact import DocumentVersion, Suggestion

__all__ = [
    "DocumentVersion",
    "Suggestion",
]
