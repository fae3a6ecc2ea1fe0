"""
Structured outcomes shared by the sync services
"""
from dataclasses import dataclass, asdict


@dataclass
class RecordFailure:
    """One record that could not be migrated/reconciled, and why"""
    key: str
    reason: str
    retryable: bool

    def to_dict(self) -> dict:
        return asdict(self)


def describe_failure(error: Exception) -> str:
    message = getattr(error, 'message', None) or str(error)
    return f"{error.__class__.__name__}: {message}"
