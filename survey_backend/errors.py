"""
Exception types shared by the adapters and the route layer.
"""

from __future__ import annotations

from typing import Optional

from llm.base import ConfigurationError

__all__ = [
    "ConfigurationError",
    "EntryNotFoundError",
    "InvalidPartitionError",
    "KnowledgeBaseError",
]


class KnowledgeBaseError(Exception):
    """A knowledge-base query or transport failure, carrying the backend detail."""

    def __init__(
        self,
        detail: str,
        *,
        operation: Optional[str] = None,
        partition: Optional[str] = None,
    ):
        super().__init__(detail)
        self.detail = detail
        self.operation = operation
        self.partition = partition

    def as_dict(self) -> dict:
        return {
            "detail": self.detail,
            "operation": self.operation,
            "partition": self.partition,
        }


class InvalidPartitionError(KnowledgeBaseError):
    pass


class EntryNotFoundError(KnowledgeBaseError):
    pass
