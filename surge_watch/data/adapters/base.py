"""
SURGE WATCH — Base Snapshot Provider Interface
All market data adapters must implement this interface.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class SnapshotFetchError(Exception):
    """The provider could not produce a snapshot set for this poll."""


class UnexpectedStatusError(SnapshotFetchError):
    """The upstream API answered, but with a non-200 status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class BaseSnapshotProvider(ABC):
    """Abstract base class for all market data adapters."""

    def __init__(self, name: str):
        self.name = name
        self._session = None

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection / session."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Clean up connection / session."""
        pass

    @abstractmethod
    async def fetch_snapshots(self) -> List[Dict[str, Any]]:
        """
        Return one raw entry per symbol with keys ``symbol``, ``price``,
        ``volume``, ``avg_volume``, ``quote_volume`` and ``timestamp``.
        Entries may be malformed, including for a symbol the upstream
        rejected. Transport failures raise SnapshotFetchError and nothing
        is returned.
        """
        pass

    async def __call__(self) -> List[Dict[str, Any]]:
        return await self.fetch_snapshots()
