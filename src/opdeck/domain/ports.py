"""
Ports (interfaces) for remote services and persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from typing import Any

from .models import CatalogEntry, ThemeRecord


class ListFetcher(ABC):
    """
    Port for reading a user's catalog list.

    Implementations:
        - AniListFetcher: Paginates the AniList GraphQL API.
    """

    @abstractmethod
    async def fetch_all(self, user_id: str) -> list[CatalogEntry]:
        """
        Fetch every entry on the user's list, in remote order.

        Args:
            user_id: Remote user name.

        Returns:
            List of CatalogEntry; empty if the user has no entries.

        Raises:
            NetworkError: If a page request fails for good.
        """
        pass


class ThemeIndex(ABC):
    """
    Port for looking up opening themes by show title.

    Implementations:
        - AnimeThemesIndex: Queries the AnimeThemes REST API.
    """

    @abstractmethod
    async def search_openings(self, title: str) -> list[ThemeRecord]:
        """
        Return the opening themes of the first show matching ``title``.

        Args:
            title: Display name used as the remote name filter.

        Returns:
            List of ThemeRecord; empty if nothing matched.
        """
        pass


class BlobStore(ABC):
    """
    Port for the persisted key-value substrate.

    Values are JSON-compatible and replaced wholesale on every write.
    """

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or unreadable."""
        pass

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Replace the stored value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass
