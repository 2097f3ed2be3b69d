"""Boundary between the plugin and the launcher that hosts it."""

from __future__ import annotations

from abc import ABC, abstractmethod


class HostAPI(ABC):
    """Primitives the launcher offers to a plugin.

    The launcher cannot be notified asynchronously; the only way to get new
    rows on screen is to make it re-issue a query through ``change_query``.
    """

    @abstractmethod
    def change_query(self, query: str, requery: bool = False) -> None:
        ...

    @abstractmethod
    def show_message(self, title: str, subtitle: str = "") -> None:
        ...

    @abstractmethod
    def open_url(self, url: str) -> None:
        ...

    def is_dark_theme(self) -> bool:
        return False
