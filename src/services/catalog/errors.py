"""Exceptions raised by the catalog layer."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog failures."""


class CatalogFetchError(CatalogError):
    """A catalog request failed as a whole (network, HTTP status or envelope)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
