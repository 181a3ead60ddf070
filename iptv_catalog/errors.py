"""
Error taxonomy for catalog ingestion.

Per-endpoint (TransportError, ParseError) and per-record (MissingField) errors
are absorbed inside the pipeline. AllEndpointsFailed, StorageError and
InvalidFormat reach the caller.
"""
from typing import Optional


class CatalogError(Exception):
    """Base class for all ingestion errors."""


class TransportError(CatalogError):
    """A candidate endpoint could not be reached or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(CatalogError):
    """A response body is not valid for the attempted interpretation."""


class MissingField(CatalogError):
    """A raw record lacks a field required for normalization."""

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}")
        self.field = field


class AllEndpointsFailed(CatalogError):
    """No candidate endpoint produced a usable payload."""

    def __init__(self, outcomes: Optional[list] = None):
        self.outcomes = outcomes or []
        super().__init__(
            f"Failed to fetch data from any API endpoint ({len(self.outcomes)} tried)"
        )


class StorageError(CatalogError):
    """The catalog transaction failed and was rolled back."""


class InvalidFormat(CatalogError):
    """M3U text does not start with the #EXTM3U header."""


class PlaylistNotFound(CatalogError):
    """No playlist exists with the requested id."""

    def __init__(self, playlist_id: int):
        super().__init__(f"Playlist not found: {playlist_id}")
        self.playlist_id = playlist_id
