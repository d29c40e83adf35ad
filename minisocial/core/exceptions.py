"""Errors raised by the post interaction store.

The store knows nothing about HTTP; each error only carries the status code
the routing layer should answer with. ``minisocial.main`` registers a single
handler that renders them as ``{"success": false, "message": ..., "errors": ...}``.
"""

from typing import Any, Dict, Iterable, List, Optional


class PostStoreError(Exception):
    """Base class for store outcomes that are not a success."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PostStoreError):
    """Malformed or constraint-violating input.

    ``errors`` is a list of ``{"field": ..., "message": ...}`` dicts so the
    client gets a machine-readable reason.
    """

    status_code = 400
    default_message = "Validation error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFound(PostStoreError):
    """The referenced post does not exist."""

    status_code = 404
    default_message = "Post not found"


class Forbidden(PostStoreError):
    """Authenticated, but not allowed to perform this mutation."""

    status_code = 403
    default_message = "Not authorized to modify this post"


class StorageError(PostStoreError):
    """The persistence layer failed; details go to the log, not the client."""

    status_code = 500
    default_message = "Storage failure"


def format_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic/FastAPI error dicts into ``{field, message}`` pairs"""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        formatted.append({
            "field": ".".join(loc) or "__root__",
            "message": error.get("msg", "Invalid value").removeprefix("Value error, "),
        })
    return formatted


__all__ = [
    "PostStoreError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "StorageError",
    "format_errors",
]
