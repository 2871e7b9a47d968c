from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "The requested resource was not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class FieldValidationError(HTTPException):
    """Input rejected; ``errors`` lists every offending field."""

    def __init__(
        self,
        errors: List[Dict[str, Any]],
        detail: str = "Invalid emergency transport data"
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
        self.errors = errors


class InvalidTransitionError(HTTPException):
    def __init__(self, current: str, target: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move transport from {current} to {target}",
        )
        self.current = current
        self.target = target


def format_validation_errors(raw_errors, skip: Optional[tuple] = None) -> List[Dict[str, Any]]:
    """Flatten pydantic error dicts into ``{"field", "message"}`` pairs.

    Location prefixes such as ``body`` and ``path`` are dropped so the field
    is named the way the client sent it.
    """
    skip = skip or ("body", "path", "query")
    formatted = []
    for error in raw_errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in skip]
        formatted.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return formatted
