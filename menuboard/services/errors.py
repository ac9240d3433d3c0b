from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class MenuError(Exception):
    status_code = 400
    code = "menu_error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(MenuError):
    status_code = 401
    code = "not_authenticated"
    default_message = "Not authenticated"


class NotFound(MenuError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ValidationFailure(MenuError):
    status_code = 400
    code = "validation_failure"
    default_message = "Invalid request"


class ForeignKeyViolation(MenuError):
    status_code = 409
    code = "foreign_key_violation"
    default_message = "Category is not empty. Delete its items first."


class SlugConflict(MenuError):
    status_code = 409
    code = "slug_conflict"
    default_message = "System collision, try again."


class UploadFailure(MenuError):
    status_code = 502
    code = "upload_failure"
    default_message = "Failed to upload image"


class PersistenceFailure(MenuError):
    status_code = 500
    code = "persistence_failure"
    default_message = "Failed to save changes"


class PartialReorderFailure(MenuError):
    """Some rows of a sequential reorder could not be written."""

    status_code = 500
    code = "partial_reorder_failure"
    default_message = "Some positions could not be saved"

    def __init__(self, failed_ids: list[int], message: str | None = None) -> None:
        self.failed_ids = list(failed_ids)
        super().__init__(message or f"{self.default_message}: {self.failed_ids}")


@dataclass
class ActionResult:
    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None
    status_code: int = 200
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, **details: Any) -> "ActionResult":
        return cls(success=True, data=data, details=details)

    @classmethod
    def fail(cls, exc: MenuError) -> "ActionResult":
        return cls(
            success=False,
            error=exc.message,
            error_code=exc.code,
            status_code=exc.status_code,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
            payload["error_code"] = self.error_code
        payload.update(self.details)
        return payload


def _rollback(args: tuple, kwargs: dict) -> None:
    db = kwargs.get("db")
    if db is None:
        db = next((arg for arg in args if isinstance(arg, Session)), None)
    if db is not None:
        db.rollback()


def action_boundary(func: Callable[..., Any]) -> Callable[..., ActionResult]:
    """Run a menu operation and turn every known failure into a result value.

    The wrapped function returns its data, or an ``ActionResult`` when it
    needs to attach extra details.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ActionResult:
        try:
            outcome = func(*args, **kwargs)
        except MenuError as exc:
            logger.warning("%s failed: %s", func.__name__, exc.message, extra={"status_code": exc.status_code})
            return ActionResult.fail(exc)
        except SQLAlchemyError as exc:
            logger.exception("%s failed on persistence", func.__name__)
            _rollback(args, kwargs)
            original = getattr(exc, "orig", None)
            return ActionResult.fail(PersistenceFailure(str(original or exc)))
        if isinstance(outcome, ActionResult):
            return outcome
        return ActionResult.ok(outcome)

    return wrapper
