"""Error types and helpers for import validation failures."""

import logging
from typing import Any, List, Union

from curriculumflow.models import ImportStage

logger = logging.getLogger(__name__)

HEADER_NOT_FOUND_MESSAGE = "Could not find header row in CSV"


class StoreError(Exception):
    """Raised by the storage layer when an upsert or insert fails."""


class HeaderNotFoundError(ValueError):
    """Raised when no header row exists within the scan window."""

    def __init__(self, message: str = HEADER_NOT_FOUND_MESSAGE) -> None:
        super().__init__(message)


class ImportStageError(Exception):
    """A store failure attributed to one stage of the hierarchical upsert."""

    def __init__(self, stage: Union[ImportStage, str], message: str) -> None:
        """Initialize the stage error.

        Args:
            stage: Stage that failed (Category, Module, Topic or Session)
            message: Underlying error message text
        """
        self.stage = ImportStage(stage)
        self.message = message
        super().__init__(f"{self.stage.value} error: {message}")


def error_message(error: BaseException) -> str:
    """Return the message text of an exception, never the object itself.

    Args:
        error: Exception to describe

    Returns:
        Exception message, or its class name when the message is empty
    """
    text = str(error).strip()
    return text or error.__class__.__name__


def format_row_error(row_number: int, error: Union[BaseException, str]) -> str:
    """Format a per-row failure message.

    Args:
        row_number: 1-based position of the data row
        error: Exception or message for the failure

    Returns:
        Message in the form "Row <n>: <message>"
    """
    message = error if isinstance(error, str) else error_message(error)
    return f"Row {row_number}: {message}"


def summarize_errors(errors: List[str], limit: int = 10) -> List[str]:
    """Trim an error list for display.

    Args:
        errors: Full list of error messages
        limit: Maximum number of messages to keep

    Returns:
        The first ``limit`` messages, followed by a trailer counting the rest
    """
    shown = list(errors[:limit])
    remaining = len(errors) - limit
    if remaining > 0:
        shown.append(f"... and {remaining} more errors")
    return shown


def default_if_empty(value: Any, default: str) -> str:
    """Return ``default`` when a cell value is missing or blank.

    Args:
        value: Raw cell value
        default: Replacement for blank values

    Returns:
        Trimmed string value or the default
    """
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        logger.debug(f"Empty value, using default: {default}")
        return default
    return text
