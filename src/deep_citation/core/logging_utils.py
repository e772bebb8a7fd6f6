"""Structured logging helpers for upload and verification tracing."""

import logging
from typing import Any


def truncate(text: str | None, max_length: int = 100) -> str:
    """Truncate text for logging, adding ellipsis if truncated."""
    if text is None:
        return "<none>"
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_log_dict(data: dict[str, Any]) -> str:
    """Format dictionary as key=value pairs for logging."""
    parts = []
    for key, value in data.items():
        if isinstance(value, str):
            parts.append(f'{key}="{truncate(value, 80)}"')
        elif isinstance(value, list | tuple):
            if len(value) <= 3:
                parts.append(f"{key}={list(value)}")
            else:
                parts.append(f"{key}=[{value[0]}, {value[1]}, ... +{len(value) - 2} more]")
        elif isinstance(value, dict):
            parts.append(f"{key}={{...{len(value)} keys}}")
        else:
            parts.append(f"{key}={value}")
    return " | ".join(parts)


class StructuredLogger:
    """Logger wrapper that renders an event name plus key=value fields."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _format_message(self, message: str, **kwargs: Any) -> str:
        if kwargs:
            return f"{message} | {format_log_dict(kwargs)}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format_message(message, **kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger."""
    return StructuredLogger(name)


# Event helpers used by the verification client


def log_upload_request(
    logger: StructuredLogger,
    filename: str | None,
    byte_size: int,
    attachment_id: str | None = None,
) -> None:
    logger.info(
        "UPLOAD_REQUEST",
        filename=filename or "<unnamed>",
        bytes=byte_size,
        attachment_id=attachment_id or "<server-assigned>",
    )


def log_upload_response(
    logger: StructuredLogger,
    attachment_id: str,
    duration_ms: float,
    page_count: int | None = None,
) -> None:
    logger.info(
        "UPLOAD_RESPONSE",
        attachment_id=attachment_id,
        pages=page_count,
        duration_ms=round(duration_ms, 1),
    )


def log_upload_error(
    logger: StructuredLogger,
    filename: str | None,
    error: Exception,
    status_code: int | None = None,
) -> None:
    logger.error(
        "UPLOAD_ERROR",
        filename=filename or "<unnamed>",
        error_type=type(error).__name__,
        error=truncate(str(error), 200),
        status_code=status_code,
    )


def log_verification_request(
    logger: StructuredLogger,
    attachment_id: str,
    citation_count: int,
    fingerprint: str,
    in_flight: int | None = None,
) -> None:
    logger.info(
        "VERIFY_REQUEST",
        attachment_id=attachment_id,
        citations=citation_count,
        fingerprint=fingerprint,
        in_flight=in_flight,
    )


def log_verification_response(
    logger: StructuredLogger,
    attachment_id: str,
    statuses: list[str],
    duration_ms: float,
) -> None:
    logger.info(
        "VERIFY_RESPONSE",
        attachment_id=attachment_id,
        results=len(statuses),
        statuses=statuses,
        duration_ms=round(duration_ms, 1),
    )


def log_verification_error(
    logger: StructuredLogger,
    attachment_id: str,
    error: Exception,
    status_code: int | None = None,
) -> None:
    logger.error(
        "VERIFY_ERROR",
        attachment_id=attachment_id,
        error_type=type(error).__name__,
        error=truncate(str(error), 200),
        status_code=status_code,
    )


def log_request_coalesced(
    logger: StructuredLogger,
    attachment_id: str,
    fingerprint: str,
) -> None:
    logger.debug(
        "VERIFY_COALESCED",
        attachment_id=attachment_id,
        fingerprint=fingerprint,
    )
