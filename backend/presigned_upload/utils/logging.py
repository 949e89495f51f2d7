"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- image_key
- duration_ms

Usage:
    from presigned_upload.utils.logging import configure_logging, log_upload_prepared

    configure_logging('upload-api', 'INFO')
    log_upload_prepared(logger, image_key='uploads/abc.jpeg', duration_ms=12.5)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier (upload-api or upload-reconciler)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'asctime': 'timestamp', 'levelname': 'level'},
            json_ensure_ascii=False
        )

        # Console handler (for container logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    image_key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        image_key: Optional object key
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if image_key:
        extra["image_key"] = image_key
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Upload event functions

def log_upload_prepared(
    logger: logging.Logger,
    image_key: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log presigned authorization issued for a new key."""
    extra = _build_log_extra(
        event="upload_prepared",
        image_key=image_key,
        duration_ms=duration_ms,
        **kwargs
    )
    logger.info(f"Upload prepared: {image_key}", extra=extra)


def log_upload_confirmed(
    logger: logging.Logger,
    image_key: str,
    ledgered: bool,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log upload confirmation event.

    Args:
        logger: Logger instance
        image_key: Object key (required)
        ledgered: Whether the ledger record was written
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_confirmed",
        image_key=image_key,
        duration_ms=duration_ms,
        ledgered=ledgered,
        **kwargs
    )
    logger.info(f"Upload confirmed: {image_key}", extra=extra)


def log_upload_rejected(
    logger: logging.Logger,
    reason: str,
    image_key: Optional[str] = None,
    **kwargs
):
    """
    Log a rejected prepare or confirm request.

    Args:
        logger: Logger instance
        reason: Short reason code (unsupported_type, not_found, ...)
        image_key: Optional object key
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_rejected",
        image_key=image_key,
        reason=reason,
        **kwargs
    )
    logger.warning(f"Upload rejected ({reason}): {image_key}", extra=extra)


def log_ledger_write_failed(
    logger: logging.Logger,
    image_key: str,
    error: str,
    include_traceback: bool = True,
    **kwargs
):
    """
    Log a ledger write that failed after storage confirmed the object.

    The object is real; this record is what operators and the
    reconciliation sweep act on.

    Args:
        logger: Logger instance
        image_key: Object key (required)
        error: Error message (required)
        include_traceback: Whether to include stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="ledger_write_failed",
        image_key=image_key,
        error=str(error),
        needs_reconciliation=True,
        **kwargs
    )

    message = f"Ledger write failed for confirmed upload: {image_key} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


def log_storage_failure(
    logger: logging.Logger,
    operation: str,
    error: str,
    image_key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log storage backend failure event.

    Args:
        logger: Logger instance
        operation: Operation name (presign, head, list) (required)
        error: Error message (required)
        image_key: Optional object key or prefix
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="storage_failure",
        image_key=image_key,
        duration_ms=duration_ms,
        operation=operation,
        error=str(error),
        **kwargs
    )
    logger.error(f"Storage failure: {operation} - {error}", extra=extra)


def log_reconciliation_completed(
    logger: logging.Logger,
    scanned: int,
    recovered: int,
    failed: int,
    duration_ms: Optional[float] = None,
    dry_run: bool = False,
    **kwargs
):
    """Log the summary of a reconciliation sweep."""
    extra = _build_log_extra(
        event="reconciliation_completed",
        duration_ms=duration_ms,
        scanned=scanned,
        recovered=recovered,
        failed=failed,
        dry_run=dry_run,
        **kwargs
    )
    logger.info(
        f"Reconciliation complete: {recovered} recovered, {failed} failed out of {scanned} scanned",
        extra=extra
    )


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
