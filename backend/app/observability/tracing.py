"""Opik trace helpers used around model calls, program mutations and routes."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from app.core.context import get_request_id
from app.observability.client import get_opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def _trace_metadata(
    metadata: Optional[Dict[str, Any]],
    user_id: Optional[str],
    request_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """Drop empty values and attach user/request ids; None when nothing is left."""
    merged = {key: value for key, value in (metadata or {}).items() if value is not None}
    if user_id:
        merged.setdefault("user_id", str(user_id))
    request_id = request_id or get_request_id()
    if request_id:
        merged.setdefault("request_id", request_id)
    return merged or None


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Open an Opik trace for the duration of the block and yield it (or None).

    Exceptions raised in the block are attached as ``error_info`` and re-raised.
    With Opik disabled this is a no-op that yields None.
    """
    client = get_opik_client()
    span: Optional["Trace"] = None
    if client:
        try:
            span = client.trace(name=name, metadata=_trace_metadata(metadata, user_id, request_id))
        except Exception as exc:  # pragma: no cover - SDK failure
            logger.debug("Opik trace %s not started: %s", name, exc)

    try:
        yield span
    except Exception as exc:
        if span:
            try:
                span.update(error_info={"message": str(exc)})
            except Exception:  # pragma: no cover - SDK failure
                logger.debug("Opik trace %s: error info not attached", name, exc_info=True)
        raise
    finally:
        if span:
            try:
                span.end()
            except Exception:  # pragma: no cover - SDK failure
                logger.debug("Opik trace %s not closed cleanly", name, exc_info=True)


def annotate(span: Optional["Trace"], **metadata: Any) -> None:
    """Attach metadata to an open trace; skipped when tracing is off."""
    if not span:
        return
    try:
        span.update(metadata=metadata)
    except Exception:  # pragma: no cover - SDK failure
        logger.debug("Unable to annotate trace", exc_info=True)
