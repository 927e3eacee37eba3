"""Lazily created, process-wide Opik client."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from opik import Opik

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_client: Optional[Opik] = None
_client_lock = Lock()
_init_attempted = False


def _build_client(config: Settings) -> Optional[Opik]:
    if not config.opik_enabled:
        logger.debug("Opik disabled; traces and metrics are no-ops.")
        return None
    if not config.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; tracing stays off.")
        return None
    try:
        client = Opik(project_name=config.opik_project, api_key=config.opik_api_key)
    except Exception as exc:  # pragma: no cover - network/credential failure
        logger.warning("Opik init failed, tracing disabled for this process: %s", exc)
        return None
    logger.info("Opik tracing to project %s.", config.opik_project)
    return client


def init_opik(config: Settings | None = None) -> Optional[Opik]:
    """Build the client on the first call only; a failed attempt is not retried."""
    global _client, _init_attempted

    with _client_lock:
        if _init_attempted:
            return _client
        _init_attempted = True
        _client = _build_client(config or default_settings)
        return _client


def get_opik_client() -> Optional[Opik]:
    if _client is not None:
        return _client
    return init_opik()


def reset_opik_client() -> None:
    """Forget the cached client so the next call re-reads settings."""
    global _client, _init_attempted
    with _client_lock:
        _client = None
        _init_attempted = False
