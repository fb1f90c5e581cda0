"""Tracing utilities wrapping Opik."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from flowtrack.core.context import get_request_id, get_user_id
from flowtrack.observability import client as opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Open an Opik trace for the duration of the block.

    Request and user ids default to the ones bound by the request middleware. When Opik is
    disabled the block still runs and only a debug line with the elapsed time is logged.
    """
    client = opik_client.get_opik_client()
    opik_trace: Optional["Trace"] = None
    request_id = request_id or get_request_id()
    user_id = user_id or get_user_id()
    started = perf_counter()

    if client:
        trace_metadata = {k: v for k, v in (metadata or {}).items() if v is not None}
        if user_id:
            trace_metadata.setdefault("user_id", str(user_id))
        if request_id:
            trace_metadata.setdefault("request_id", request_id)
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata or None)
        except Exception as exc:  # pragma: no cover - remote SDK guard
            logger.debug("Unable to start Opik trace %s: %s", name, exc)
            opik_trace = None

    try:
        yield opik_trace
    except Exception as exc:
        if opik_trace:
            try:
                opik_trace.update(error_info={"message": str(exc), "exception_type": type(exc).__name__})
            except Exception:  # pragma: no cover
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        logger.debug("%s finished in %.1f ms", name, (perf_counter() - started) * 1000)
        if opik_trace:
            try:
                opik_trace.end()
            except Exception:  # pragma: no cover
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)


def annotate(span: Optional["Trace"], **metadata: Any) -> None:
    """Best-effort metadata update on a span returned by ``trace``."""
    if not span:
        return
    try:
        span.update(metadata=metadata)
    except Exception:  # pragma: no cover - remote SDK guard
        logger.debug("Unable to annotate trace with %s", sorted(metadata))
