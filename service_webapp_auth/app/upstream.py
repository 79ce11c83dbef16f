"""
Blocking identity provider calls wrapped for the event loop.
"""

import asyncio
import time
from typing import Any, Callable, Optional, Type

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .providers.base import AccountAlreadyExists

logger = get_logger("webapp_auth.upstream")


async def call_provider(operation: str,
                        func: Callable[..., Any],
                        *args: Any,
                        timeout_seconds: float,
                        failure: Type[UpstreamError],
                        metrics: Optional[MetricsCollector] = None) -> Any:
    """Run ``func(*args)`` in a worker thread under a timeout.

    A timeout becomes ``failure``; the worker thread itself is not cancelled.
    """
    start_time = time.time()
    status = "error"
    try:
        result = await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout_seconds)
        status = "ok"
        return result
    except asyncio.TimeoutError as e:
        status = "timeout"
        logger.error("Identity provider call timed out", operation=operation, timeout_seconds=timeout_seconds)
        raise failure(
            "Identity provider timed out",
            details={"operation": operation, "timeout_seconds": timeout_seconds}
        ) from e
    except AccountAlreadyExists:
        status = "conflict"
        raise
    finally:
        if metrics is not None:
            metrics.record_upstream_call(operation, status, time.time() - start_time)
