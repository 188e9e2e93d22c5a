"""
shared/utils/best_effort.py
Non-critical side tasks (notification pings, view/click counters).
Attempted once; a failure is logged and never reaches the caller.
"""

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def run_non_critical(
    name: str,
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> bool:
    """Await fn(*args, **kwargs). Returns True on success, False on failure."""
    try:
        await fn(*args, **kwargs)
        return True
    except Exception as e:
        logger.warning(f"Non-critical task '{name}' failed: {e}")
        return False
