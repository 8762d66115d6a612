"""Invoke consumer callbacks that may be plain functions or coroutines."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

Callback = Callable[..., Any]


async def invoke_callback(callback: Callback, *args: Any, logger: logging.Logger) -> bool:
    """Call `callback`, awaiting it if needed. Return False if it raised.

    Consumer errors are logged and never propagated to the producer.
    """
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Callback %r failed", getattr(callback, "__name__", callback))
        return False
    return True
