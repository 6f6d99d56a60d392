"""Helpers for caller-supplied callbacks that may be sync or async."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional


async def invoke_callback(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call ``callback`` with ``args``, awaiting the result when it is awaitable."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
