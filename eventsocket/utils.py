"""
Utility functions for the eventsocket library
"""
import asyncio
import inspect
import logging
import sys
from typing import Any, Awaitable, Callable, Optional


def run_with_keyboard_interrupt(main_func: Callable[[], Awaitable[Any]]) -> None:
    """
    Run an async main function with graceful KeyboardInterrupt handling.

    This function wraps asyncio.run() to catch KeyboardInterrupt (Ctrl+C) and
    provide a clean shutdown experience.

    Args:
        main_func: The async main function to run
    """
    try:
        asyncio.run(main_func())
    except KeyboardInterrupt:
        print("\n🛑 Interrupted by user (Ctrl+C)")
        print("Shutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


async def invoke_callback(callback: Callable[..., Any], *args, logger: Optional[logging.Logger] = None) -> None:
    """Call a sync or async callback, logging rather than raising its errors"""
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        (logger or logging.getLogger(__name__)).exception(f"Callback {callback_name(callback)} raised")


def callback_name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)
