"""
Call-control interface built on the command API.

This module contains the highest-level components:
- Execute (dialplan applications addressed to one channel)
- ExecuteError (raised when an application is refused)
"""

from .execute import Execute
from ..exceptions import ExecuteError

__all__ = [
    "Execute",
    "ExecuteError",
]
