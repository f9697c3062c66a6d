"""
Base class for actor implementation blocks.

Generated dispatch code instantiates the implementation class with the
invocation context and calls one public method with (params, state).
"""

from .context import InvocationContext
from .errors import ExitCode, abort


class Actor:
    """Base class for state machine actors."""

    def __init__(self, ctx: InvocationContext):
        self.ctx = ctx

    def require_caller(self, *allowed: int) -> None:
        """Abort with USR_FORBIDDEN unless the caller is one of allowed."""
        caller = self.ctx.caller()
        if caller not in allowed:
            abort(ExitCode.USR_FORBIDDEN, f"caller {caller} is not permitted, expected one of {list(allowed)}")
