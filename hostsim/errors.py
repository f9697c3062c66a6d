"""
Error taxonomy shared by the host and generated actor code.

Two families:
- ErrorNumber / HostError: failures reported by host syscalls (blockstore,
  state root, message accessors). Generated code converts these into aborts.
- ExitCode / ActorAbort: the terminal abort channel. An abort ends the current
  invocation; generated code never catches it.
"""

from enum import IntEnum
from typing import NoReturn


class ErrorNumber(IntEnum):
    """Syscall error numbers reported by the host."""
    ILLEGAL_ARGUMENT = 1
    ILLEGAL_OPERATION = 2
    NOT_FOUND = 4
    SERIALIZATION = 6
    ILLEGAL_CID = 8
    ILLEGAL_CODEC = 9
    READ_ONLY = 13


class ExitCode(IntEnum):
    """Exit codes observable by the host after an invocation."""
    OK = 0
    USR_FORBIDDEN = 18
    USR_ILLEGAL_STATE = 20
    USR_SERIALIZATION = 21
    USR_UNHANDLED_MESSAGE = 22


class HostError(Exception):
    """A host syscall failed."""

    def __init__(self, number: ErrorNumber, message: str):
        super().__init__(message)
        self.number = number
        self.message = message

    def __str__(self):
        return f"{self.number.name.lower()}: {self.message}"


class ActorAbort(Exception):
    """Terminal abort of the current invocation."""

    def __init__(self, exit_code: ExitCode, message: str):
        super().__init__(message)
        self.exit_code = exit_code
        self.message = message

    def __str__(self):
        return f"{self.exit_code.name} ({int(self.exit_code)}): {self.message}"


def abort(exit_code: ExitCode, message: str) -> NoReturn:
    """Abort the current invocation with an exit code and diagnostic."""
    raise ActorAbort(exit_code, message)
