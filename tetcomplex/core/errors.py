"""Exception types raised by tetcomplex.

Failure to find a unique simplex is reported through invalid handles, not
through these exceptions. They cover dereferencing dead handles, debug-mode
precondition checks and failed validity gates.
"""
from __future__ import annotations


class TetComplexError(Exception):
    """Base class for tetcomplex errors."""


class InvalidHandleError(TetComplexError, KeyError):
    """A handle is invalid, stale (generation mismatch) or logically removed."""


class PreconditionError(TetComplexError, AssertionError):
    """An operator precondition checked in debug mode does not hold."""


class MeshValidityError(TetComplexError):
    """The validity checker found an inconsistent complex."""

    def __init__(self, messages):
        self.messages = list(messages)
        head = '; '.join(self.messages[:5])
        more = f' (+{len(self.messages) - 5} more)' if len(self.messages) > 5 else ''
        super().__init__(f'invalid tetrahedral complex: {head}{more}')


__all__ = ['TetComplexError', 'InvalidHandleError', 'PreconditionError', 'MeshValidityError']
