"""Exceptions raised by the mastery engine and its stores."""

from __future__ import annotations


class MasteryError(Exception):
    """Base class for engine errors."""


class InvalidInputError(MasteryError, ValueError):
    """An attempt or request payload is malformed; retrying it unchanged will fail again."""


class PersistenceError(MasteryError, RuntimeError):
    """The backing store could not read or write a record."""


class PolicyConfigError(MasteryError, ValueError):
    """The scheduling policy table could not be parsed."""


__all__ = [
    "InvalidInputError",
    "MasteryError",
    "PersistenceError",
    "PolicyConfigError",
]
