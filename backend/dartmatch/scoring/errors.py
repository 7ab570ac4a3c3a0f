from __future__ import annotations


class DartmatchError(Exception):
    """Base class for match-scoring errors."""


class InvalidThrow(DartmatchError, ValueError):
    def __init__(self, value: object, multiplier: object, reason: str) -> None:
        super().__init__(f"invalid dart ({value!r}, {multiplier!r}): {reason}")
        self.value = value
        self.multiplier = multiplier
        self.reason = reason


class InvalidConfig(DartmatchError, ValueError):
    pass


class MatchFinished(DartmatchError, RuntimeError):
    def __init__(self) -> None:
        super().__init__("match is already over")


class NoMatchInProgress(DartmatchError, LookupError):
    def __init__(self) -> None:
        super().__init__("no match in progress")


class SnapshotError(DartmatchError, ValueError):
    """
    A persisted snapshot could not be decoded or failed validation.
    """
