# /src/core/errors.py
# Revert taxonomy. Every failure the depot or its collaborators signal on
# purpose is a Revert carrying a reason string; anything else is a bug.

GENERIC_STEP_FAILURE = "Farm: operation produced no data"


class Revert(Exception):
    """A deliberate failure that aborts the enclosing atomic unit."""
    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


class UnsupportedModeError(Revert):
    pass


class SenderMismatchError(Revert):
    pass


class UnauthorizedCallbackError(Revert):
    pass


class LoanStateError(Revert):
    pass


class OperationDecodeError(Revert):
    pass


class StepFailedError(Revert):
    """
    Raised by the batch executor when one step reverts. The reason is the
    step's own reason so that nested batches surface the innermost cause.
    """
    def __init__(self, index: int, reason: str):
        super().__init__(reason or GENERIC_STEP_FAILURE)
        self.index = index

    @classmethod
    def from_revert(cls, index: int, error: Revert) -> "StepFailedError":
        return cls(index, error.reason)
