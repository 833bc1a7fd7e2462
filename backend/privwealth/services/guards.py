from __future__ import annotations
from privwealth.errors import OperationInProgress


class InFlight:
    """At most one running call per guarded operation."""

    def __init__(self, operation: str):
        self.operation = operation
        self.active = False

    def __enter__(self) -> "InFlight":
        if self.active:
            raise OperationInProgress(f"{self.operation} is already in progress.")
        self.active = True
        return self

    def __exit__(self, *exc) -> None:
        self.active = False
