"""Classification of epochs whose reward query failed."""

from __future__ import annotations

from enum import Enum

# X1 mainnet was rebooted ("Buenos Aires" rollback); ledger data for epochs at
# or below this number predates the reboot and cannot be queried on the
# current chain. This is a property of the chain history, not a setting.
ROLLBACK_EPOCH_THRESHOLD = 15


class FailureKind(str, Enum):
    EARLY = "early"
    UNEXPECTED = "unexpected"


def classify_failure(epoch: int) -> FailureKind:
    """Return EARLY for epochs lost to the rollback, UNEXPECTED otherwise."""
    if epoch <= ROLLBACK_EPOCH_THRESHOLD:
        return FailureKind.EARLY
    return FailureKind.UNEXPECTED
