"""Single-flight guard and cancellation escalation for long-running operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import OperationBusy
from .models import CancelSignal, CancelStage, OperationKind
from .signals import CancelReceiver, CancelWatch

logger = logging.getLogger(__name__)

_NEXT_STAGE = {
    CancelStage.NONE: CancelStage.GRACEFUL_REQUESTED,
    CancelStage.GRACEFUL_REQUESTED: CancelStage.FORCE_REQUESTED,
    CancelStage.FORCE_REQUESTED: CancelStage.FORCE_REQUESTED,
}

_STAGE_SIGNAL = {
    CancelStage.GRACEFUL_REQUESTED: CancelSignal.GRACEFUL,
    CancelStage.FORCE_REQUESTED: CancelSignal.FORCE,
}


@dataclass
class InflightOperation:
    kind: OperationKind
    account_idx: int
    cancel: CancelWatch
    stage: CancelStage = CancelStage.NONE

    def matches(self, kind: OperationKind, account_idx: int) -> bool:
        return self.kind is kind and self.account_idx == account_idx


class OperationSupervisor:
    """Owns the application-wide inflight slot.

    Only the reconciliation loop calls into this object, so the busy check
    in ``try_start`` and the creation of the slot cannot interleave with
    another start.
    """

    def __init__(self) -> None:
        self._inflight: Optional[InflightOperation] = None

    @property
    def inflight(self) -> Optional[InflightOperation]:
        return self._inflight

    @property
    def busy(self) -> bool:
        return self._inflight is not None

    @property
    def stage(self) -> CancelStage:
        return self._inflight.stage if self._inflight else CancelStage.NONE

    def try_start(self, kind: OperationKind, account_idx: int) -> CancelReceiver:
        """Claim the slot for ``kind`` on ``account_idx``.

        Raises:
            OperationBusy: another operation is still inflight.
        """
        if self._inflight is not None:
            raise OperationBusy(
                f"{self._inflight.kind.label} is already running for account #{self._inflight.account_idx}"
            )
        watch = CancelWatch()
        self._inflight = InflightOperation(kind=kind, account_idx=account_idx, cancel=watch)
        logger.info("operation started: %s (account #%d)", kind.label, account_idx)
        return watch.subscribe()

    def request_cancel(self) -> Optional[CancelStage]:
        """Advance escalation by one step.

        Returns the stage reached, or None when nothing is inflight. The
        signal is only pushed when the stage actually changes, so a third
        request never repeats the force action.
        """
        op = self._inflight
        if op is None:
            return None
        previous = op.stage
        op.stage = _NEXT_STAGE[previous]
        if op.stage is not previous:
            op.cancel.send(_STAGE_SIGNAL[op.stage])
            logger.info("cancel escalated to %s for %s", op.stage.value, op.kind.label)
        return op.stage

    def finish(self, kind: OperationKind, account_idx: int) -> bool:
        """Release the slot if ``(kind, account_idx)`` is the inflight operation."""
        op = self._inflight
        if op is None or not op.matches(kind, account_idx):
            logger.warning(
                "ignoring completion of %s (account #%d): not the inflight operation",
                kind.label,
                account_idx,
            )
            return False
        self._inflight = None
        logger.info("operation finished: %s (account #%d)", kind.label, account_idx)
        return True
