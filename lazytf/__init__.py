"""lazytf - terminal dashboard for Terraform workflows across AWS accounts.

Key components:
- Controller: launches probes and single-flight operations, drains events
- AppState: the state the dashboard draws, mutated only by the UI loop
- OperationSupervisor: single inflight slot and cancel escalation
- run_streaming: spawn a command and stream its output as events
"""

from .controller import Controller
from .events import AccountAuthUpdate, EventChannel, OperationFinished, OutputLine, WorkspacesLoaded
from .models import Account, AuthStatus, CancelSignal, CancelStage, OperationKind, RunOutcome
from .runner import CommandSpec, run_streaming
from .state import AppState
from .supervisor import OperationSupervisor

__version__ = "0.1.0"

__all__ = [
    "Account",
    "AccountAuthUpdate",
    "AppState",
    "AuthStatus",
    "CancelSignal",
    "CancelStage",
    "CommandSpec",
    "Controller",
    "EventChannel",
    "OperationFinished",
    "OperationKind",
    "OperationSupervisor",
    "OutputLine",
    "RunOutcome",
    "WorkspacesLoaded",
    "run_streaming",
]
