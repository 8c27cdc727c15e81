"""Entry points the input layer calls, and the per-tick event drain."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Coroutine, Optional, Set

from .errors import OperationBusy, PreflightError
from .events import EventChannel
from .models import AuthStatus, OperationKind
from .operations import run_operation
from .preflight import validate_composition, validate_operation
from .probes import auth_probe
from .state import BUSY_LINE, AppState

logger = logging.getLogger(__name__)


class Controller:
    """Launches probe and operation tasks and folds their events into ``state``.

    All methods run on the UI loop. Worker tasks only ever talk back through
    ``channel``.
    """

    def __init__(self, state: AppState, channel: Optional[EventChannel] = None) -> None:
        self.state = state
        self.channel = channel or EventChannel()
        self._tasks: Set[asyncio.Task] = set()
        self._probing: Set[int] = set()

    # -- task bookkeeping --------------------------------------------------

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)

        def _on_done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("background task %s crashed", t.get_name(), exc_info=exc)
                self.channel.line(f"Background task {t.get_name()} crashed: {exc}")

        task.add_done_callback(_on_done)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every task launched so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        with suppress(asyncio.CancelledError):
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.channel.close()

    # -- probes ------------------------------------------------------------

    def _launch_probe(self, idx: int) -> None:
        account = self.state.accounts[idx].snapshot()
        self._probing.add(idx)

        async def probe() -> None:
            try:
                await auth_probe(idx, account, self.channel)
            finally:
                self._probing.discard(idx)

        self._spawn(probe(), f"auth-probe-{account.name}")

    def start_startup_probes(self) -> None:
        for idx in range(len(self.state.accounts)):
            if idx not in self._probing:
                self._launch_probe(idx)

    def start_probe(self, idx: Optional[int] = None) -> bool:
        """Re-check credentials for one account (the selected one by default)."""
        state = self.state
        if state.busy:
            state.push_output(BUSY_LINE)
            return False
        idx = state.selected_account if idx is None else idx
        if not 0 <= idx < len(state.accounts):
            state.push_output("No account selected.")
            return False
        if idx in self._probing:
            state.push_output(f"Auth check already running for `{state.accounts[idx].name}`.")
            return False
        self._launch_probe(idx)
        return True

    # -- single-flight operations -----------------------------------------

    def _preflight(self, kind: OperationKind) -> Optional[str]:
        """Return the rejection line for ``kind`` on the selected account, if any."""
        state = self.state
        account = state.selected()
        if account is None:
            return "No account selected."
        if kind is OperationKind.AUTH_LOGIN:
            return None

        if account.auth is not AuthStatus.AUTHENTICATED:
            if kind is OperationKind.REFRESH_WORKSPACES:
                return "Selected account is not authenticated. Press `a` to run AWS SSO login."
            return "Selected account is not authenticated. Press `a` first."

        try:
            if kind is OperationKind.REFRESH_WORKSPACES:
                validate_composition(account)
            else:
                validate_operation(account, kind)
        except PreflightError as exc:
            state.set_status("failed")
            if kind is OperationKind.REFRESH_WORKSPACES:
                return f"Cannot refresh workspaces for `{account.name}`: {exc}"
            return f"Cannot run {kind.label}: {exc}"

        if kind.requires_workspace and state.selected_workspace_name() is None:
            return "No workspace selected. Press `r` to load workspaces first."
        return None

    def start_operation(self, kind: OperationKind) -> bool:
        state = self.state
        if state.busy:
            state.push_output(BUSY_LINE)
            return False

        rejection = self._preflight(kind)
        if rejection is not None:
            state.push_output(rejection)
            return False

        idx = state.selected_account
        account = state.accounts[idx].snapshot()
        workspace = (state.selected_workspace_name() or "") if kind.requires_workspace else ""

        try:
            cancel = state.supervisor.try_start(kind, idx)
        except OperationBusy as exc:
            state.push_output(f"{BUSY_LINE} ({exc})")
            return False

        if kind is OperationKind.AUTH_LOGIN:
            state.set_status(f"running aws sso login for {account.name}")
        elif kind is OperationKind.REFRESH_WORKSPACES:
            state.set_status(f"loading workspaces for {account.name}")
        else:
            state.set_status(f"running {kind.label} for {account.name}")

        self._spawn(
            run_operation(kind, idx, account, workspace, cancel, self.channel),
            f"{kind.value}-{account.name}",
        )
        return True

    def request_cancel(self) -> None:
        self.state.request_cancel()

    def request_apply(self) -> None:
        state = self.state
        if state.busy:
            state.push_output(BUSY_LINE)
            return
        state.pending_apply_confirmation = True
        state.set_status("apply confirmation pending: press y to confirm")
        state.push_output("Apply requested. Press `y` to confirm apply, any nav key to cancel.")

    def confirm_apply(self) -> bool:
        state = self.state
        if not state.pending_apply_confirmation:
            return False
        state.clear_apply_confirmation()
        return self.start_operation(OperationKind.TERRAFORM_APPLY)

    def request_quit(self) -> None:
        """Quit now, or cancel the inflight operation and quit once it finishes."""
        if self.state.busy:
            self.state.request_cancel()
        self.state.quit_requested = True

    # -- reconciliation ----------------------------------------------------

    def tick(self) -> int:
        """Apply every queued worker event; returns how many were applied."""
        return self.state.apply_all(self.channel.drain())

    @property
    def should_exit(self) -> bool:
        return self.state.quit_requested and not self.state.busy
