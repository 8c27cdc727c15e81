"""Application state and the reconciler that is its only writer."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional

from .buffer import OUTPUT_BUFFER_LIMIT, OutputBuffer
from .events import AccountAuthUpdate, OperationFinished, OutputLine, WorkerEvent, WorkspacesLoaded
from .models import Account, CancelStage
from .supervisor import InflightOperation, OperationSupervisor

logger = logging.getLogger(__name__)

READY_LINE = "lazytf ready. Press `a` to authenticate selected account."
BUSY_LINE = "Another operation is already running. Press `c` to cancel."


class FocusPanel(Enum):
    ACCOUNTS = "accounts"
    WORKSPACES = "workspaces"
    OUTPUT = "output"

    def next(self) -> "FocusPanel":
        order = list(FocusPanel)
        return order[(order.index(self) + 1) % len(order)]

    def previous(self) -> "FocusPanel":
        order = list(FocusPanel)
        return order[(order.index(self) - 1) % len(order)]


class LayoutMode(Enum):
    SPLIT = "split"
    OUTPUT_ONLY = "output"


class AppState:
    """Everything the renderer draws.

    Mutated only from the UI loop: directly by key handlers, and by
    ``apply`` for results coming back from worker tasks.
    """

    def __init__(
        self,
        accounts: List[Account],
        output_limit: int = OUTPUT_BUFFER_LIMIT,
        startup_lines: Iterable[str] = (),
    ) -> None:
        self.accounts = accounts
        self.selected_account = 0
        self.selected_workspace = 0
        self.focused_panel = FocusPanel.ACCOUNTS
        self.previous_focus_panel = FocusPanel.ACCOUNTS
        self.layout_mode = LayoutMode.SPLIT
        self.output = OutputBuffer(output_limit)
        self.output_scroll_from_bottom = 0
        self.status_line = "idle"
        self.supervisor = OperationSupervisor()
        self.pending_apply_confirmation = False
        self.show_help = False
        self.quit_requested = False

        self.push_output(READY_LINE)
        self.output.extend(startup_lines)

    # -- queries -----------------------------------------------------------

    @property
    def inflight(self) -> Optional[InflightOperation]:
        return self.supervisor.inflight

    @property
    def busy(self) -> bool:
        return self.supervisor.busy

    @property
    def is_output_only(self) -> bool:
        return self.layout_mode is LayoutMode.OUTPUT_ONLY

    def selected(self) -> Optional[Account]:
        if 0 <= self.selected_account < len(self.accounts):
            return self.accounts[self.selected_account]
        return None

    def selected_workspace_name(self) -> Optional[str]:
        account = self.selected()
        if account is None or not 0 <= self.selected_workspace < len(account.workspaces):
            return None
        return account.workspaces[self.selected_workspace]

    def account_name(self, idx: int) -> str:
        return self.accounts[idx].name if 0 <= idx < len(self.accounts) else "?"

    def current_operation_label(self) -> str:
        op = self.inflight
        if op is None:
            return self.status_line
        return f"running {op.kind.label} on {self.account_name(op.account_idx)}"

    # -- simple mutations --------------------------------------------------

    def push_output(self, line: str) -> None:
        self.output.append(line)

    def set_status(self, status: str) -> None:
        self.status_line = status

    def clear_apply_confirmation(self) -> None:
        self.pending_apply_confirmation = False

    def toggle_help(self) -> None:
        self.show_help = not self.show_help

    def close_help(self) -> None:
        self.show_help = False

    def request_cancel(self) -> Optional[CancelStage]:
        before = self.supervisor.stage
        stage = self.supervisor.request_cancel()
        if stage is CancelStage.GRACEFUL_REQUESTED:
            self.push_output(
                "Graceful cancel requested. Sending SIGINT and waiting for Terraform to clean up state lock..."
            )
            self.push_output("Press `c` again to force kill if absolutely necessary.")
            self.set_status("cancelling (graceful)...")
        elif stage is CancelStage.FORCE_REQUESTED and before is not CancelStage.FORCE_REQUESTED:
            self.push_output("Force kill requested. This may leave Terraform state locked.")
            self.set_status("cancelling (forced)...")
        elif stage is CancelStage.FORCE_REQUESTED:
            self.push_output("Force kill already requested. Waiting for process to exit...")
        return stage

    # -- layout and navigation ---------------------------------------------

    def enter_output_only(self) -> None:
        if self.layout_mode is LayoutMode.SPLIT:
            self.previous_focus_panel = self.focused_panel
        self.layout_mode = LayoutMode.OUTPUT_ONLY
        self.focused_panel = FocusPanel.OUTPUT

    def exit_output_only(self) -> None:
        if self.layout_mode is LayoutMode.SPLIT:
            return
        self.layout_mode = LayoutMode.SPLIT
        self.focused_panel = self.previous_focus_panel

    def toggle_output_only(self) -> None:
        if self.is_output_only:
            self.exit_output_only()
        else:
            self.enter_output_only()

    def focus_next(self) -> None:
        if not self.is_output_only:
            self.focused_panel = self.focused_panel.next()

    def focus_previous(self) -> None:
        if not self.is_output_only:
            self.focused_panel = self.focused_panel.previous()

    def scroll_output(self, delta: int) -> None:
        """Positive ``delta`` scrolls toward older lines."""
        self.output_scroll_from_bottom = min(max(self.output_scroll_from_bottom + delta, 0), len(self.output))

    def scroll_output_top(self) -> None:
        self.output_scroll_from_bottom = len(self.output)

    def scroll_output_bottom(self) -> None:
        self.output_scroll_from_bottom = 0

    def move_selection_up(self) -> None:
        if self.focused_panel is FocusPanel.ACCOUNTS:
            if self.selected_account > 0:
                self.selected_account -= 1
                self.selected_workspace = 0
        elif self.focused_panel is FocusPanel.WORKSPACES:
            if self.selected_workspace > 0:
                self.selected_workspace -= 1
        else:
            self.scroll_output(1)

    def move_selection_down(self) -> None:
        if self.focused_panel is FocusPanel.ACCOUNTS:
            if self.selected_account < len(self.accounts) - 1:
                self.selected_account += 1
                self.selected_workspace = 0
        elif self.focused_panel is FocusPanel.WORKSPACES:
            account = self.selected()
            if account is not None and self.selected_workspace < len(account.workspaces) - 1:
                self.selected_workspace += 1
        else:
            self.scroll_output(-1)

    # -- reconciliation ----------------------------------------------------

    def apply(self, event: WorkerEvent) -> None:
        """Fold one worker event into the state. Tolerates any interleaving."""
        if isinstance(event, OutputLine):
            self.push_output(event.line)
        elif isinstance(event, AccountAuthUpdate):
            self._apply_auth(event)
        elif isinstance(event, WorkspacesLoaded):
            self._apply_workspaces(event)
        elif isinstance(event, OperationFinished):
            self._apply_finished(event)
        else:
            logger.warning("ignoring unknown worker event %r", event)

    def apply_all(self, events: Iterable[WorkerEvent]) -> int:
        count = 0
        for event in events:
            self.apply(event)
            count += 1
        return count

    def _apply_auth(self, event: AccountAuthUpdate) -> None:
        if 0 <= event.account_idx < len(self.accounts):
            self.accounts[event.account_idx].auth = event.status
        else:
            logger.warning("auth update for unknown account #%d", event.account_idx)
        self.push_output(event.message)

    def _apply_workspaces(self, event: WorkspacesLoaded) -> None:
        if not 0 <= event.account_idx < len(self.accounts):
            logger.warning("workspaces for unknown account #%d", event.account_idx)
            return
        account = self.accounts[event.account_idx]
        account.workspaces = sorted(event.workspaces)
        if account.workspaces:
            self.push_output(f"Loaded {len(account.workspaces)} workspaces for `{account.name}`")
        else:
            self.push_output(f"No workspaces found for `{account.name}`")
        if event.account_idx == self.selected_account:
            self.selected_workspace = 0

    def _apply_finished(self, event: OperationFinished) -> None:
        self.push_output(event.message)
        self.clear_apply_confirmation()
        self.supervisor.finish(event.kind, event.account_idx)
        if event.cancelled:
            self.set_status("cancelled")
        elif event.success:
            self.set_status("idle")
        else:
            self.set_status("failed")
