"""Bodies of the single-flight operations.

Each body returns the ``OperationFinished`` that closes its run; the
``run_operation`` wrapper sends it, so exactly one completion reaches the
reconciler per launch no matter how the body ends.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional

from . import commands
from .errors import LazyTfError, SpawnError
from .events import AccountAuthUpdate, EventChannel, OperationFinished, WorkspacesLoaded
from .models import Account, AuthStatus, OperationKind, RunOutcome
from .preflight import validate_operation
from .probes import check_auth, fetch_workspaces
from .runner import run_captured, run_streaming
from .signals import CancelReceiver
from .streams import split_output

logger = logging.getLogger(__name__)


def _exit_code(outcome: RunOutcome) -> int:
    return outcome.exit_code if outcome.exit_code is not None else -1


async def auth_login(
    account_idx: int, account: Account, workspace: str, cancel: CancelReceiver, channel: EventChannel
) -> OperationFinished:
    kind = OperationKind.AUTH_LOGIN

    def finished(success: bool, message: str, cancelled: bool = False) -> OperationFinished:
        return OperationFinished(kind, account_idx, success, cancelled, message)

    def auth(status: AuthStatus, message: str) -> None:
        channel.send(AccountAuthUpdate(account_idx, status, message))

    channel.line(f"Starting AWS SSO login for `{account.name}` (profile `{account.aws_profile}`)")
    try:
        outcome = await run_streaming(commands.sso_login(account), cancel, channel)
    except SpawnError as exc:
        auth(AuthStatus.FAILED, f"Failed to run AWS login for `{account.name}`: {exc}")
        return finished(False, f"AWS login execution failed for `{account.name}`: {exc}")

    if not outcome.success or outcome.cancelled:
        auth(AuthStatus.FAILED, f"AWS login failed for `{account.name}`")
        return finished(
            False,
            f"AWS login failed for `{account.name}` with exit code {_exit_code(outcome)}",
            cancelled=outcome.cancelled,
        )

    channel.line(f"SSO login complete for `{account.name}`. Checking credentials...")
    try:
        valid = await check_auth(account)
    except LazyTfError as exc:
        auth(AuthStatus.FAILED, f"Auth check errored for `{account.name}`: {exc}")
        return finished(False, f"Auth check errored for `{account.name}`")

    if not valid:
        auth(AuthStatus.FAILED, f"Credentials for `{account.name}` are not usable yet")
        return finished(False, f"Auth check failed for `{account.name}`")

    auth(AuthStatus.AUTHENTICATED, f"Authenticated to `{account.name}`")
    channel.line(f"Loading workspaces for `{account.name}`...")
    try:
        workspaces = await fetch_workspaces(account)
    except LazyTfError as exc:
        return finished(False, f"Authenticated, but failed to load workspaces for `{account.name}`: {exc}")

    channel.send(WorkspacesLoaded(account_idx, tuple(workspaces)))
    return finished(True, f"Auth/login complete for `{account.name}`")


async def workspace_refresh(
    account_idx: int, account: Account, workspace: str, cancel: CancelReceiver, channel: EventChannel
) -> OperationFinished:
    kind = OperationKind.REFRESH_WORKSPACES
    try:
        outcome = await run_streaming(commands.workspace_list(account), cancel, channel)
    except SpawnError as exc:
        return OperationFinished(
            kind, account_idx, False, False, f"Workspace refresh command failed for `{account.name}`: {exc}"
        )

    if not outcome.success or outcome.cancelled:
        return OperationFinished(
            kind,
            account_idx,
            False,
            outcome.cancelled,
            f"Workspace refresh command failed for `{account.name}` with exit code {_exit_code(outcome)}",
        )

    try:
        workspaces = await fetch_workspaces(account)
    except LazyTfError as exc:
        return OperationFinished(kind, account_idx, False, False, f"Workspace refresh failed for `{account.name}`: {exc}")

    channel.send(WorkspacesLoaded(account_idx, tuple(workspaces)))
    return OperationFinished(kind, account_idx, True, False, f"Workspace refresh completed for `{account.name}`")


async def _select_workspace(account: Account, workspace: str, channel: EventChannel) -> Optional[RunOutcome]:
    """Switch to ``workspace``; returns a failed outcome if terraform refused."""
    channel.line(f"Selecting workspace `{workspace}` in `{account.name}`")
    result = await run_captured(commands.workspace_select(account, workspace))
    for line in split_output(result.stdout) + split_output(result.stderr):
        channel.line(line)
    if not result.success:
        return RunOutcome(success=False, cancelled=False, exit_code=result.returncode)
    return None


async def _terraform_outcome(
    kind: OperationKind, account: Account, workspace: str, cancel: CancelReceiver, channel: EventChannel
) -> RunOutcome:
    validate_operation(account, kind)

    if kind.requires_workspace:
        failed = await _select_workspace(account, workspace, channel)
        if failed is not None:
            return failed

    if kind.uses_var_files and account.var_files:
        channel.line(f"Using var files: {', '.join(str(path) for path in account.var_files)}")

    spec = commands.terraform_operation(account, kind)
    channel.line(f"Running `{kind.label}` in {account.composition_path}")
    return await run_streaming(spec, cancel, channel)


def terraform_run(kind: OperationKind) -> Callable[..., Awaitable[OperationFinished]]:
    async def body(
        account_idx: int, account: Account, workspace: str, cancel: CancelReceiver, channel: EventChannel
    ) -> OperationFinished:
        try:
            outcome = await _terraform_outcome(kind, account, workspace, cancel, channel)
        except LazyTfError as exc:
            return OperationFinished(kind, account_idx, False, False, f"{kind.label} failed for `{account.name}`: {exc}")

        if outcome.success and not outcome.cancelled:
            message = f"{kind.label} succeeded for `{account.name}`"
        elif outcome.cancelled:
            message = f"{kind.label} cancelled for `{account.name}`"
        else:
            message = f"{kind.label} failed for `{account.name}` with exit code {_exit_code(outcome)}"
        return OperationFinished(kind, account_idx, outcome.success, outcome.cancelled, message)

    return body


OPERATION_BODIES: Dict[OperationKind, Callable[..., Awaitable[OperationFinished]]] = {
    OperationKind.AUTH_LOGIN: auth_login,
    OperationKind.REFRESH_WORKSPACES: workspace_refresh,
    OperationKind.TERRAFORM_INIT: terraform_run(OperationKind.TERRAFORM_INIT),
    OperationKind.TERRAFORM_PLAN: terraform_run(OperationKind.TERRAFORM_PLAN),
    OperationKind.TERRAFORM_APPLY: terraform_run(OperationKind.TERRAFORM_APPLY),
}


async def run_operation(
    kind: OperationKind,
    account_idx: int,
    account: Account,
    workspace: str,
    cancel: CancelReceiver,
    channel: EventChannel,
) -> None:
    """Run the body for ``kind`` and always report its completion."""
    try:
        finished = await OPERATION_BODIES[kind](account_idx, account, workspace, cancel, channel)
    except Exception as exc:
        logger.exception("%s crashed for %s", kind.label, account.name)
        finished = OperationFinished(kind, account_idx, False, False, f"{kind.label} failed for `{account.name}`: {exc}")
    channel.send(finished)
