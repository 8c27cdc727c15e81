"""Read-only background checks: credential validity and workspace listing.

Probes run outside the single-flight slot. A failing probe only degrades
its own account; it never raises into the event loop.
"""

from __future__ import annotations

import logging
from typing import List

from . import commands
from .errors import LazyTfError
from .events import AccountAuthUpdate, EventChannel, WorkspacesLoaded
from .models import Account, AuthStatus
from .preflight import validate_composition
from .runner import run_captured

logger = logging.getLogger(__name__)


class ProbeError(LazyTfError):
    """A probe command ran but did not produce a usable answer."""


def parse_workspace_output(output: str) -> List[str]:
    """Workspace names from ``terraform workspace list`` output, marker and blanks removed."""
    names = []
    for line in output.split("\n"):
        cleaned = line.strip().lstrip("*").strip()
        if cleaned:
            names.append(cleaned)
    return names


async def check_auth(account: Account) -> bool:
    """True when ``aws sts get-caller-identity`` succeeds for the account's profile."""
    result = await run_captured(commands.caller_identity(account))
    return result.success


async def fetch_workspaces(account: Account) -> List[str]:
    validate_composition(account)
    result = await run_captured(commands.workspace_list(account))
    if not result.success:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ProbeError(f"terraform workspace list failed for {account.name}: {stderr}")
    return parse_workspace_output(result.stdout.decode("utf-8", errors="replace"))


async def auth_probe(account_idx: int, account: Account, channel: EventChannel) -> None:
    """Check credentials, then load workspaces if they are valid."""
    channel.send(
        AccountAuthUpdate(
            account_idx,
            AuthStatus.CHECKING,
            f"Checking auth for `{account.name}` (profile `{account.aws_profile}`)",
        )
    )

    try:
        valid = await check_auth(account)
    except LazyTfError as exc:
        logger.warning("auth check errored for %s: %s", account.name, exc)
        channel.send(AccountAuthUpdate(account_idx, AuthStatus.FAILED, f"Auth check errored for `{account.name}`: {exc}"))
        return
    except Exception as exc:
        logger.exception("auth check crashed for %s", account.name)
        channel.send(AccountAuthUpdate(account_idx, AuthStatus.FAILED, f"Auth check errored for `{account.name}`: {exc}"))
        return

    if not valid:
        channel.send(AccountAuthUpdate(account_idx, AuthStatus.FAILED, f"No valid AWS session for `{account.name}`"))
        return

    channel.send(AccountAuthUpdate(account_idx, AuthStatus.AUTHENTICATED, f"Credentials valid for `{account.name}`"))

    try:
        workspaces = await fetch_workspaces(account)
    except Exception as exc:
        logger.warning("workspace listing failed for %s: %s", account.name, exc)
        channel.line(f"Could not load workspaces for `{account.name}` yet: {exc}")
        return
    channel.send(WorkspacesLoaded(account_idx, tuple(workspaces)))
