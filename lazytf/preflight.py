"""Checks that must pass before any process is spawned for an account."""

from __future__ import annotations

from .errors import PreflightError
from .models import Account, OperationKind


def validate_composition(account: Account) -> None:
    if account.composition_issue:
        raise PreflightError(f"Account `{account.name}` configuration is invalid: {account.composition_issue}")
    path = account.composition_path
    if not path.exists():
        raise PreflightError(f"composition_path does not exist for `{account.name}`: {path}")
    if not path.is_dir():
        raise PreflightError(f"composition_path is not a directory for `{account.name}`: {path}")


def validate_var_files(account: Account) -> None:
    missing = [str(path) for path in account.var_files if not path.exists()]
    if missing:
        raise PreflightError(f"Configured var_files are missing for `{account.name}`: {', '.join(missing)}")


def validate_operation(account: Account, kind: OperationKind) -> None:
    """Raise ``PreflightError`` if ``kind`` cannot run against ``account`` right now."""
    validate_composition(account)
    if kind.uses_var_files and account.var_files:
        validate_var_files(account)
