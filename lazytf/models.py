"""Core data types for accounts, operations and cancellation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class AuthStatus(Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"

    @property
    def icon(self) -> str:
        return _AUTH_ICONS[self]

    @property
    def label(self) -> str:
        return _AUTH_LABELS[self]

    @property
    def color(self) -> str:
        return _AUTH_COLORS[self]


_AUTH_ICONS = {
    AuthStatus.UNKNOWN: "?",
    AuthStatus.CHECKING: "~",
    AuthStatus.AUTHENTICATED: "*",
    AuthStatus.FAILED: "x",
}
_AUTH_LABELS = {
    AuthStatus.UNKNOWN: "unknown",
    AuthStatus.CHECKING: "checking",
    AuthStatus.AUTHENTICATED: "ready",
    AuthStatus.FAILED: "failed",
}
_AUTH_COLORS = {
    AuthStatus.UNKNOWN: "bright_black",
    AuthStatus.CHECKING: "yellow",
    AuthStatus.AUTHENTICATED: "green",
    AuthStatus.FAILED: "red",
}


class CancelSignal(Enum):
    """Value broadcast from the supervisor to a running command."""

    NONE = "none"
    GRACEFUL = "graceful"
    FORCE = "force"


class CancelStage(Enum):
    """How far the user has escalated cancellation of the inflight operation."""

    NONE = "none"
    GRACEFUL_REQUESTED = "graceful_requested"
    FORCE_REQUESTED = "force_requested"


class OperationKind(Enum):
    AUTH_LOGIN = "auth_login"
    REFRESH_WORKSPACES = "refresh_workspaces"
    TERRAFORM_INIT = "terraform_init"
    TERRAFORM_PLAN = "terraform_plan"
    TERRAFORM_APPLY = "terraform_apply"

    @property
    def label(self) -> str:
        return OPERATIONS[self].label

    @property
    def requires_workspace(self) -> bool:
        return OPERATIONS[self].requires_workspace

    @property
    def uses_var_files(self) -> bool:
        return OPERATIONS[self].uses_var_files

    @property
    def is_terraform_run(self) -> bool:
        return OPERATIONS[self].terraform_args is not None


@dataclass(frozen=True)
class OperationProperties:
    label: str
    requires_workspace: bool = False
    uses_var_files: bool = False
    # Subcommand and flags for operations launched through the terraform runner.
    terraform_args: Optional[tuple] = None


OPERATIONS: Dict[OperationKind, OperationProperties] = {
    OperationKind.AUTH_LOGIN: OperationProperties("aws sso login"),
    OperationKind.REFRESH_WORKSPACES: OperationProperties("workspace refresh"),
    OperationKind.TERRAFORM_INIT: OperationProperties(
        "terraform init",
        terraform_args=("init", "-input=false", "-no-color"),
    ),
    OperationKind.TERRAFORM_PLAN: OperationProperties(
        "terraform plan",
        requires_workspace=True,
        uses_var_files=True,
        terraform_args=("plan", "-input=false", "-no-color"),
    ),
    OperationKind.TERRAFORM_APPLY: OperationProperties(
        "terraform apply",
        requires_workspace=True,
        uses_var_files=True,
        terraform_args=("apply", "-input=false", "-no-color", "-auto-approve"),
    ),
}


@dataclass
class Account:
    """One configured target environment.

    Workers receive a copy (see ``snapshot``) so the reconciler can keep
    mutating the live instance while a command runs.
    """

    name: str
    aws_profile: str
    composition_path: Path
    region: Optional[str] = None
    composition_issue: Optional[str] = None
    var_files: List[Path] = field(default_factory=list)
    auth: AuthStatus = AuthStatus.UNKNOWN
    workspaces: List[str] = field(default_factory=list)

    def snapshot(self) -> "Account":
        return Account(
            name=self.name,
            aws_profile=self.aws_profile,
            composition_path=self.composition_path,
            region=self.region,
            composition_issue=self.composition_issue,
            var_files=list(self.var_files),
            auth=self.auth,
            workspaces=list(self.workspaces),
        )


@dataclass(frozen=True)
class RunOutcome:
    success: bool
    cancelled: bool
    exit_code: Optional[int]
