"""Build ``CommandSpec`` values for the aws and terraform CLIs."""

from __future__ import annotations

from typing import Dict, List, Sequence

from .models import OPERATIONS, Account, OperationKind
from .runner import CommandSpec

AWS_BIN = "aws"
TERRAFORM_BIN = "terraform"


def region_env(account: Account) -> Dict[str, str]:
    if not account.region:
        return {}
    return {"AWS_REGION": account.region, "AWS_DEFAULT_REGION": account.region}


def sso_login(account: Account) -> CommandSpec:
    return CommandSpec(AWS_BIN, ("sso", "login", "--profile", account.aws_profile), env=region_env(account))


def caller_identity(account: Account) -> CommandSpec:
    return CommandSpec(
        AWS_BIN,
        ("sts", "get-caller-identity", "--profile", account.aws_profile, "--output", "json"),
        env=region_env(account),
    )


def terraform(account: Account, args: Sequence[str]) -> CommandSpec:
    env = {
        "AWS_PROFILE": account.aws_profile,
        "AWS_SDK_LOAD_CONFIG": "1",
        "TF_IN_AUTOMATION": "1",
    }
    env.update(region_env(account))
    return CommandSpec(TERRAFORM_BIN, tuple(args), cwd=account.composition_path, env=env)


def workspace_list(account: Account) -> CommandSpec:
    return terraform(account, ("workspace", "list"))


def workspace_select(account: Account, workspace: str) -> CommandSpec:
    return terraform(account, ("workspace", "select", workspace))


def var_file_args(account: Account) -> List[str]:
    return [f"-var-file={path}" for path in account.var_files]


def terraform_operation(account: Account, kind: OperationKind) -> CommandSpec:
    """Command for init, plan or apply, with ``-var-file`` flags where the kind uses them."""
    if not kind.is_terraform_run:
        raise ValueError(f"Unsupported terraform operation for runner: {kind.label}")
    args = list(OPERATIONS[kind].terraform_args or ())
    if kind.uses_var_files:
        args.extend(var_file_args(account))
    return terraform(account, args)
