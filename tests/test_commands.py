from pathlib import Path

import pytest

from lazytf import commands
from lazytf.models import Account, OperationKind


@pytest.fixture
def account(tmp_path: Path) -> Account:
    return Account(
        name="prod",
        aws_profile="prod-admin",
        composition_path=tmp_path,
        region="eu-west-1",
        var_files=[tmp_path / "common.tfvars", tmp_path / "prod.tfvars"],
    )


def test_aws_commands(account):
    login = commands.sso_login(account)
    assert login.argv == ("aws", "sso", "login", "--profile", "prod-admin")
    assert login.env == {"AWS_REGION": "eu-west-1", "AWS_DEFAULT_REGION": "eu-west-1"}

    identity = commands.caller_identity(account)
    assert identity.argv[:3] == ("aws", "sts", "get-caller-identity")
    assert "--profile" in identity.argv


def test_terraform_environment(account):
    spec = commands.workspace_list(account)
    assert spec.argv == ("terraform", "workspace", "list")
    assert spec.cwd == account.composition_path
    assert spec.env["AWS_PROFILE"] == "prod-admin"
    assert spec.env["AWS_SDK_LOAD_CONFIG"] == "1"
    assert spec.env["TF_IN_AUTOMATION"] == "1"
    assert spec.env["AWS_REGION"] == "eu-west-1"


def test_no_region_means_no_region_variables(account):
    account.region = None
    assert "AWS_REGION" not in commands.workspace_select(account, "dev").env
    assert commands.sso_login(account).env == {}


def test_plan_and_apply_append_var_files(account):
    plan = commands.terraform_operation(account, OperationKind.TERRAFORM_PLAN)
    assert plan.args == (
        "plan",
        "-input=false",
        "-no-color",
        f"-var-file={account.composition_path / 'common.tfvars'}",
        f"-var-file={account.composition_path / 'prod.tfvars'}",
    )

    apply = commands.terraform_operation(account, OperationKind.TERRAFORM_APPLY)
    assert apply.args[:4] == ("apply", "-input=false", "-no-color", "-auto-approve")
    assert len(apply.args) == 6


def test_init_ignores_var_files(account):
    init = commands.terraform_operation(account, OperationKind.TERRAFORM_INIT)
    assert init.args == ("init", "-input=false", "-no-color")


def test_non_terraform_kinds_are_rejected(account):
    with pytest.raises(ValueError):
        commands.terraform_operation(account, OperationKind.AUTH_LOGIN)
