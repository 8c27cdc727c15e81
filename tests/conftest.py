import os
import stat
from pathlib import Path
from typing import Callable

import pytest

from lazytf.models import Account


FAKE_AWS = """#!/bin/sh
case "$1" in
  sts)
    if [ -n "$FAKE_AWS_FAIL" ]; then
      echo "The SSO session has expired" >&2
      exit 255
    fi
    echo '{"Account": "123456789012"}'
    ;;
  sso)
    if [ -n "$FAKE_AWS_SSO_FAIL" ]; then
      echo "Login aborted by user" >&2
      exit 1
    fi
    echo "Attempting to automatically open the SSO authorization page"
    echo "Successfully logged into Start URL"
    ;;
  *)
    exit 2
    ;;
esac
"""

FAKE_TERRAFORM = """#!/bin/sh
case "$1" in
  workspace)
    case "$2" in
      list)
        printf '* dev\\n  prod\\n'
        ;;
      select)
        echo "Switched to workspace \\"$3\\"."
        ;;
    esac
    ;;
  init)
    echo "Terraform has been successfully initialized!"
    ;;
  plan)
    for i in 1 2 3 4 5; do
      echo "plan line $i"
    done
    ;;
  apply)
    trap 'echo "Interrupt received, gracefully shutting down..."' INT
    echo "apply started"
    while true; do
      sleep 0.05
    done
    ;;
  *)
    exit 1
    ;;
esac
"""


def _write_script(path: Path, body: str) -> None:
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture
def fake_bin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Directory with fake ``aws`` and ``terraform`` scripts placed first on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_script(bin_dir / "aws", FAKE_AWS)
    _write_script(bin_dir / "terraform", FAKE_TERRAFORM)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '/usr/bin:/bin')}")
    monkeypatch.delenv("FAKE_AWS_FAIL", raising=False)
    monkeypatch.delenv("FAKE_AWS_SSO_FAIL", raising=False)
    return bin_dir


@pytest.fixture
def empty_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """PATH pointing only at an empty directory, so no CLI can be found."""
    empty = tmp_path / "empty-bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    return empty


@pytest.fixture
def composition(tmp_path: Path) -> Path:
    path = tmp_path / "compositions" / "prod"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_account(composition: Path) -> Callable[..., Account]:
    def factory(name: str = "prod", **overrides) -> Account:
        values = dict(name=name, aws_profile=f"{name}-admin", composition_path=composition, region="eu-west-1")
        values.update(overrides)
        return Account(**values)

    return factory


