from __future__ import annotations

import runpy
import sys

import pytest

from proctorshell import cli


def test_module_entrypoint_exposes_cli_run() -> None:
    namespace = runpy.run_module("proctorshell.__main__", run_name="proctorshell_entrypoint_test")

    assert namespace["run"] is cli.run


def test_module_entrypoint_exits_with_cli_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "run", lambda argv=None: 7)
    monkeypatch.delitem(sys.modules, "proctorshell.__main__", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("proctorshell.__main__", run_name="__main__")

    assert excinfo.value.code == 7
