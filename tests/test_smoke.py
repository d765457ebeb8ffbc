import subprocess
import sys

import pytest


def _run(*args):
    return subprocess.run(
        [sys.executable, "-m", "omr_grader", *args], capture_output=True, text=True
    )


def test_cli_help():
    r = _run("-h")
    assert r.returncode == 0
    assert "Offline OMR answer sheet grader" in (r.stdout + r.stderr)


@pytest.mark.parametrize("command,flag", [("process", "--template"), ("grade", "--answer-key")])
def test_subcommand_help(command, flag):
    r = _run(command, "-h")
    assert r.returncode == 0
    assert flag in r.stdout
