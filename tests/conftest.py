from pathlib import Path

import pytest

from kube_installer.config import InstallerConfig
from kube_installer.prompts import AnswersPrompter
from kube_installer.utils import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """Records every command and answers from scripted responses.

    ``responses`` maps a command-line prefix to a CommandResult, a
    ``(returncode, stdout, stderr)`` tuple, or a callable taking the argv and
    returning either. The longest matching prefix wins; unmatched commands
    succeed with empty output.
    """

    def __init__(self, responses=None, commands=(), active=()):
        super().__init__()
        self.responses = dict(responses or {})
        self.commands = set(commands)
        self.active = set(active)
        self.calls = []

    def run(self, args, *, stream=False, probe=False, timeout=None):
        argv = tuple(args)
        self.calls.append(list(argv))
        line = " ".join(argv)
        match = None
        for prefix in self.responses:
            if line.startswith(prefix) and (match is None or len(prefix) > len(match)):
                match = prefix
        if match is None:
            return CommandResult(argv, 0)
        resp = self.responses[match]
        if callable(resp):
            resp = resp(list(argv))
        if isinstance(resp, CommandResult):
            return resp
        rc, out, err = (tuple(resp) + ("", ""))[:3]
        return CommandResult(argv, rc, out, err)

    def has_command(self, name):
        return name in self.commands

    def service_active(self, name):
        self.calls.append(["systemctl", "is-active", "--quiet", name])
        return name in self.active

    def lines(self):
        return [" ".join(c) for c in self.calls]

    def ran(self, prefix):
        return any(line.startswith(prefix) for line in self.lines())

    def count(self, prefix):
        return sum(1 for line in self.lines() if line.startswith(prefix))


@pytest.fixture
def cfg(tmp_path: Path) -> InstallerConfig:
    return InstallerConfig(root=tmp_path, ready_poll_interval=0, ready_poll_attempts=3)


@pytest.fixture
def make_runner():
    def _make(**kw):
        return FakeRunner(**kw)
    return _make


@pytest.fixture
def answers():
    def _make(**kw):
        return AnswersPrompter(kw)
    return _make
