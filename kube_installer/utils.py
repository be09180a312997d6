# /*
# Copyright 2026 The kube-installer Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""External command execution and small file helpers."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

import sh

from kube_installer import logger

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command.

    Attributes:
        args: The command line that was executed.
        returncode: Process exit status (127 when not found, 124 on timeout).
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        """One-line summary used in failure messages."""
        tail = (self.stderr or self.stdout).strip()[-200:]
        line = f"'{' '.join(self.args)}' exited with {self.returncode}"
        return f"{line}: {tail}" if tail else line


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


class CommandRunner:
    """Runs external commands through ``sh`` and returns typed results.

    Non-zero exits never raise; callers classify them with
    :func:`kube_installer.policy.check`.
    """

    def __init__(self, timeout: int | None = None, probe_timeout: int = 30) -> None:
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    def run(
        self,
        args: list[str],
        *,
        stream: bool = False,
        probe: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a command and capture its result.

        Args:
            args: Program followed by its arguments.
            stream: Whether to echo output to the terminal while running.
            probe: Whether this is a short status probe (uses the probe timeout).
            timeout: Explicit timeout override in seconds.

        Returns:
            CommandResult for the invocation.
        """
        argv = tuple(args)
        if timeout is None:
            timeout = self.probe_timeout if probe else self.timeout
        logger.debug("run: %s (timeout=%s)", " ".join(argv), timeout)

        kwargs: dict = {"_return_cmd": True, "_timeout": timeout}
        if stream:
            kwargs.update(_out=sys.stdout, _err=sys.stderr, _tee=True)

        try:
            cmd = sh.Command(argv[0])
            proc = cmd(*argv[1:], **kwargs)
        except sh.CommandNotFound:
            return CommandResult(argv, EXIT_NOT_FOUND, stderr=f"{argv[0]}: command not found")
        except sh.TimeoutException as e:
            logger.warning("Command timed out after %ss: %s", timeout, " ".join(argv))
            return CommandResult(argv, EXIT_TIMEOUT, stderr=f"timed out ({e.exit_code})")
        except sh.ErrorReturnCode as e:
            return CommandResult(argv, e.exit_code, _decode(e.stdout), _decode(e.stderr))
        return CommandResult(argv, proc.exit_code, _decode(proc.stdout), _decode(proc.stderr))

    def shell(self, command: str, *, stream: bool = True) -> CommandResult:
        """Run a command line verbatim through bash."""
        return self.run(["bash", "-c", command], stream=stream)

    def has_command(self, name: str) -> bool:
        """Return True if *name* resolves on the search path."""
        try:
            sh.Command(name)
        except sh.CommandNotFound:
            return False
        return True

    def service_active(self, name: str) -> bool:
        """Return True if the systemd unit *name* is active."""
        return self.run(["systemctl", "is-active", "--quiet", name], probe=True).ok


def write_file(path: Path, content: str) -> None:
    """Write *content* to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
