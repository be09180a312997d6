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

"""CLI subcommands (install, cleanup, status) and their shared session."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import typer

from kube_installer import console
from kube_installer.config import InstallerConfig
from kube_installer.policy import InstallError
from kube_installer.prompts import InputProvider
from kube_installer.utils import CommandRunner


@dataclass
class Session:
    """Objects shared by every subcommand, built once by the CLI callback."""

    cfg: InstallerConfig
    runner: CommandRunner
    prompter: InputProvider


def run_guarded(fn: Callable[[], object]) -> None:
    """Run *fn*, turning a hard failure into a non-zero exit.

    Raises:
        typer.Exit: With the failing step's exit code.
    """
    try:
        fn()
    except InstallError as e:
        console.print(f"[red]\u274c {e}[/red]")
        console.print("[red]Installation failed! Run 'kube-installer cleanup' to remove installed components.[/red]")
        raise typer.Exit(code=e.exit_code) from e
