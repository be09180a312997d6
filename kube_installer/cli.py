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

"""
cli.py - Kubernetes installer for CentOS 7 (containerd, regional mirrors).

Subcommands:
    (none)     Interactive install, same as `install`
    install    Prepare the host, install containerd and Kubernetes, init or join
    cleanup    Tear everything down and restore the original repositories
    status     Show the install phases recorded on this node

Environment Variables:
    Settings can be overridden via KUBE_INSTALL_* environment variables:
    - KUBE_INSTALL_K8S_VERSION (skip the version prompt)
    - KUBE_INSTALL_REGISTRY_MIRROR, KUBE_INSTALL_IMAGE_REPOSITORY
    - KUBE_INSTALL_COMMAND_TIMEOUT (default: 1800 seconds, 0 disables)
    - And more (see InstallerConfig for the full list)

Examples:
    # Interactive install
    kube-installer

    # Scripted install
    kube-installer --answers answers.yaml

    # Remove the installation
    kube-installer cleanup
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer

from kube_installer import console
from kube_installer.commands import Session, cleanup_cmd, install_cmd, status_cmd
from kube_installer.config import InstallerConfig
from kube_installer.prompts import AnswersPrompter, ConsolePrompter
from kube_installer.utils import CommandRunner

app = typer.Typer(help="Kubernetes installer for CentOS 7 using containerd and regional mirrors.")


@app.callback(invoke_without_command=True)
def _main_callback(
    ctx: typer.Context,
    answers: Path | None = typer.Option(
        None, "--answers", exists=True, dir_okay=False, help="YAML file answering every prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging and the shared session; run the install when no subcommand is given."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    cfg = InstallerConfig()
    prompter = AnswersPrompter.from_file(answers) if answers else ConsolePrompter()
    ctx.obj = Session(
        cfg=cfg,
        runner=CommandRunner(timeout=cfg.timeout(), probe_timeout=cfg.probe_timeout),
        prompter=prompter,
    )
    if ctx.invoked_subcommand is None:
        install_cmd.install(ctx)


app.add_typer(install_cmd.app, name="install")
app.add_typer(cleanup_cmd.app, name="cleanup")
app.add_typer(status_cmd.app, name="status")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
