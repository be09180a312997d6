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

"""Utility package installation in small, failure-tolerant batches."""

from __future__ import annotations

from rich.panel import Panel

from kube_installer import console
from kube_installer.constants import dep_value
from kube_installer.network import ensure_ip_tool
from kube_installer.policy import check
from kube_installer.utils import CommandRunner


def install_required_packages(runner: CommandRunner) -> list[str]:
    """Install the utility package batches, tolerating failed batches.

    Args:
        runner: Command runner.

    Returns:
        Names of the batches that failed.
    """
    console.print(Panel.fit("Installing required packages", style="bold blue"))
    ensure_ip_tool(runner)

    failed: list[str] = []
    batches: dict[str, list[str]] = dep_value("packages", "batches", default={})
    for name, packages in batches.items():
        console.print(f"[yellow]\u2139\ufe0f  Installing {name}...[/yellow]")
        result = runner.run(["yum", "install", "-y", *packages], stream=True)
        if not check("packages.batch", result, f"Some {name} failed to install"):
            failed.append(name)
    console.print("[green]\u2705 Basic tools installation complete[/green]")
    return failed
