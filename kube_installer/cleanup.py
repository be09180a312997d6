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

"""Best-effort teardown of everything the installer set up."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig
from kube_installer.constants import (
    CLEANUP_DIRS,
    CLEANUP_FILES,
    IPTABLES_CHAINS,
    IPTABLES_TABLES,
    PROMPT_REMOVE_PACKAGES,
    SVC_CONTAINERD,
    SVC_DOCKER,
    SVC_KUBELET,
    dep_value,
)
from kube_installer.ledger import PhaseLedger
from kube_installer.policy import check
from kube_installer.prompts import InputProvider
from kube_installer.repos import restore_repositories
from kube_installer.utils import CommandRunner


def _best_effort(description: str, fn: Callable[[], object]) -> None:
    """Run one cleanup step, logging instead of raising on failure."""
    try:
        fn()
    except Exception as e:
        logger.warning("Cleanup step '%s' failed: %s", description, e)
        console.print(f"[yellow]\u26a0\ufe0f  {description} failed: {e}[/yellow]")


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _remove_all(paths: list[Path]) -> None:
    for path in paths:
        _best_effort(f"remove {path}", lambda p=path: _remove(p))


def _run(runner: CommandRunner, args: list[str], description: str) -> bool:
    return check("cleanup.step", runner.run(args), description)


def virtual_links(runner: CommandRunner) -> list[str]:
    """Names of pod-network virtual interfaces present on the host."""
    result = runner.run(["ip", "-o", "link", "show"], probe=True)
    if not result.ok:
        return []
    bridges = dep_value("cleanup", "bridges", default=[])
    patterns = dep_value("cleanup", "link_patterns", default=[])
    links: list[str] = []
    for line in result.stdout.splitlines():
        parts = line.split(": ")
        if len(parts) < 2:
            continue
        name = parts[1].split("@")[0].strip()
        if name in bridges or any(p in name for p in patterns):
            links.append(name)
    return links


def remove_virtual_links(runner: CommandRunner) -> list[str]:
    removed = []
    for name in virtual_links(runner):
        console.print(f"[yellow]\u2139\ufe0f  Deleting network device {name}[/yellow]")
        if _run(runner, ["ip", "link", "delete", name], f"Failed to delete {name}"):
            removed.append(name)
    return removed


def remove_packages(runner: CommandRunner) -> None:
    console.print("[yellow]\u2139\ufe0f  Removing packages...[/yellow]")
    _run(runner, ["yum", "remove", "-y", *dep_value("packages", "removable", default=[])], "Package removal failed")
    _run(runner, ["yum", "autoremove", "-y"], "yum autoremove failed")
    console.print("[green]\u2705 Packages removed[/green]")


def flush_iptables(runner: CommandRunner) -> None:
    for table in IPTABLES_TABLES:
        _run(runner, ["iptables", "-t", table, "-F"], f"Failed to flush iptables {table} table")
        _run(runner, ["iptables", "-t", table, "-X"], f"Failed to delete iptables {table} chains")
    for chain in IPTABLES_CHAINS:
        _run(runner, ["iptables", "-P", chain, "ACCEPT"], f"Failed to reset the {chain} policy")


def cleanup(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> None:
    """Tear down the Kubernetes installation.

    Every step is best effort. Package removal only happens after explicit
    confirmation.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        prompter: Operator input provider for the package-removal confirmation.
    """
    console.print(Panel.fit("Cleaning up the Kubernetes installation", style="bold blue"))

    console.print("[yellow]\u2139\ufe0f  Stopping services...[/yellow]")
    _run(runner, ["systemctl", "stop", SVC_KUBELET], "Failed to stop kubelet")
    _run(runner, ["systemctl", "stop", SVC_CONTAINERD], "Failed to stop containerd")

    if runner.has_command("kubeadm"):
        console.print("[yellow]\u2139\ufe0f  Resetting kubeadm state...[/yellow]")
        _run(runner, ["kubeadm", "reset", "-f"], "kubeadm reset failed")

    console.print("[yellow]\u2139\ufe0f  Removing Kubernetes configuration...[/yellow]")
    if cfg.kubernetes_dir.is_dir():
        _remove_all(list(cfg.kubernetes_dir.iterdir()))
    if cfg.tmp_dir.is_dir():
        _remove_all(list(cfg.tmp_dir.glob("kubeadm*")))
    kube_dirs = [cfg.root_home / ".kube"]
    if cfg.home_dir.is_dir():
        kube_dirs.extend(cfg.home_dir.glob("*/.kube"))
    _remove_all(kube_dirs)

    if prompter.confirm(PROMPT_REMOVE_PACKAGES, "Remove the installed packages?", default=False):
        remove_packages(runner)

    console.print("[yellow]\u2139\ufe0f  Removing runtime and cluster state...[/yellow]")
    _remove_all([cfg.path(rel) for rel in CLEANUP_DIRS])
    remove_virtual_links(runner)
    _remove_all([cfg.path(rel) for rel in CLEANUP_FILES])

    _best_effort("restore repositories", lambda: restore_repositories(cfg))

    units = runner.run(["systemctl", "list-unit-files"], probe=True)
    if units.ok and SVC_DOCKER in units.stdout:
        console.print("[yellow]\u2139\ufe0f  Restarting docker...[/yellow]")
        _run(runner, ["systemctl", "restart", SVC_DOCKER], "Failed to restart docker")

    _run(runner, ["yum", "clean", "all"], "Failed to clean the yum cache")

    console.print("[yellow]\u2139\ufe0f  Flushing iptables rules...[/yellow]")
    flush_iptables(runner)

    _best_effort("clear phase ledger", lambda: PhaseLedger(cfg.ledger_path).clear())
    console.print("[green]\u2705 Cleanup complete, the system is back to its pre-install state[/green]")
