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

"""Orchestration functions that compose the phase modules into workflows."""

from __future__ import annotations

from collections.abc import Callable

from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.bootstrap import choose_role, init_master, join_worker
from kube_installer.cleanup import cleanup
from kube_installer.config import InstallerConfig, NodeRole, RunConfig
from kube_installer.host import check_root, detect_container, prepare_system
from kube_installer.kubernetes import install_kubernetes
from kube_installer.ledger import PhaseLedger
from kube_installer.network import confirm_node_ip, current_hostname, update_hosts_file
from kube_installer.packages import install_required_packages
from kube_installer.prompts import InputProvider
from kube_installer.repos import configure_repositories
from kube_installer.runtime import install_containerd, install_crictl
from kube_installer.utils import CommandRunner
from kube_installer.verify import display_completion, verify_installation


def run_preflight(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> RunConfig:
    """Check privileges, detect the environment, and confirm the node address.

    Raises:
        InstallError: If not running as root or no valid address is available.
    """
    check_root()
    in_container = detect_container(cfg)
    if in_container:
        console.print("[yellow]\u2139\ufe0f  Running inside a container[/yellow]")
    console.print(Panel.fit("Kubernetes installer started", style="bold blue"))

    node_ip = confirm_node_ip(runner, cfg, prompter)
    hostname = current_hostname(cfg)
    update_hosts_file(node_ip, hostname, cfg.hosts_file)
    return RunConfig(node_ip=node_ip, hostname=hostname, in_container=in_container)


def _base_phases(
    runner: CommandRunner,
    cfg: InstallerConfig,
    run_cfg: RunConfig,
    prompter: InputProvider,
) -> list[tuple[str, Callable[[], object]]]:
    return [
        ("host", lambda: prepare_system(runner, cfg, run_cfg)),
        ("repositories", lambda: configure_repositories(runner, cfg)),
        ("packages", lambda: install_required_packages(runner)),
        ("containerd", lambda: install_containerd(runner, cfg)),
        ("crictl", lambda: install_crictl(runner, cfg)),
        ("kubernetes", lambda: install_kubernetes(runner, cfg, prompter)),
    ]


def run_install(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> RunConfig:
    """Run the full install: preflight, base components, bootstrap, verification.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        prompter: Operator input provider.

    Returns:
        The final run configuration, including the chosen role.

    Raises:
        InstallError: On the first hard failure.
    """
    ledger = PhaseLedger(cfg.ledger_path)
    run_cfg = run_preflight(runner, cfg, prompter)
    ledger.record("preflight", node_ip=run_cfg.node_ip, in_container=run_cfg.in_container)

    console.print("[yellow]\u2139\ufe0f  Installing base components, please wait...[/yellow]")
    for name, phase in _base_phases(runner, cfg, run_cfg, prompter):
        changed = phase()
        logger.info("Phase %s done (changed=%s)", name, changed)
        ledger.record(name)
    console.print("[green]\u2705 Base components installed[/green]")

    run_cfg = run_cfg.with_role(choose_role(prompter))
    if run_cfg.role is NodeRole.MASTER:
        init_master(runner, cfg, run_cfg, prompter)
    else:
        join_worker(runner, cfg, prompter)
    ledger.record("bootstrap", role=run_cfg.role.value, node_ip=run_cfg.node_ip)

    verify_installation(runner, cfg, run_cfg)
    display_completion(runner, cfg, run_cfg)
    return run_cfg


def run_cleanup(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> None:
    """Tear down the installation. Never raises for individual step failures."""
    cleanup(runner, cfg, prompter)
