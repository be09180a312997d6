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

"""kubeadm, kubelet, and kubectl installation and kubelet configuration."""

from __future__ import annotations

import re

from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig
from kube_installer.constants import (
    PROMPT_K8S_VERSION,
    REMOTE_RUNTIME_FLAG_REMOVED_MINOR,
    SVC_KUBELET,
    dep_value,
)
from kube_installer.policy import check
from kube_installer.prompts import InputProvider
from kube_installer.utils import CommandRunner, write_file

_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)")


def parse_minor(version: str | None) -> tuple[int, int] | None:
    """Parse ``v1.28.2`` or ``1.28.2-0`` into (major, minor)."""
    if not version:
        return None
    m = _VERSION_RE.search(version)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def kubelet_extra_args(cri_socket: str, version: str | None = None) -> str:
    """Build KUBELET_EXTRA_ARGS for the systemd cgroup driver and remote CRI socket.

    ``--container-runtime=remote`` is dropped for kubelet 1.27+, which no longer
    accepts it.

    Args:
        cri_socket: containerd control socket.
        version: Installed Kubernetes version, if known.

    Returns:
        Space-separated kubelet flags.
    """
    flags = ["--cgroup-driver=systemd"]
    parsed = parse_minor(version)
    if parsed is None or parsed < (1, REMOTE_RUNTIME_FLAG_REMOVED_MINOR):
        flags.append("--container-runtime=remote")
    flags.append(f"--container-runtime-endpoint={cri_socket}")
    return " ".join(flags)


def installed_version(runner: CommandRunner) -> str | None:
    result = runner.run(["kubeadm", "version", "-o", "short"], probe=True)
    if not result.ok:
        return None
    return result.stdout.strip() or None


def configure_kubelet(runner: CommandRunner, cfg: InstallerConfig, version: str | None) -> None:
    """Enable kubelet, write its environment file, and restart it."""
    check("kubelet.enable", runner.run(["systemctl", "enable", SVC_KUBELET]), "Failed to enable kubelet")
    write_file(cfg.kubelet_sysconfig, f'KUBELET_EXTRA_ARGS="{kubelet_extra_args(cfg.cri_socket, version)}"\n')
    runner.run(["systemctl", "daemon-reload"])
    # kubelet crash-loops until kubeadm init/join writes its config.
    check("kubelet.restart", runner.run(["systemctl", "restart", SVC_KUBELET]), "Failed to restart kubelet")


def _choose_version(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> str:
    if cfg.k8s_version:
        return cfg.k8s_version
    listing = runner.run(["yum", "list", "--showduplicates", "kubeadm", "--disableexcludes=kubernetes"])
    if check("kubernetes.list_versions", listing, "Could not list available Kubernetes versions"):
        console.print("[yellow]Available Kubernetes versions:[/yellow]")
        for line in listing.stdout.splitlines():
            if line.startswith("kubeadm"):
                console.print(f"  {line}", markup=False)
    return prompter.ask(
        PROMPT_K8S_VERSION,
        "Which Kubernetes version should be installed? (e.g. 1.28.0, blank for latest)",
        default="",
    ).strip()


def install_kubernetes(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> bool:
    """Ensure the Kubernetes tools are installed and kubelet is configured.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        prompter: Operator input provider for the version prompt.

    Returns:
        True if packages were installed or kubelet was (re)configured.

    Raises:
        InstallError: If the package installation fails.
    """
    console.print(Panel.fit("Installing Kubernetes components", style="bold blue"))
    tools = dep_value("packages", "kubernetes", default=["kubelet", "kubeadm", "kubectl"])

    if all(runner.has_command(tool) for tool in tools):
        version = installed_version(runner)
        console.print(f"[green]\u2705 Kubernetes components already installed, version: {version}[/green]")
        if cfg.kubelet_sysconfig.exists():
            check("kubelet.enable", runner.run(["systemctl", "enable", SVC_KUBELET]), "Failed to enable kubelet")
            if runner.service_active(SVC_KUBELET):
                console.print("[green]\u2705 kubelet is running[/green]")
            else:
                console.print("[yellow]\u2139\ufe0f  kubelet not running yet, it starts after cluster init/join[/yellow]")
            return False
        console.print("[yellow]\u2139\ufe0f  kubelet not configured, writing its config[/yellow]")
    else:
        version = _choose_version(runner, cfg, prompter)
        suffix = f"-{version}" if version else ""
        packages = [f"{tool}{suffix}" for tool in tools]
        check("kubernetes.install",
              runner.run(["yum", "install", "-y", *packages, "--disableexcludes=kubernetes"], stream=True),
              "Failed to install the Kubernetes components")
        version = installed_version(runner) or version or None
        logger.info("Installed Kubernetes components %s", version or "(latest)")

    configure_kubelet(runner, cfg, version)
    console.print("[green]\u2705 Kubernetes components installed and configured[/green]")
    return True
