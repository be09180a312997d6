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

"""Cluster bootstrap: kubeadm init on the master, kubeadm join on workers."""

from __future__ import annotations

import os
import pwd
import shutil
from enum import Enum
from pathlib import Path

import yaml
from rich.markup import escape
from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig, NodeRole, RunConfig
from kube_installer.constants import (
    CNI_POD_MARKER,
    KUBEADM_API_VERSION,
    NS_KUBE_SYSTEM,
    PROMPT_JOIN_COMMAND,
    PROMPT_KUBECTL_EXTRA_USER,
    PROMPT_KUBECTL_USER,
    PROMPT_ROLE,
    SVC_KUBELET,
    dep_value,
)
from kube_installer.policy import check, fail
from kube_installer.prompts import InputProvider
from kube_installer.utils import CommandResult, CommandRunner, write_file

ROLE_CHOICES = {
    "1": NodeRole.MASTER,
    "2": NodeRole.WORKER,
    NodeRole.MASTER.value: NodeRole.MASTER,
    NodeRole.WORKER.value: NodeRole.WORKER,
}


class ClusterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    HEALTHY = "initialized-healthy"
    UNHEALTHY = "initialized-unhealthy"


def choose_role(prompter: InputProvider) -> NodeRole:
    """Ask the operator which role this node takes."""
    console.print("[green]Select the node type:[/green]")
    console.print("  1) master - run kubeadm init")
    console.print("  2) worker - run kubeadm join")
    answer = prompter.choose(PROMPT_ROLE, "Node type", list(ROLE_CHOICES))
    role = ROLE_CHOICES[answer]
    console.print(f"[green]\u2705 Selected {role.value} node[/green]")
    return role


# ============================================================================
# Bootstrap descriptor
# ============================================================================

def kubeadm_documents(ip: str, cfg: InstallerConfig) -> list[dict]:
    """Build the InitConfiguration and ClusterConfiguration documents.

    Args:
        ip: API server advertise address.
        cfg: Installer configuration with port, socket, subnets, and image mirror.

    Returns:
        The two kubeadm config documents.
    """
    return [
        {
            "apiVersion": KUBEADM_API_VERSION,
            "kind": "InitConfiguration",
            "localAPIEndpoint": {"advertiseAddress": ip, "bindPort": cfg.api_port},
            "nodeRegistration": {"criSocket": cfg.cri_socket},
        },
        {
            "apiVersion": KUBEADM_API_VERSION,
            "kind": "ClusterConfiguration",
            "networking": {"podSubnet": cfg.pod_subnet, "serviceSubnet": cfg.service_subnet},
            "imageRepository": cfg.image_repository,
        },
    ]


def render_kubeadm_config(ip: str, cfg: InstallerConfig) -> str:
    return yaml.safe_dump_all(kubeadm_documents(ip, cfg), sort_keys=False, explicit_start=False)


# ============================================================================
# Cluster state and helpers
# ============================================================================

def kubectl_admin(runner: CommandRunner, cfg: InstallerConfig, *args: str, probe: bool = True) -> CommandResult:
    """Run kubectl against the cluster admin kubeconfig."""
    return runner.run(["kubectl", f"--kubeconfig={cfg.admin_conf}", *args], probe=probe)


def cluster_state(runner: CommandRunner, cfg: InstallerConfig) -> ClusterState:
    """Classify the local control plane.

    Healthy means admin.conf exists, kubelet is active, and the API answers.
    """
    if not cfg.admin_conf.exists():
        return ClusterState.UNINITIALIZED
    if runner.service_active(SVC_KUBELET) and kubectl_admin(runner, cfg, "get", "nodes").ok:
        return ClusterState.HEALTHY
    return ClusterState.UNHEALTHY


def pod_network_installed(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    result = kubectl_admin(runner, cfg, "get", "pods", "-n", NS_KUBE_SYSTEM)
    return result.ok and CNI_POD_MARKER in result.stdout.lower()


def install_pod_network(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    """Apply the Calico manifest. Failure is reported, not fatal."""
    version = dep_value("calico", "version")
    manifest = dep_value("calico", "manifest").format(version=version)
    console.print(f"[yellow]\u2139\ufe0f  Installing CNI plugin (Calico {version})...[/yellow]")
    result = kubectl_admin(runner, cfg, "apply", "-f", manifest, probe=False)
    if check("cluster.cni", result, "Failed to install Calico, install a network plugin manually"):
        console.print("[green]\u2705 Calico installed[/green]")
        return True
    return False


def _chown_tree(path: Path, uid: int, gid: int) -> None:
    os.chown(path, uid, gid)
    for child in path.rglob("*"):
        os.chown(child, uid, gid)


def _copy_kubeconfig(cfg: InstallerConfig, home: Path, uid: int, gid: int) -> Path:
    kube_dir = home / ".kube"
    kube_dir.mkdir(parents=True, exist_ok=True)
    target = kube_dir / "config"
    shutil.copyfile(cfg.admin_conf, target)
    _chown_tree(kube_dir, uid, gid)
    return target


def setup_kubectl_config(cfg: InstallerConfig, prompter: InputProvider) -> list[Path]:
    """Copy admin.conf into root's kubeconfig and, on request, another user's.

    Args:
        cfg: Installer configuration.
        prompter: Operator input provider.

    Returns:
        Kubeconfig files written.
    """
    if not cfg.admin_conf.exists():
        console.print("[yellow]\u26a0\ufe0f  admin.conf not found, cannot configure kubectl[/yellow]")
        return []

    written = [_copy_kubeconfig(cfg, cfg.root_home, os.getuid(), os.getgid())]
    console.print("[green]\u2705 Configured kubectl for root[/green]")

    if not prompter.confirm(PROMPT_KUBECTL_EXTRA_USER, "Set up kubectl for a non-root user?", default=False):
        return written
    username = prompter.ask(PROMPT_KUBECTL_USER, "Username").strip()
    try:
        entry = pwd.getpwnam(username)
    except KeyError:
        console.print(f"[yellow]\u26a0\ufe0f  User {username} does not exist[/yellow]")
        return written
    home = cfg.root / entry.pw_dir.lstrip("/")
    written.append(_copy_kubeconfig(cfg, home, entry.pw_uid, entry.pw_gid))
    console.print(f"[green]\u2705 Configured kubectl for {username}[/green]")
    return written


# ============================================================================
# Master and worker flows
# ============================================================================

def init_master(
    runner: CommandRunner,
    cfg: InstallerConfig,
    run_cfg: RunConfig,
    prompter: InputProvider,
) -> bool:
    """Initialize the control plane, or re-verify an existing one.

    A healthy cluster only gets its pod network and kubeconfig re-checked. An
    unhealthy one is reset and initialized from scratch.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        run_cfg: Per-run configuration with the advertise address.
        prompter: Operator input provider.

    Returns:
        True if kubeadm init ran.

    Raises:
        InstallError: If kubeadm init fails.
    """
    console.print(Panel.fit("Initializing Kubernetes master", style="bold blue"))
    state = cluster_state(runner, cfg)
    logger.info("Cluster state: %s", state.value)

    if state is ClusterState.HEALTHY:
        console.print("[green]\u2705 Cluster already initialized and running[/green]")
        if pod_network_installed(runner, cfg):
            console.print("[green]\u2705 Calico CNI present[/green]")
        else:
            install_pod_network(runner, cfg)
        setup_kubectl_config(cfg, prompter)
        return False

    if state is ClusterState.UNHEALTHY:
        console.print("[yellow]\u26a0\ufe0f  Existing cluster config found but the cluster is unhealthy, resetting[/yellow]")
        check("cluster.reset", runner.run(["kubeadm", "reset", "-f"], stream=True), "kubeadm reset failed")

    write_file(cfg.kubeadm_config, render_kubeadm_config(run_cfg.node_ip, cfg))
    logger.info("Wrote %s", cfg.kubeadm_config)

    console.print("[yellow]\u2139\ufe0f  Pulling control-plane images...[/yellow]")
    check("cluster.prepull",
          runner.run(["kubeadm", "config", "images", "pull", "--config", str(cfg.kubeadm_config)], stream=True),
          "Failed to pre-pull Kubernetes images")

    console.print("[yellow]\u2139\ufe0f  Running kubeadm init...[/yellow]")
    check("cluster.init",
          runner.run(["kubeadm", "init", "--config", str(cfg.kubeadm_config), "--upload-certs"], stream=True),
          "Failed to initialize the Kubernetes master")

    setup_kubectl_config(cfg, prompter)
    install_pod_network(runner, cfg)
    console.print("[green]\u2705 Kubernetes master initialized[/green]")
    return True


def join_worker(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> bool:
    """Join this node using an operator-supplied ``kubeadm join`` command.

    The command runs verbatim; its contents are not parsed.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        prompter: Operator input provider.

    Returns:
        True if the join command ran, False if the node had already joined.

    Raises:
        InstallError: If the join command fails.
    """
    console.print(Panel.fit("Joining Kubernetes cluster", style="bold blue"))
    if cfg.kubelet_conf.exists():
        if runner.service_active(SVC_KUBELET):
            console.print("[green]\u2705 kubelet is running, node already joined[/green]")
            return False
        console.print("[yellow]\u26a0\ufe0f  kubelet config present but kubelet is not running, resetting[/yellow]")
        check("cluster.reset", runner.run(["kubeadm", "reset", "-f"], stream=True), "kubeadm reset failed")

    join_command = prompter.ask(PROMPT_JOIN_COMMAND, "Paste the kubeadm join command from the master node")
    if not join_command.strip():
        fail("cluster.join", "No join command given")
    console.print(f"[yellow]\u2139\ufe0f  Running join command: {escape(join_command)}[/yellow]")
    check("cluster.join", runner.shell(join_command), "Failed to join the Kubernetes cluster")
    console.print("[green]\u2705 Node joined the cluster[/green]")
    return True
