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

"""Configuration classes and the per-run configuration value."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kube_installer.constants import (
    REL_CONTAINERD_DIR,
    REL_CRICTL_CONFIG,
    REL_DOCKERENV,
    REL_FSTAB,
    REL_HOME,
    REL_HOSTS,
    REL_KUBEADM_CONFIG,
    REL_KUBELET_SYSCONFIG,
    REL_KUBERNETES_DIR,
    REL_MODULES_LOAD,
    REL_PROC_CGROUP,
    REL_PROC_ROUTE,
    REL_ROOT_HOME,
    REL_SELINUX_CONFIG,
    REL_SYSCTL,
    REL_TMP,
    REL_YUM_REPOS,
    REPO_BACKUP_DIRNAME,
)


# ============================================================================
# Installer settings
# ============================================================================

class InstallerConfig(BaseSettings):
    """Installer settings, auto-loaded from KUBE_INSTALL_* env vars.

    Attributes:
        root: Filesystem root every managed path is resolved under.
        os_mirror: Base OS package mirror.
        docker_ce_mirror: Container runtime package mirror.
        kubernetes_mirror: Kubernetes package mirror.
        registry_mirror: Image registry written into the containerd config.
        image_repository: Control-plane image repository passed to kubeadm.
        api_port: Kubernetes API server bind port.
        pod_subnet: Pod network CIDR.
        service_subnet: Service network CIDR.
        cri_socket: containerd control socket.
        command_timeout: Seconds any external command may run (0 disables).
        probe_timeout: Seconds a status probe may run.
        ready_poll_attempts: Node readiness poll attempts.
        ready_poll_interval: Seconds between node readiness polls.
        k8s_version: Kubernetes package version; skips the version prompt when set.
        ledger_file: Phase ledger location.
    """

    model_config = SettingsConfigDict(env_prefix="KUBE_INSTALL_", extra="ignore")

    root: Path = Path("/")
    os_mirror: str = "https://mirrors.aliyun.com/centos"
    docker_ce_mirror: str = "https://mirrors.aliyun.com/docker-ce"
    kubernetes_mirror: str = "https://mirrors.aliyun.com/kubernetes"
    registry_mirror: str = "https://registry.cn-hangzhou.aliyuncs.com"
    image_repository: str = "registry.cn-hangzhou.aliyuncs.com/google_containers"
    api_port: int = Field(default=6443, ge=1, le=65535)
    pod_subnet: str = "10.244.0.0/16"
    service_subnet: str = "10.96.0.0/12"
    cri_socket: str = "unix:///run/containerd/containerd.sock"
    command_timeout: int = Field(default=1800, ge=0)
    probe_timeout: int = Field(default=30, ge=1)
    ready_poll_attempts: int = Field(default=30, ge=1)
    ready_poll_interval: float = Field(default=10, ge=0)
    k8s_version: str | None = Field(default=None, pattern=r"^\d+\.\d+(\.\d+)?(-\d+)?$")
    ledger_file: Path = Path("/var/lib/kube-installer/phases.yaml")

    def path(self, rel: str) -> Path:
        """Resolve a root-relative path."""
        return self.root / rel

    # -- Host files --

    @property
    def hosts_file(self) -> Path:
        return self.path(REL_HOSTS)

    @property
    def selinux_config(self) -> Path:
        return self.path(REL_SELINUX_CONFIG)

    @property
    def fstab(self) -> Path:
        return self.path(REL_FSTAB)

    @property
    def proc_route(self) -> Path:
        return self.path(REL_PROC_ROUTE)

    @property
    def proc_cgroup(self) -> Path:
        return self.path(REL_PROC_CGROUP)

    @property
    def dockerenv(self) -> Path:
        return self.path(REL_DOCKERENV)

    @property
    def modules_load_file(self) -> Path:
        return self.path(REL_MODULES_LOAD)

    @property
    def sysctl_file(self) -> Path:
        return self.path(REL_SYSCTL)

    # -- Package manager --

    @property
    def repos_dir(self) -> Path:
        return self.path(REL_YUM_REPOS)

    @property
    def repos_backup_dir(self) -> Path:
        return self.repos_dir / REPO_BACKUP_DIRNAME

    # -- Runtime and Kubernetes --

    @property
    def containerd_config(self) -> Path:
        return self.path(REL_CONTAINERD_DIR) / "config.toml"

    @property
    def crictl_config(self) -> Path:
        return self.path(REL_CRICTL_CONFIG)

    @property
    def kubelet_sysconfig(self) -> Path:
        return self.path(REL_KUBELET_SYSCONFIG)

    @property
    def kubernetes_dir(self) -> Path:
        return self.path(REL_KUBERNETES_DIR)

    @property
    def admin_conf(self) -> Path:
        return self.kubernetes_dir / "admin.conf"

    @property
    def kubelet_conf(self) -> Path:
        return self.kubernetes_dir / "kubelet.conf"

    @property
    def kubeadm_config(self) -> Path:
        return self.path(REL_KUBEADM_CONFIG)

    @property
    def root_home(self) -> Path:
        return self.path(REL_ROOT_HOME)

    @property
    def home_dir(self) -> Path:
        return self.path(REL_HOME)

    @property
    def tmp_dir(self) -> Path:
        return self.path(REL_TMP)

    @property
    def ledger_path(self) -> Path:
        return self.path(str(self.ledger_file).lstrip("/"))

    def timeout(self) -> int | None:
        """Return the command timeout, or None when disabled."""
        return self.command_timeout or None


# ============================================================================
# Run configuration
# ============================================================================

class NodeRole(str, Enum):
    """Role this node takes in the cluster."""

    MASTER = "master"
    WORKER = "worker"


@dataclass(frozen=True)
class RunConfig:
    """Per-run facts gathered during preflight and threaded through every phase.

    Attributes:
        node_ip: Confirmed primary IPv4 address of this node.
        hostname: Current hostname (never modified).
        in_container: Whether the installer runs nested in a container.
        role: Chosen node role, or None before the role prompt.
    """

    node_ip: str
    hostname: str
    in_container: bool = False
    role: NodeRole | None = None

    def with_role(self, role: NodeRole) -> RunConfig:
        """Return a copy carrying the chosen role.

        Raises:
            ValueError: If a role was already chosen for this run.
        """
        if self.role is not None:
            raise ValueError(f"node role already set to {self.role.value}")
        return replace(self, role=role)
