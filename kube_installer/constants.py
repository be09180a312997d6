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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load pinned artifact versions and package lists from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Services --
SVC_CONTAINERD = "containerd"
SVC_KUBELET = "kubelet"
SVC_DOCKER = "docker"

# -- Kernel --
KERNEL_MODULES = ("overlay", "br_netfilter")
SYSCTL_PARAMS = {
    "net.bridge.bridge-nf-call-iptables": "1",
    "net.bridge.bridge-nf-call-ip6tables": "1",
    "net.ipv4.ip_forward": "1",
}

# -- Address detection --
ROUTE_PROBE_ADDRESS = "8.8.8.8"
LOOPBACK_PREFIX = "127."
DEFAULT_ROUTE_DESTINATION = "00000000"
MAX_IP_ENTRY_ATTEMPTS = 3

# -- Repository files --
REPO_FILE_BASE = "CentOS-Base.repo"
REPO_FILE_DOCKER_CE = "docker-ce.repo"
REPO_FILE_KUBERNETES = "kubernetes.repo"
REPO_BACKUP_DIRNAME = "backup"

# -- containerd --
UPSTREAM_REGISTRY = "https://registry-1.docker.io"
CGROUP_DRIVER_OFF = "SystemdCgroup = false"
CGROUP_DRIVER_ON = "SystemdCgroup = true"
CRICTL_TIMEOUT_SECONDS = 10
CRICTL_INSTALL_DIR = "usr/local/bin"

# -- kubeadm --
KUBEADM_API_VERSION = "kubeadm.k8s.io/v1beta3"
REMOTE_RUNTIME_FLAG_REMOVED_MINOR = 27
CNI_POD_MARKER = "calico"
NS_KUBE_SYSTEM = "kube-system"
NODE_READY_MARKER = " Ready "

# -- Default paths (relative to the configured root) --
REL_HOSTS = "etc/hosts"
REL_SELINUX_CONFIG = "etc/selinux/config"
REL_FSTAB = "etc/fstab"
REL_PROC_ROUTE = "proc/net/route"
REL_PROC_CGROUP = "proc/1/cgroup"
REL_DOCKERENV = ".dockerenv"
REL_YUM_REPOS = "etc/yum.repos.d"
REL_MODULES_LOAD = "etc/modules-load.d/k8s.conf"
REL_SYSCTL = "etc/sysctl.d/k8s.conf"
REL_CONTAINERD_DIR = "etc/containerd"
REL_CRICTL_CONFIG = "etc/crictl.yaml"
REL_KUBELET_SYSCONFIG = "etc/sysconfig/kubelet"
REL_KUBERNETES_DIR = "etc/kubernetes"
REL_KUBEADM_CONFIG = "tmp/kubeadm-config.yaml"
REL_ROOT_HOME = "root"
REL_HOME = "home"
REL_TMP = "tmp"

# Directories removed by cleanup, relative to the configured root.
CLEANUP_DIRS = (
    "var/lib/kubelet",
    "var/lib/etcd",
    "var/lib/containerd",
    "etc/cni/net.d",
    "opt/cni/bin",
    "var/run/kubernetes",
    "etc/containerd",
)
CLEANUP_FILES = (
    REL_CRICTL_CONFIG,
    REL_KUBELET_SYSCONFIG,
    REL_MODULES_LOAD,
    REL_SYSCTL,
)
IPTABLES_TABLES = ("filter", "nat", "mangle")
IPTABLES_CHAINS = ("INPUT", "FORWARD", "OUTPUT")

# -- Prompt keys --
PROMPT_CONFIRM_IP = "confirm_ip"
PROMPT_NODE_IP = "node_ip"
PROMPT_ROLE = "role"
PROMPT_K8S_VERSION = "k8s_version"
PROMPT_KUBECTL_EXTRA_USER = "kubectl_extra_user"
PROMPT_KUBECTL_USER = "kubectl_user"
PROMPT_JOIN_COMMAND = "join_command"
PROMPT_REMOVE_PACKAGES = "remove_packages"
