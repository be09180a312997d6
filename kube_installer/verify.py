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

"""Post-install verification and completion report."""

from __future__ import annotations

from rich.panel import Panel
from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, wait_fixed

from kube_installer import console
from kube_installer.bootstrap import kubectl_admin
from kube_installer.config import InstallerConfig, NodeRole, RunConfig
from kube_installer.constants import NODE_READY_MARKER, NS_KUBE_SYSTEM, SVC_KUBELET
from kube_installer.policy import check, fail
from kube_installer.utils import CommandRunner


def node_ready(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    result = kubectl_admin(runner, cfg, "get", "nodes")
    return result.ok and NODE_READY_MARKER in result.stdout


def wait_for_ready_node(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    """Poll until a node reports Ready, stopping early on success.

    Args:
        runner: Command runner.
        cfg: Installer configuration with poll attempts and interval.

    Returns:
        True if a node became Ready within the polling window.
    """
    attempts = cfg.ready_poll_attempts

    def _log_attempt(retry_state) -> None:
        console.print(f"[yellow]   Waiting for node readiness... ({retry_state.attempt_number}/{attempts})[/yellow]")

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(cfg.ready_poll_interval),
        retry=retry_if_result(lambda ok: not ok),
        after=_log_attempt,
    )
    try:
        return retrying(node_ready, runner, cfg)
    except RetryError:
        return False


def verify_installation(runner: CommandRunner, cfg: InstallerConfig, run_cfg: RunConfig) -> bool:
    """Check kubelet and, on the master, node readiness and system pods.

    Returns:
        True if every check passed.
    """
    console.print(Panel.fit("Verifying installation", style="bold blue"))
    healthy = check("verify.kubelet", runner.run(["systemctl", "status", SVC_KUBELET], probe=True),
                    "kubelet is not running properly, please check it")
    if healthy:
        console.print("[green]\u2705 kubelet is running[/green]")

    if run_cfg.role is NodeRole.MASTER:
        console.print("[yellow]\u2139\ufe0f  Waiting for the node to become Ready (this can take a few minutes)...[/yellow]")
        if wait_for_ready_node(runner, cfg):
            console.print("[green]\u2705 Kubernetes cluster is running[/green]")
        else:
            healthy = fail("verify.nodes", "Node is not Ready yet, check with 'kubectl get nodes'")

        pods = kubectl_admin(runner, cfg, "get", "pods", "-n", NS_KUBE_SYSTEM)
        if check("verify.pods", pods, "Could not list kube-system pods"):
            console.print("[yellow]Kubernetes system pods:[/yellow]")
            console.print(pods.stdout, markup=False, highlight=False, end="")
        else:
            healthy = False

    console.print("[green]\u2705 Verification complete[/green]")
    return healthy


def display_completion(runner: CommandRunner, cfg: InstallerConfig, run_cfg: RunConfig) -> None:
    """Print final usage instructions for the chosen role."""
    console.print(Panel.fit("Kubernetes installation complete", style="bold green"))
    if run_cfg.role is NodeRole.MASTER:
        console.print(f"Kubernetes master is running at https://{run_cfg.node_ip}:{cfg.api_port}")
        console.print(f"Master node name: '{run_cfg.hostname}' (current hostname)")
        console.print("To add worker nodes, run the following command on each of them:")
        token = runner.run(["kubeadm", "token", "create", "--print-join-command"], probe=True)
        if check("cluster.join_token", token, "Could not create a join token"):
            console.print(token.stdout.strip(), markup=False, highlight=False)
        console.print("To use kubectl, run:")
        console.print(f"  export KUBECONFIG={cfg.admin_conf}")
        console.print(f"  or copy {cfg.admin_conf} to ~/.kube/config")
    else:
        console.print("This node has joined the Kubernetes cluster")
        console.print(f"Worker node name: '{run_cfg.hostname}' (current hostname)")
    console.print("Check the cluster state on the master with: kubectl get nodes")
    console.print("To remove the installation, run: kube-installer cleanup")
