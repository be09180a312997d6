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

"""Preflight checks and host preparation (SELinux, swap, kernel modules, sysctl)."""

from __future__ import annotations

import os

from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig, RunConfig
from kube_installer.constants import KERNEL_MODULES, SYSCTL_PARAMS
from kube_installer.policy import check, fail
from kube_installer.utils import CommandRunner, write_file


# ============================================================================
# Preflight
# ============================================================================

def check_root() -> None:
    """Abort unless running with root privileges.

    Raises:
        InstallError: If the effective user is not root.
    """
    if os.geteuid() != 0:
        fail("preflight.root", "This installer must be run as root")


def detect_container(cfg: InstallerConfig) -> bool:
    """Return True when running nested inside a Docker or LXC container."""
    if cfg.dockerenv.exists():
        return True
    try:
        cgroup = cfg.proc_cgroup.read_text()
    except OSError:
        return False
    return "docker" in cgroup or "lxc" in cgroup


# ============================================================================
# Host preparation
# ============================================================================

def disable_selinux(runner: CommandRunner, cfg: InstallerConfig) -> None:
    if not runner.has_command("getenforce"):
        console.print("[yellow]\u2139\ufe0f  SELinux tools not found, skipping SELinux configuration[/yellow]")
        return
    status = runner.run(["getenforce"], probe=True)
    if status.stdout.strip() == "Disabled":
        console.print("[green]\u2705 SELinux already disabled[/green]")
        return
    check("host.selinux", runner.run(["setenforce", "0"], probe=True), "Failed to switch SELinux to permissive")
    if cfg.selinux_config.exists():
        text = cfg.selinux_config.read_text()
        lines = ["SELINUX=disabled" if line == "SELINUX=enforcing" else line for line in text.splitlines()]
        cfg.selinux_config.write_text("\n".join(lines) + "\n")
    console.print("[green]\u2705 SELinux disabled[/green]")


def disable_swap(runner: CommandRunner, cfg: InstallerConfig) -> None:
    if cfg.fstab.exists():
        lines = cfg.fstab.read_text().splitlines()
        kept = [line for line in lines if "swap" not in line]
        if len(kept) != len(lines):
            cfg.fstab.write_text("\n".join(kept) + "\n")
            console.print("[green]\u2705 Removed swap entries from fstab[/green]")
    else:
        console.print("[yellow]\u2139\ufe0f  /etc/fstab not found, skipping swap configuration[/yellow]")

    if not runner.has_command("swapon"):
        return
    swaps = runner.run(["swapon", "-s"], probe=True)
    if "partition" in swaps.stdout or "file" in swaps.stdout.split():
        check("host.swapoff", runner.run(["swapoff", "-a"]), "Failed to disable swap")
        console.print("[green]\u2705 Swap disabled[/green]")
    else:
        console.print("[green]\u2705 Swap already disabled[/green]")


def load_kernel_modules(runner: CommandRunner, cfg: InstallerConfig) -> None:
    write_file(cfg.modules_load_file, "".join(f"{mod}\n" for mod in KERNEL_MODULES))
    for mod in KERNEL_MODULES:
        check("host.modprobe", runner.run(["modprobe", mod], probe=True), f"Could not load the {mod} module")


def apply_sysctl(runner: CommandRunner, cfg: InstallerConfig) -> None:
    width = max(len(key) for key in SYSCTL_PARAMS)
    write_file(cfg.sysctl_file, "".join(f"{key:<{width}} = {value}\n" for key, value in SYSCTL_PARAMS.items()))
    check("host.sysctl", runner.run(["sysctl", "--system"]), "Failed to apply sysctl parameters")


def prepare_system(runner: CommandRunner, cfg: InstallerConfig, run_cfg: RunConfig) -> None:
    """Disable SELinux and swap, then load kernel modules and sysctls.

    Kernel modules and sysctls are skipped when nested in a container.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        run_cfg: Per-run configuration.
    """
    console.print(Panel.fit("Preparing system", style="bold blue"))
    disable_selinux(runner, cfg)
    disable_swap(runner, cfg)
    if run_cfg.in_container:
        logger.info("Running in a container, skipping kernel module and sysctl configuration")
        console.print("[yellow]\u2139\ufe0f  Container environment, skipping kernel modules and sysctl[/yellow]")
        return
    load_kernel_modules(runner, cfg)
    apply_sysctl(runner, cfg)
    console.print("[green]\u2705 System preparation complete[/green]")
