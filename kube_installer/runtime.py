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

"""containerd runtime and crictl installation."""

from __future__ import annotations

import tarfile

import requests
import yaml
from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig
from kube_installer.constants import (
    CGROUP_DRIVER_OFF,
    CGROUP_DRIVER_ON,
    CRICTL_INSTALL_DIR,
    CRICTL_TIMEOUT_SECONDS,
    SVC_CONTAINERD,
    UPSTREAM_REGISTRY,
    dep_value,
)
from kube_installer.policy import check, fail
from kube_installer.utils import CommandRunner, write_file

DOWNLOAD_TIMEOUT_SECONDS = 120
DOWNLOAD_CHUNK_SIZE = 1 << 16


# ============================================================================
# containerd
# ============================================================================

def rewrite_containerd_config(text: str, registry_mirror: str) -> str:
    """Point the default registry at the mirror and enable the systemd cgroup driver.

    Args:
        text: Output of ``containerd config default``.
        registry_mirror: Registry endpoint replacing Docker Hub.

    Returns:
        The rewritten config.
    """
    return text.replace(UPSTREAM_REGISTRY, registry_mirror).replace(CGROUP_DRIVER_OFF, CGROUP_DRIVER_ON)


def configure_containerd(runner: CommandRunner, cfg: InstallerConfig) -> None:
    """Generate the default containerd config and apply the mirror and cgroup rewrites."""
    result = runner.run(["containerd", "config", "default"], probe=True)
    check("runtime.config", result, "Failed to generate the default containerd config")
    write_file(cfg.containerd_config, rewrite_containerd_config(result.stdout, cfg.registry_mirror))
    logger.info("Wrote %s", cfg.containerd_config)


def install_containerd(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    """Ensure containerd is installed, configured, and running.

    Args:
        runner: Command runner.
        cfg: Installer configuration.

    Returns:
        True if containerd was (re)installed and configured, False if it was
        already running.

    Raises:
        InstallError: If installation fails or the service does not come up.
    """
    console.print(Panel.fit("Installing containerd", style="bold blue"))
    if runner.has_command("containerd"):
        if runner.service_active(SVC_CONTAINERD):
            console.print("[green]\u2705 containerd already installed and running, skipping[/green]")
            return False
        console.print("[yellow]\u2139\ufe0f  containerd installed but not running, starting it...[/yellow]")
        runner.run(["systemctl", "start", SVC_CONTAINERD])
        if runner.service_active(SVC_CONTAINERD):
            console.print("[green]\u2705 containerd started[/green]")
            return False
        check("runtime.restart_existing", runner.run(["systemctl", "status", SVC_CONTAINERD], probe=True),
              "containerd would not start, reconfiguring")

    runtime_pkg = dep_value("packages", "runtime", default="containerd.io")
    check("runtime.install", runner.run(["yum", "install", "-y", runtime_pkg], stream=True),
          "Failed to install containerd")
    configure_containerd(runner, cfg)

    runner.run(["systemctl", "daemon-reload"])
    runner.run(["systemctl", "enable", SVC_CONTAINERD])
    runner.run(["systemctl", "restart", SVC_CONTAINERD])
    if not runner.service_active(SVC_CONTAINERD):
        fail("runtime.start", "Failed to start containerd")
    console.print("[green]\u2705 containerd installed and configured[/green]")
    return True


# ============================================================================
# crictl
# ============================================================================

def crictl_url(version: str) -> str:
    """Build the release tarball URL for a crictl version."""
    return dep_value("crictl", "url").format(version=version)


def render_crictl_config(cri_socket: str) -> str:
    return yaml.safe_dump(
        {
            "runtime-endpoint": cri_socket,
            "image-endpoint": cri_socket,
            "timeout": CRICTL_TIMEOUT_SECONDS,
            "debug": False,
        },
        sort_keys=False,
    )


def download_crictl(cfg: InstallerConfig, version: str) -> None:
    """Download the crictl release tarball and unpack the binary.

    Raises:
        InstallError: If the download or extraction fails.
    """
    url = crictl_url(version)
    archive = cfg.tmp_dir / "crictl.tar.gz"
    archive.parent.mkdir(parents=True, exist_ok=True)
    console.print(f"[yellow]\u2139\ufe0f  Downloading {url}[/yellow]")
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as r:
            r.raise_for_status()
            with open(archive, "wb") as f:
                for chunk in r.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
    except (requests.RequestException, OSError) as e:
        archive.unlink(missing_ok=True)
        fail("crictl.download", f"Failed to download crictl: {e}")

    target_dir = cfg.path(CRICTL_INSTALL_DIR)
    try:
        with tarfile.open(archive, "r:gz") as tar:
            member = tar.getmember("crictl")
            src = tar.extractfile(member)
            if src is None:
                raise tarfile.TarError("crictl is not a regular file")
            target_dir.mkdir(parents=True, exist_ok=True)
            binary = target_dir / "crictl"
            binary.write_bytes(src.read())
            binary.chmod(0o755)
    except (tarfile.TarError, KeyError, OSError) as e:
        fail("crictl.extract", f"Failed to extract crictl: {e}")
    finally:
        archive.unlink(missing_ok=True)


def install_crictl(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    """Ensure crictl is installed and pointed at the containerd socket.

    Args:
        runner: Command runner.
        cfg: Installer configuration.

    Returns:
        True if anything was installed or configured.
    """
    console.print(Panel.fit("Installing crictl", style="bold blue"))
    if runner.has_command("crictl"):
        if cfg.crictl_config.exists():
            console.print("[green]\u2705 crictl already installed and configured, skipping[/green]")
            return False
        console.print("[yellow]\u2139\ufe0f  crictl installed but not configured, writing config[/yellow]")
    else:
        download_crictl(cfg, dep_value("crictl", "version"))

    write_file(cfg.crictl_config, render_crictl_config(cfg.cri_socket))
    console.print("[green]\u2705 crictl installed and configured[/green]")
    return True
