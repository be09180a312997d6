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

"""Package-manager repository configuration, backup, and restore."""

from __future__ import annotations

import shutil

from rich.panel import Panel

from kube_installer import console, logger
from kube_installer.config import InstallerConfig
from kube_installer.constants import REPO_FILE_BASE, REPO_FILE_DOCKER_CE, REPO_FILE_KUBERNETES
from kube_installer.policy import check
from kube_installer.utils import CommandRunner, write_file

BASE_REPO_TEMPLATE = """\
# CentOS-Base.repo
#
# Managed by kube-installer. The original repository files are kept in
# {backup_dir} and restored by `kube-installer cleanup`.

[base]
name=CentOS-$releasever - Base - {host}
failovermethod=priority
baseurl={mirror}/$releasever/os/$basearch/
gpgcheck=1
gpgkey={mirror}/RPM-GPG-KEY-CentOS-7

#released updates
[updates]
name=CentOS-$releasever - Updates - {host}
failovermethod=priority
baseurl={mirror}/$releasever/updates/$basearch/
gpgcheck=1
gpgkey={mirror}/RPM-GPG-KEY-CentOS-7

#additional packages that may be useful
[extras]
name=CentOS-$releasever - Extras - {host}
failovermethod=priority
baseurl={mirror}/$releasever/extras/$basearch/
gpgcheck=1
gpgkey={mirror}/RPM-GPG-KEY-CentOS-7

#additional packages that extend functionality of existing packages
[centosplus]
name=CentOS-$releasever - Plus - {host}
failovermethod=priority
baseurl={mirror}/$releasever/centosplus/$basearch/
gpgcheck=1
enabled=0
gpgkey={mirror}/RPM-GPG-KEY-CentOS-7
"""

DOCKER_CE_REPO_TEMPLATE = """\
[docker-ce-stable]
name=Docker CE Stable - $basearch
baseurl={mirror}/linux/centos/$releasever/$basearch/stable
enabled=1
gpgcheck=1
gpgkey={mirror}/linux/centos/gpg
"""

KUBERNETES_REPO_TEMPLATE = """\
[kubernetes]
name=Kubernetes
baseurl={mirror}/yum/repos/kubernetes-el7-$basearch
enabled=1
gpgcheck=1
repo_gpgcheck=1
gpgkey={mirror}/yum/doc/yum-key.gpg {mirror}/yum/doc/rpm-package-key.gpg
"""


def _host(url: str) -> str:
    return url.split("://", 1)[-1].split("/", 1)[0]


def render_repo_files(cfg: InstallerConfig) -> dict[str, str]:
    """Render the three mirror repository definitions.

    Returns:
        Mapping of repo file name to its content.
    """
    return {
        REPO_FILE_BASE: BASE_REPO_TEMPLATE.format(
            mirror=cfg.os_mirror, host=_host(cfg.os_mirror), backup_dir=cfg.repos_backup_dir,
        ),
        REPO_FILE_DOCKER_CE: DOCKER_CE_REPO_TEMPLATE.format(mirror=cfg.docker_ce_mirror),
        REPO_FILE_KUBERNETES: KUBERNETES_REPO_TEMPLATE.format(mirror=cfg.kubernetes_mirror),
    }


def repos_configured(cfg: InstallerConfig) -> bool:
    """Return True when all three repo files already point at the configured mirrors."""
    expected = {
        REPO_FILE_BASE: cfg.os_mirror,
        REPO_FILE_DOCKER_CE: cfg.docker_ce_mirror,
        REPO_FILE_KUBERNETES: cfg.kubernetes_mirror,
    }
    for name, mirror in expected.items():
        path = cfg.repos_dir / name
        if not path.exists() or mirror not in path.read_text():
            return False
    return True


def backup_repositories(cfg: InstallerConfig) -> bool:
    """Move existing repo files into the backup directory, once.

    Returns:
        True if a backup was taken by this call.
    """
    backup = cfg.repos_backup_dir
    if backup.exists():
        logger.info("Repository backup already present at %s", backup)
        return False
    backup.mkdir(parents=True)
    moved = 0
    for repo in sorted(cfg.repos_dir.glob("*.repo")):
        shutil.move(str(repo), str(backup / repo.name))
        moved += 1
    console.print(f"[green]\u2705 Backed up {moved} repository files to {backup}[/green]")
    return True


def configure_repositories(runner: CommandRunner, cfg: InstallerConfig) -> bool:
    """Point yum at the regional mirrors unless it already is.

    Args:
        runner: Command runner.
        cfg: Installer configuration with mirror URLs.

    Returns:
        True if the repository files were (re)written.
    """
    console.print(Panel.fit("Configuring package repositories", style="bold blue"))
    if repos_configured(cfg):
        console.print("[green]\u2705 All repositories already point at the mirrors, skipping[/green]")
        return False

    cfg.repos_dir.mkdir(parents=True, exist_ok=True)
    backup_repositories(cfg)
    for name, content in render_repo_files(cfg).items():
        write_file(cfg.repos_dir / name, content)

    check("repos.clean", runner.run(["yum", "clean", "all"]), "Failed to clean the yum cache")
    if check("repos.makecache", runner.run(["yum", "makecache"], stream=True),
             "Failed to refresh the package cache"):
        console.print("[green]\u2705 Repositories configured[/green]")
    return True


def restore_repositories(cfg: InstallerConfig) -> bool:
    """Replace current repo files with the backed-up originals.

    Returns:
        True if a non-empty backup was restored.
    """
    backup = cfg.repos_backup_dir
    if not backup.is_dir() or not any(backup.iterdir()):
        return False
    for repo in cfg.repos_dir.glob("*.repo"):
        repo.unlink()
    for saved in backup.iterdir():
        if saved.is_file():
            shutil.copy2(saved, cfg.repos_dir / saved.name)
    console.print("[green]\u2705 Restored the original repository files[/green]")
    return True
