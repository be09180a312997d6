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

"""Failure severity policy: which step failures abort the run."""

from __future__ import annotations

from enum import Enum

from kube_installer import console, logger
from kube_installer.utils import CommandResult


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


# Steps not listed here are treated as HARD.
STEP_SEVERITY: dict[str, Severity] = {
    # Preflight
    "preflight.root": Severity.HARD,
    "preflight.ip": Severity.HARD,
    "preflight.iproute": Severity.SOFT,
    "prompt.missing": Severity.HARD,
    "prompt.invalid": Severity.HARD,
    # Host preparation
    "host.selinux": Severity.SOFT,
    "host.swapoff": Severity.SOFT,
    "host.modprobe": Severity.SOFT,
    "host.sysctl": Severity.SOFT,
    # Repositories and packages
    "repos.clean": Severity.SOFT,
    "repos.makecache": Severity.SOFT,
    "packages.batch": Severity.SOFT,
    # Runtime
    "runtime.install": Severity.HARD,
    "runtime.config": Severity.HARD,
    "runtime.start": Severity.HARD,
    "runtime.restart_existing": Severity.SOFT,
    "crictl.download": Severity.HARD,
    "crictl.extract": Severity.HARD,
    # Kubernetes tooling
    "kubernetes.list_versions": Severity.SOFT,
    "kubernetes.install": Severity.HARD,
    "kubelet.enable": Severity.SOFT,
    "kubelet.restart": Severity.SOFT,
    # Cluster
    "cluster.reset": Severity.SOFT,
    "cluster.prepull": Severity.SOFT,
    "cluster.init": Severity.HARD,
    "cluster.cni": Severity.SOFT,
    "cluster.join": Severity.HARD,
    "cluster.join_token": Severity.SOFT,
    # Verification
    "verify.kubelet": Severity.SOFT,
    "verify.nodes": Severity.SOFT,
    "verify.pods": Severity.SOFT,
    # Cleanup
    "cleanup.step": Severity.SOFT,
}


def severity_of(step: str) -> Severity:
    """Look up the severity of *step*, defaulting to HARD."""
    return STEP_SEVERITY.get(step, Severity.HARD)


class InstallError(RuntimeError):
    """A hard failure that aborts the run.

    Attributes:
        step: Policy step name that failed.
        exit_code: Process exit status to propagate.
    """

    def __init__(self, step: str, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.step = step
        self.exit_code = exit_code or 1


def fail(step: str, message: str, exit_code: int = 1) -> bool:
    """Report a failure of *step* according to its severity.

    Args:
        step: Policy step name.
        message: Human readable failure description.
        exit_code: Exit status to propagate for hard failures.

    Returns:
        False for soft failures.

    Raises:
        InstallError: If *step* is a hard failure.
    """
    if severity_of(step) is Severity.HARD:
        logger.error("%s failed: %s", step, message)
        raise InstallError(step, message, exit_code)
    logger.warning("%s failed: %s", step, message)
    console.print(f"[yellow]\u26a0\ufe0f  {message}, continuing[/yellow]")
    return False


def check(step: str, result: CommandResult, message: str) -> bool:
    """Classify a command result against the policy table.

    Args:
        step: Policy step name.
        result: Result of the command backing the step.
        message: Description printed when the step fails.

    Returns:
        True on success, False for a soft failure.

    Raises:
        InstallError: If the command failed and *step* is HARD.
    """
    if result.ok:
        return True
    logger.debug("%s", result.describe())
    return fail(step, f"{message} ({result.describe()})", result.returncode)
