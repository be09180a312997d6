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

"""Primary address detection and hosts-file mapping."""

from __future__ import annotations

import ipaddress
import socket
from collections.abc import Callable
from pathlib import Path

from kube_installer import console, logger
from kube_installer.config import InstallerConfig
from kube_installer.constants import (
    DEFAULT_ROUTE_DESTINATION,
    LOOPBACK_PREFIX,
    MAX_IP_ENTRY_ATTEMPTS,
    PROMPT_CONFIRM_IP,
    PROMPT_NODE_IP,
    ROUTE_PROBE_ADDRESS,
    dep_value,
)
from kube_installer.policy import fail
from kube_installer.prompts import InputProvider
from kube_installer.utils import CommandRunner

DetectionMethod = Callable[[CommandRunner, InstallerConfig], "str | None"]


# ============================================================================
# Detection methods
# ============================================================================

def ip_from_route_lookup(runner: CommandRunner, cfg: InstallerConfig) -> str | None:
    """Source address of the route towards a well-known public address."""
    result = runner.run(["ip", "route", "get", ROUTE_PROBE_ADDRESS], probe=True)
    if not result.ok:
        return None
    tokens = result.stdout.split()
    if "src" in tokens:
        idx = tokens.index("src")
        if idx + 1 < len(tokens):
            return tokens[idx + 1]
    return None


def ip_from_hostname(runner: CommandRunner, cfg: InstallerConfig) -> str | None:
    """First address the local hostname resolves to."""
    result = runner.run(["hostname", "-I"], probe=True)
    if not result.ok:
        return None
    tokens = result.stdout.split()
    return tokens[0] if tokens else None


def _parse_inet(output: str) -> list[str]:
    """Extract IPv4 addresses from ``inet`` lines of ifconfig or ip-addr output."""
    addresses = []
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 2 or tokens[0] != "inet":
            continue
        addr = tokens[1]
        if addr.startswith("addr:"):
            addr = addr[len("addr:"):]
        addresses.append(addr.split("/")[0])
    return addresses


def ip_from_interfaces(runner: CommandRunner, cfg: InstallerConfig) -> str | None:
    """First non-loopback interface address."""
    result = runner.run(["ifconfig"], probe=True)
    if not result.ok:
        return None
    for addr in _parse_inet(result.stdout):
        if not addr.startswith(LOOPBACK_PREFIX):
            return addr
    return None


def ip_from_kernel_routes(runner: CommandRunner, cfg: InstallerConfig) -> str | None:
    """Address of the interface holding the default route in the kernel routing table."""
    try:
        lines = cfg.proc_route.read_text().splitlines()
    except OSError:
        return None
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 2 or fields[1] != DEFAULT_ROUTE_DESTINATION:
            continue
        result = runner.run(["ip", "-4", "addr", "show", fields[0]], probe=True)
        if not result.ok:
            continue
        addresses = _parse_inet(result.stdout)
        if addresses:
            return addresses[0]
    return None


DETECTION_METHODS: list[tuple[str, DetectionMethod]] = [
    ("route lookup", ip_from_route_lookup),
    ("hostname resolution", ip_from_hostname),
    ("interface enumeration", ip_from_interfaces),
    ("kernel routing table", ip_from_kernel_routes),
]


# ============================================================================
# Detection and confirmation
# ============================================================================

def ensure_ip_tool(runner: CommandRunner) -> None:
    """Install the iproute package when the ``ip`` tool is missing."""
    if runner.has_command("ip"):
        return
    console.print("[yellow]\u2139\ufe0f  Installing network tools...[/yellow]")
    for package in dep_value("packages", "iproute", default=[]):
        runner.run(["yum", "install", "-y", package])
        if runner.has_command("ip"):
            return
    fail("preflight.iproute", "Could not install the iproute2/iproute package")


def ask_ip(prompter: InputProvider, message: str) -> str:
    """Ask the operator for an IPv4 address, re-asking on invalid input.

    Raises:
        InstallError: If no valid address is entered.
    """
    for _ in range(MAX_IP_ENTRY_ATTEMPTS):
        answer = prompter.ask(PROMPT_NODE_IP, message).strip()
        try:
            return str(ipaddress.IPv4Address(answer))
        except ValueError:
            console.print(f"[yellow]\u26a0\ufe0f  '{answer}' is not a valid IPv4 address[/yellow]")
    fail("preflight.ip", f"No valid IP address entered after {MAX_IP_ENTRY_ATTEMPTS} attempts")
    return ""


def detect_ip(
    runner: CommandRunner,
    cfg: InstallerConfig,
    prompter: InputProvider,
    methods: list[tuple[str, DetectionMethod]] | None = None,
) -> str:
    """Detect the primary outbound IPv4 address.

    Each method is tried once, in order; the operator is asked only when
    every method comes up empty.

    Args:
        runner: Command runner.
        cfg: Installer configuration.
        prompter: Operator input provider for the manual fallback.
        methods: Detection chain override.

    Returns:
        The detected or entered address.
    """
    ensure_ip_tool(runner)
    for name, method in methods if methods is not None else DETECTION_METHODS:
        ip = method(runner, cfg)
        if ip:
            logger.info("Detected IP %s via %s", ip, name)
            return ip
        logger.debug("IP detection via %s found nothing", name)
    console.print("[yellow]\u26a0\ufe0f  Could not detect the IP address automatically[/yellow]")
    return ask_ip(prompter, "Enter this node's IP address")


def confirm_node_ip(runner: CommandRunner, cfg: InstallerConfig, prompter: InputProvider) -> str:
    """Detect the node address and let the operator confirm or override it."""
    ip = detect_ip(runner, cfg, prompter)
    console.print(f"[green]Detected IP address: {ip}[/green]")
    if not prompter.confirm(PROMPT_CONFIRM_IP, "Is this IP address correct?", default=True):
        ip = ask_ip(prompter, "Enter the correct IP address")
    console.print(f"[green]\u2705 Using IP {ip}[/green]")
    return ip


# ============================================================================
# Hosts file
# ============================================================================

def current_hostname(cfg: InstallerConfig) -> str:
    """Current hostname; falls back to /etc/hostname, then ``localhost``."""
    name = socket.gethostname().strip()
    if name:
        return name
    try:
        return cfg.path("etc/hostname").read_text().strip() or "localhost"
    except OSError:
        return "localhost"


def update_hosts_file(ip: str, hostname: str, hosts_file: Path) -> bool:
    """Map *ip* to *hostname* in the hosts file without duplicating the address.

    Every line whose address is *ip* collapses into a single ``<ip> <hostname>``
    line at the position of the first one. A new line is appended when the
    address is not listed yet. A file that already holds exactly that mapping
    is left untouched.

    Args:
        ip: Node address.
        hostname: Current hostname.
        hosts_file: Path to the hosts file.

    Returns:
        True if the file was changed.
    """
    console.print(f"[yellow]\u2139\ufe0f  Current hostname: {hostname} (will not be changed)[/yellow]")
    if not hosts_file.exists():
        hosts_file.parent.mkdir(parents=True, exist_ok=True)
        hosts_file.write_text("127.0.0.1   localhost\n")
        logger.info("Created %s", hosts_file)

    wanted = f"{ip} {hostname}"
    lines = hosts_file.read_text().splitlines()
    out: list[str] = []
    found = False
    for line in lines:
        fields = line.split()
        if fields and fields[0] == ip:
            if not found:
                out.append(wanted)
                found = True
            continue
        out.append(line)
    if not found:
        out.append(wanted)

    changed = out != lines
    if changed:
        hosts_file.write_text("\n".join(out) + "\n")
        action = "Updated" if found else "Added"
        console.print(f"[green]\u2705 {action} hosts entry {wanted}[/green]")
    else:
        console.print(f"[green]\u2705 {ip} already maps to {hostname}[/green]")

    console.print(f"[yellow]{hosts_file} contents:[/yellow]")
    console.print(hosts_file.read_text(), markup=False, highlight=False, end="")
    return changed
