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

"""Status subcommand: show the phase ledger."""

from __future__ import annotations

import typer
from rich.table import Table

from kube_installer import console
from kube_installer.commands import Session
from kube_installer.ledger import PhaseLedger

app = typer.Typer(help="Show install progress on this node.")


@app.callback(invoke_without_command=True)
def status(ctx: typer.Context) -> None:
    """Show which install phases have completed on this node."""
    session: Session = ctx.obj
    entries = PhaseLedger(session.cfg.ledger_path).entries()
    if not entries:
        console.print("[yellow]\u2139\ufe0f  No install phases recorded on this node[/yellow]")
        return

    table = Table(title="Completed phases")
    table.add_column("Phase", style="cyan")
    table.add_column("Completed at (UTC)")
    table.add_column("Parameters")
    for entry in entries:
        params = entry.get("params") or {}
        table.add_row(
            entry.get("phase", "?"),
            entry.get("completed_at", ""),
            ", ".join(f"{k}={v}" for k, v in params.items()),
        )
    console.print(table)
