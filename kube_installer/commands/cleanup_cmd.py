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

"""Cleanup subcommand."""

from __future__ import annotations

import typer

from kube_installer.commands import Session, run_guarded
from kube_installer.orchestrator import run_cleanup

app = typer.Typer(help="Remove the Kubernetes installation.")


@app.callback(invoke_without_command=True)
def cleanup(ctx: typer.Context) -> None:
    """Remove the Kubernetes installation and restore the original repositories."""
    session: Session = ctx.obj
    run_guarded(lambda: run_cleanup(session.runner, session.cfg, session.prompter))
    raise typer.Exit(code=0)
