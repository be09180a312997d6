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

"""On-disk record of completed install phases."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from kube_installer import logger


class PhaseLedger:
    """YAML ledger of completed phases.

    Informational only: whether a phase must run is still decided by probing
    the live system.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def entries(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        return list(data.get("phases", []))

    def record(self, phase: str, **params: Any) -> None:
        """Record *phase* as completed, replacing any earlier entry for it."""
        entries = [e for e in self.entries() if e.get("phase") != phase]
        entries.append({
            "phase": phase,
            "completed_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "params": params,
        })
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump({"phases": entries}, f, sort_keys=False)
        logger.debug("Recorded phase %s in %s", phase, self.path)

    def clear(self) -> None:
        """Delete the ledger, and its directory once nothing else is left in it."""
        self.path.unlink(missing_ok=True)
        state_dir = self.path.parent
        if state_dir.is_dir() and not any(state_dir.iterdir()):
            state_dir.rmdir()
            logger.debug("Removed %s", state_dir)
