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

"""Operator input providers: interactive terminal or a scripted answers file."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

import yaml
from rich.prompt import Confirm, Prompt

from kube_installer import console, logger
from kube_installer.policy import fail


class InputProvider(Protocol):
    """Source of operator answers. Every prompt carries a stable key."""

    def ask(self, key: str, message: str, default: str | None = None) -> str: ...

    def confirm(self, key: str, message: str, default: bool = True) -> bool: ...

    def choose(self, key: str, message: str, choices: Sequence[str]) -> str: ...


class ConsolePrompter:
    """Interactive prompts on the terminal via rich.

    End of input (closed or empty stdin) counts as a blank answer, so every
    prompt falls back to its default.
    """

    def ask(self, key: str, message: str, default: str | None = None) -> str:
        try:
            if default is None:
                return Prompt.ask(f"[green]{message}[/green]", console=console)
            return Prompt.ask(f"[green]{message}[/green]", console=console, default=default, show_default=bool(default))
        except EOFError:
            logger.info("No input for '%s', using default", key)
            return default or ""

    def confirm(self, key: str, message: str, default: bool = True) -> bool:
        try:
            return Confirm.ask(f"[green]{message}[/green]", console=console, default=default)
        except EOFError:
            logger.info("No input for '%s', using default (%s)", key, "yes" if default else "no")
            return default

    def choose(self, key: str, message: str, choices: Sequence[str]) -> str:
        try:
            return Prompt.ask(f"[green]{message}[/green]", console=console, choices=list(choices))
        except EOFError:
            fail("prompt.missing", f"No input for '{key}' ({message})")
            return ""


_TRUE_WORDS = {"y", "yes", "true", "1"}


class AnswersPrompter:
    """Non-interactive prompts answered from a key -> value mapping.

    Missing keys fall back to the prompt default. A missing key with no
    default is a hard failure.
    """

    def __init__(self, answers: Mapping[str, Any]) -> None:
        self.answers = dict(answers)
        self.asked: list[str] = []

    @classmethod
    def from_file(cls, path: Path) -> AnswersPrompter:
        """Load answers from a YAML mapping file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"answers file {path} must contain a mapping")
        return cls(data)

    def _lookup(self, key: str) -> Any:
        self.asked.append(key)
        return self.answers.get(key)

    def ask(self, key: str, message: str, default: str | None = None) -> str:
        value = self._lookup(key)
        if value is None:
            if default is None:
                fail("prompt.missing", f"No answer for '{key}' ({message})")
            value = default
        elif isinstance(value, bool) or not isinstance(value, (str, int)):
            # YAML reads an unquoted 1.30 as the float 1.3.
            fail("prompt.invalid",
                 f"Answer for '{key}' must be a string, quote it in the answers file (got {value!r})")
        logger.info("%s -> %s", message, value)
        return str(value)

    def confirm(self, key: str, message: str, default: bool = True) -> bool:
        value = self._lookup(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_WORDS

    def choose(self, key: str, message: str, choices: Sequence[str]) -> str:
        value = self.ask(key, message)
        if value not in choices:
            fail("prompt.missing", f"Answer '{value}' for '{key}' is not one of {', '.join(choices)}")
        return value
