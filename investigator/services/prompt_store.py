from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """Prompt templates keyed by dotted path, reloaded when the file changes."""

    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = path
        self._payload: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def _load(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._payload is not None and self._mtime_ns == mtime_ns:
            return self._payload
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog must be a JSON object: {self.path}")
        self._payload = payload
        self._mtime_ns = mtime_ns
        return payload

    def template(self, key: str) -> str:
        node: Any = self._load()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        template = Template(self.template(key))
        try:
            return template.substitute(**values)
        except KeyError as exc:
            missing = str(exc.args[0])
            raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc

    def clear(self) -> None:
        self._payload = None
        self._mtime_ns = None


catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return catalog.render(key, **values)
