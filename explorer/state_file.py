from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from .constants import STATE_NAMESPACE


class StateFile:
    """JSON file holding client state under one private namespace key.

    Other top-level keys in the file are preserved on write, so several
    tools can share a state file without clobbering each other.
    """

    def __init__(self, path: str | Path, *, namespace: str = STATE_NAMESPACE) -> None:
        self._path = Path(path)
        self._namespace = namespace

    @property
    def path(self) -> Path:
        return self._path

    def read(self, key: str) -> dict | None:
        section = self._read_all().get(self._namespace, {})
        value = section.get(key)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise RuntimeError(f"State entry {key!r} is invalid; expected a JSON object.")
        return value

    def write(self, key: str, value: dict | None) -> None:
        all_state = self._read_all()
        section = dict(all_state.get(self._namespace, {}))
        if value is None:
            section.pop(key, None)
        else:
            section[key] = value

        if section:
            all_state[self._namespace] = section
        else:
            all_state.pop(self._namespace, None)
        self._write_all(all_state)

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("State file is invalid; expected top-level JSON object.")
        section = raw.get(self._namespace)
        if section is not None and not isinstance(section, dict):
            raise RuntimeError(
                f"State file namespace {self._namespace!r} is invalid; expected a JSON object."
            )
        return raw

    def _write_all(self, payload: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
