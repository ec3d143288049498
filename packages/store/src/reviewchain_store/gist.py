"""GistBackend — share configuration and review results through a GitHub Gist.

Why Gist as the team store:
- Zero infra: no DB to provision, no server to maintain.
- Built-in access control: anyone the Gist is shared with can read the same
  step definitions and past review results.
- Works in GitHub Actions with a PAT that has the 'gist' scope.

Data format: a single JSON object named `reviewchain_state.json` inside the
Gist, mapping each key to its JSON value. Every set() rewrites the whole file
in one Gist edit, so a key is never visible half-written.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from reviewchain_store.base import KeyValueBackend, StoreError

logger = logging.getLogger(__name__)

_GIST_FILENAME = "reviewchain_state.json"


class GistBackend(KeyValueBackend):
    """Stores every key in one JSON document inside a GitHub Gist.

    Suitable for small teams: each write reads and rewrites the full document.
    The Gist ID is configured in .reviewchain.yml under `gist_id`.
    """

    def __init__(self, gist_id: str, token: str):
        try:
            from github import Github
        except ImportError:
            raise ImportError("PyGithub is required for GistBackend: pip install PyGithub")
        self._gist_id = gist_id
        self._gh = Github(token)

    def _get_gist(self):
        return self._gh.get_gist(self._gist_id)

    def get(self, key: str) -> Any | None:
        try:
            return self._read_state(self._get_gist()).get(key)
        except Exception as e:
            raise StoreError(f"Gist read failed ({type(e).__name__}): {e}") from e

    def set(self, key: str, value: Any) -> None:
        self._update(lambda state: state.__setitem__(key, value))

    def delete(self, key: str) -> None:
        self._update(lambda state: state.pop(key, None))

    def keys(self, prefix: str = "") -> list[str]:
        try:
            state = self._read_state(self._get_gist())
        except Exception as e:
            logger.warning("GistBackend.keys() failed: %s", e)
            return []
        return sorted(k for k in state if k.startswith(prefix))

    def _update(self, mutate) -> None:
        try:
            gist = self._get_gist()
            state = self._read_state(gist)
            mutate(state)
            gist.edit(files={_GIST_FILENAME: {"content": json.dumps(state, indent=2)}})
        except Exception as e:
            raise StoreError(f"Gist write failed ({type(e).__name__}): {e}") from e

    def _read_state(self, gist) -> dict:
        """Read the current JSON object from the Gist file, or return {}."""
        file_obj = gist.files.get(_GIST_FILENAME)
        if file_obj is None:
            return {}
        try:
            state = json.loads(file_obj.content) or {}
        except (json.JSONDecodeError, AttributeError):
            logger.warning("Gist %s holds unreadable state; treating it as empty", self._gist_id)
            return {}
        return state if isinstance(state, dict) else {}
