"""Local persistent mirror of the client's collections.

The mirror is one JSON file holding a keyed blob. It must never stop the
in-memory model from working: unreadable content reads as empty, and a
write that fails or exceeds the quota is logged and skipped.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class LocalMirror:
    """Keyed JSON blob on disk with a size quota."""

    def __init__(self, path: str | Path, max_bytes: int = DEFAULT_QUOTA_BYTES) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes

    def load(self) -> dict[str, Any]:
        """Read the whole blob. Missing or corrupt content is an empty blob."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Local mirror unreadable", extra={"path": str(self.path), "error": str(exc)})
            return {}

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt local mirror", extra={"path": str(self.path)})
            return {}

        if not isinstance(data, dict):
            logger.warning("Discarding corrupt local mirror", extra={"path": str(self.path)})
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def save(self, data: dict[str, Any]) -> bool:
        """Replace the blob. Returns False if the write was skipped."""
        payload = json.dumps(data, default=str)
        size = len(payload.encode("utf-8"))
        if size > self.max_bytes:
            logger.warning(
                "Local mirror quota exceeded; keeping previous contents",
                extra={"path": str(self.path), "size": size, "quota": self.max_bytes},
            )
            return False

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            logger.warning("Local mirror write failed", extra={"path": str(self.path), "error": str(exc)})
            return False
        return True

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
