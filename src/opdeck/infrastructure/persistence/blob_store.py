"""
JSON blob store: one file per key, replaced atomically on every write.

Each file holds a versioned envelope ``{"version": N, "data": ...}``. A blob
with another version, or one that fails to parse, reads as absent.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from opdeck.domain.constants import BLOB_VERSION
from opdeck.domain.ports import BlobStore

logger = logging.getLogger(__name__)


class JsonBlobStore(BlobStore):
    def __init__(self, root: Path, version: int = BLOB_VERSION):
        self.root = Path(root)
        self.version = version

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def read(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[store] Ignoring unreadable blob {path}: {e}")
            return None

        if not isinstance(envelope, dict) or envelope.get("version") != self.version:
            logger.warning(
                f"[store] Ignoring blob {path} with unexpected version "
                f"{envelope.get('version') if isinstance(envelope, dict) else None!r}"
            )
            return None
        return envelope.get("data")

    def write(self, key: str, value: Any) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        payload = json.dumps({"version": self.version, "data": value}, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)
