"""
Persistent UTXO cache.

The cache is a single JSON document {"UnspentOutputs": [...]}; nothing derived from the
records (such as totals) is stored.
"""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from angorspend.errors import CacheIOError
from angorspend.models import CacheSnapshot, UnspentSet


class UtxoCache:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load_snapshot(self) -> CacheSnapshot:
        """Read the snapshot. A missing file is an empty snapshot."""
        if not self.path.exists():
            return CacheSnapshot()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheIOError(f"Failed to read cache {self.path}: {e}") from e

        if not raw.strip():
            return CacheSnapshot()

        try:
            return CacheSnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise CacheIOError(f"Cache {self.path} is malformed: {e}") from e

    def load(self) -> UnspentSet:
        """Hydrate an UnspentSet, falling back to an empty set if the cache is unusable."""
        try:
            snapshot = self.load_snapshot()
        except CacheIOError as e:
            logger.error(f"{e}; starting with an empty UTXO set")
            return UnspentSet()

        unspent = UnspentSet.from_snapshot(snapshot)
        logger.info(f"Loaded {len(unspent)} unspent output(s) from cache {self.path}")
        return unspent

    def save_snapshot(self, snapshot: CacheSnapshot) -> None:
        """Write via a temporary file and rename over the cache."""
        payload = snapshot.model_dump_json(by_alias=True, indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CacheIOError(f"Failed to write cache {self.path}: {e}") from e

    def save(self, unspent: UnspentSet) -> None:
        self.save_snapshot(unspent.to_snapshot())
        logger.debug(f"Saved {len(unspent)} unspent output(s) to {self.path}")

    def clear(self) -> None:
        self.save_snapshot(CacheSnapshot())
