"""
JSON File Rate Cache

Persists the rate snapshot as a single JSON document:

    {"fxRates": {...}, "fxBase": "EUR", "lastFXUpdate": "...",
     "cryptoUSDPrices": {...}, "metalUSDPrices": {...},
     "stockUSDPrices": {...}, "lastCryptoUpdate": ..., ...}

Writes go to a temporary file that replaces the target, so a crash
mid-write leaves the previous snapshot intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from assetledger.models.rates import RateSnapshot
from assetledger.services.storage.interface import (
    CacheCorruptedError,
    RateCacheInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


class JSONFileRateCache(RateCacheInterface):
    """Rate cache stored in one JSON file."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> RateSnapshot:
        """
        Read and decode the cache file.

        Raises:
            FileNotFoundError: If no cache has been written yet
            CacheCorruptedError: If the file can't be decoded
            StorageError: If the file exists but can't be read
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except UnicodeDecodeError as e:
            raise CacheCorruptedError(f"Unreadable rate cache at {self._path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read rate cache: {e}")
        try:
            return RateSnapshot.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise CacheCorruptedError(f"Unreadable rate cache at {self._path}: {e}")

    def load(self) -> Optional[RateSnapshot]:
        try:
            return self.read()
        except FileNotFoundError:
            return None
        except CacheCorruptedError as e:
            # A bad cache only costs one refresh
            logger.warning("rate_cache_corrupted", path=str(self._path), error=str(e))
            return None
        except StorageError as e:
            logger.warning("rate_cache_unreadable", path=str(self._path), error=str(e))
            return None

    def save(self, snapshot: RateSnapshot) -> None:
        payload = json.dumps(snapshot.to_cache_dict(), sort_keys=True)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write rate cache: {e}")
