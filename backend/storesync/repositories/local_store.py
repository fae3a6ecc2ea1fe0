"""
Local persisted collections - one JSON file per collection

The local cache is session-owned scratch space: a write-ahead buffer for
records not yet mirrored remotely. A collection that cannot be decoded is
reset to its empty default; the other collections are left untouched.

Author: StoreSync
"""
import json
import logging
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from storesync.core.exceptions import CorruptLocalStateError
from storesync.repositories.base import LocalCollectionStore

logger = logging.getLogger(__name__)

# Well-known collection names
ORDERS = "orders"
PRODUCTS = "products"
PROPOSED_PRICES = "proposedPrices"
SERIAL_COUNTERS = "serialCounters"
SYNCED_ORDER_SERIALS = "syncedOrderSerials"

_VALID_NAME = re.compile(r'^[A-Za-z0-9_.\-]+$')


def is_valid_collection_name(name: str) -> bool:
    return bool(name) and bool(_VALID_NAME.match(name)) and name not in (".", "..")


def status_configs_name(tenant_id: str) -> str:
    """Collection holding a tenant's order-status configuration"""
    return f"order_status_configs_{tenant_id}"


class JsonFileLocalStore(LocalCollectionStore):
    """
    LocalCollectionStore writing <name>.json files under a directory

    Args:
        directory: Folder for the collection files (created on demand)
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        if not is_valid_collection_name(name):
            raise ValueError(f"Invalid collection name: {name!r}")
        return self.directory / f"{name}.json"

    def _read(self, name: str, default: Any) -> Any:
        path = self._path(name)
        if not path.exists():
            return default

        try:
            with open(path, 'r', encoding='utf-8') as f:
                value = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptLocalStateError(name, str(e))

        if default is not None and not isinstance(value, type(default)):
            raise CorruptLocalStateError(
                name, f"expected {type(default).__name__}, found {type(value).__name__}"
            )
        return value

    def load(self, name: str, default: Any) -> Any:
        try:
            return self._read(name, default)
        except CorruptLocalStateError as e:
            logger.warning(f"{e.message}; resetting to empty default")
            self.save(name, default)
            return default

    def save(self, name: str, value: Any) -> None:
        path = self._path(name)
        self.directory.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_suffix('.json.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(value, f, ensure_ascii=False, indent=2, default=str)
        os.replace(tmp_path, path)

    def archive(self, name: str) -> Optional[str]:
        path = self._path(name)
        if not path.exists():
            return None

        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%f')
        backup_name = f"{name}.backup-{stamp}"
        shutil.copyfile(path, self._path(backup_name))

        logger.info(f"Archived local collection {name} as {backup_name}")
        return backup_name

    def clear(self, name: str) -> None:
        path = self._path(name)
        if path.exists():
            path.unlink()

    def names(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob('*.json'))
