"""
Order Status Registry - per-tenant status vocabulary

Statuses are not a workflow: any enabled status can be set from any other.
What is configurable is the vocabulary itself (order, labels, enabled flag).
Colors come from a fixed key -> color palette, so renaming a status never
changes its color, and disabled keys still resolve because historical orders
keep carrying them.

Author: StoreSync
"""
import logging
from typing import Dict, List

from pydantic import ValidationError

from storesync.core.exceptions import StoreValidationError
from storesync.domain.status import StatusConfig
from storesync.repositories.base import LocalCollectionStore
from storesync.repositories.local_store import status_configs_name

logger = logging.getLogger(__name__)


DEFAULT_STATUSES = [
    ('pending', 'Pending review'),
    ('confirmed', 'Confirmed'),
    ('processing', 'Processing'),
    ('sentToPrinter', 'Sent to printer'),
    ('readyForDelivery', 'Ready for delivery'),
    ('shipped', 'Shipped'),
    ('delivered', 'Delivered'),
    ('cancelled', 'Cancelled'),
]

STATUS_COLORS: Dict[str, str] = {
    'pending': 'bg-yellow-100 text-yellow-800 border-yellow-200',
    'confirmed': 'bg-blue-100 text-blue-800 border-blue-200',
    'processing': 'bg-purple-100 text-purple-800 border-purple-200',
    'sentToPrinter': 'bg-orange-100 text-orange-800 border-orange-200',
    'sent_to_printing': 'bg-orange-100 text-orange-800 border-orange-200',
    'readyForDelivery': 'bg-indigo-100 text-indigo-800 border-indigo-200',
    'printing_received': 'bg-indigo-100 text-indigo-800 border-indigo-200',
    'shipped': 'bg-cyan-100 text-cyan-800 border-cyan-200',
    'delivered': 'bg-green-100 text-green-800 border-green-200',
    'completed': 'bg-emerald-100 text-emerald-800 border-emerald-200',
    'cancelled': 'bg-red-100 text-red-800 border-red-200',
    'returned': 'bg-gray-100 text-gray-800 border-gray-200',
}
DEFAULT_COLOR = 'bg-gray-100 text-gray-800'


def default_status_configs() -> List[StatusConfig]:
    return [
        StatusConfig(key=key, label=label, order=position, enabled=True)
        for position, (key, label) in enumerate(DEFAULT_STATUSES, start=1)
    ]


class StatusRegistry:
    """
    Status configuration for one tenant, persisted in the local store

    Mutations change the in-memory configuration; save() persists it.
    """

    def __init__(self, tenant_id: str, local_store: LocalCollectionStore):
        self.tenant_id = tenant_id
        self.local_store = local_store
        self.configs: List[StatusConfig] = self._load()

    def _load(self) -> List[StatusConfig]:
        raw = self.local_store.load(status_configs_name(self.tenant_id), None)
        if not raw:
            return default_status_configs()

        try:
            configs = [StatusConfig.model_validate(entry) for entry in raw]
        except (ValidationError, TypeError) as e:
            logger.warning(f"Invalid status configuration for tenant {self.tenant_id}, using defaults: {e}")
            return default_status_configs()

        return sorted(configs, key=lambda c: c.order)

    def _find(self, key: str) -> StatusConfig:
        for config in self.configs:
            if config.key == key:
                return config
        raise StoreValidationError(f"Unknown status '{key}'", payload={'key': key})

    def _renumber(self):
        for position, config in enumerate(self.configs, start=1):
            config.order = position

    # =========================================================================
    # Mutations
    # =========================================================================

    def reorder(self, keys: List[str]) -> List[StatusConfig]:
        """
        Put statuses in the given order; every configured key must appear once.
        """
        current = {c.key: c for c in self.configs}
        if len(keys) != len(set(keys)) or set(keys) != set(current):
            raise StoreValidationError(
                "Reorder must list every configured status exactly once",
                payload={'expected': sorted(current), 'received': list(keys)}
            )

        self.configs = [current[key] for key in keys]
        self._renumber()
        return self.configs

    def move_up(self, key: str) -> List[StatusConfig]:
        index = self.configs.index(self._find(key))
        if index > 0:
            self.configs[index - 1], self.configs[index] = self.configs[index], self.configs[index - 1]
            self._renumber()
        return self.configs

    def move_down(self, key: str) -> List[StatusConfig]:
        index = self.configs.index(self._find(key))
        if index < len(self.configs) - 1:
            self.configs[index + 1], self.configs[index] = self.configs[index], self.configs[index + 1]
            self._renumber()
        return self.configs

    def relabel(self, key: str, label: str) -> StatusConfig:
        label = (label or "").strip()
        if not label:
            raise StoreValidationError("Status label cannot be blank", payload={'key': key})

        config = self._find(key)
        config.label = label
        return config

    def set_enabled(self, key: str, enabled: bool) -> StatusConfig:
        config = self._find(key)
        config.enabled = bool(enabled)
        return config

    def toggle_enabled(self, key: str) -> StatusConfig:
        config = self._find(key)
        config.enabled = not config.enabled
        return config

    def reset(self) -> List[StatusConfig]:
        self.configs = default_status_configs()
        return self.configs

    def save(self):
        """Persist the configuration; an empty vocabulary is rejected"""
        if not self.configs:
            raise StoreValidationError("At least one status must be configured")

        self.local_store.save(
            status_configs_name(self.tenant_id),
            [config.model_dump() for config in self.configs]
        )
        logger.info(f"Saved {len(self.configs)} status configurations for tenant {self.tenant_id}")

    # =========================================================================
    # Queries
    # =========================================================================

    def options_for_selection(self) -> List[dict]:
        """Enabled statuses in display order, with label and fixed color"""
        return [
            {
                'value': config.key,
                'label': config.label,
                'color': self.color_for(config.key),
                'enabled': config.enabled,
            }
            for config in sorted(self.configs, key=lambda c: c.order)
            if config.enabled
        ]

    def label_for(self, key: str) -> str:
        for config in self.configs:
            if config.key == key:
                return config.label
        return key

    @staticmethod
    def color_for(key: str) -> str:
        return STATUS_COLORS.get(key, DEFAULT_COLOR)

    def is_enabled(self, key: str) -> bool:
        for config in self.configs:
            if config.key == key:
                return config.enabled
        return False
