"""
Tests for the per-tenant order status registry

Author: StoreSync
"""
import pytest

from storesync.core.exceptions import StoreValidationError
from storesync.repositories.local_store import status_configs_name
from storesync.services.status_registry import DEFAULT_COLOR, StatusRegistry, STATUS_COLORS

from conftest import TENANT, OTHER_TENANT


@pytest.fixture
def registry(local_store):
    return StatusRegistry(TENANT, local_store)


class TestStatusRegistry:

    def test_defaults_when_nothing_saved(self, registry):
        keys = [config.key for config in registry.configs]

        assert keys[0] == "pending"
        assert "cancelled" in keys
        assert [config.order for config in registry.configs] == list(range(1, len(keys) + 1))

    def test_label_survives_disable(self, registry):
        # Arrange
        registry.relabel("shipped", "Out with courier")

        # Act
        registry.set_enabled("shipped", False)

        # Assert - historical orders still resolve
        assert registry.label_for("shipped") == "Out with courier"
        assert registry.color_for("shipped") == STATUS_COLORS["shipped"]
        assert "shipped" not in [option['value'] for option in registry.options_for_selection()]

    def test_color_stable_under_relabel(self, registry):
        before = registry.color_for("confirmed")

        registry.relabel("confirmed", "Approved")

        assert registry.color_for("confirmed") == before

    def test_unknown_key_falls_back(self, registry):
        assert registry.label_for("on_hold") == "on_hold"
        assert registry.color_for("on_hold") == DEFAULT_COLOR
        assert registry.is_enabled("on_hold") is False

    def test_move_up_and_down_renumber(self, registry):
        registry.move_up("confirmed")

        assert [c.key for c in registry.configs][:2] == ["confirmed", "pending"]
        assert registry.configs[0].order == 1
        assert registry.configs[1].order == 2

        registry.move_down("confirmed")
        assert [c.key for c in registry.configs][:2] == ["pending", "confirmed"]

    def test_move_at_edges_is_a_no_op(self, registry):
        keys = [c.key for c in registry.configs]

        registry.move_up(keys[0])
        registry.move_down(keys[-1])

        assert [c.key for c in registry.configs] == keys

    def test_reorder_requires_every_key_once(self, registry):
        keys = [c.key for c in registry.configs]

        with pytest.raises(StoreValidationError):
            registry.reorder(keys[:-1])
        with pytest.raises(StoreValidationError):
            registry.reorder(keys + [keys[0]])

    def test_reorder(self, registry):
        keys = list(reversed([c.key for c in registry.configs]))

        registry.reorder(keys)

        assert [c.key for c in registry.configs] == keys
        assert registry.options_for_selection()[0]['value'] == keys[0]

    def test_blank_label_rejected(self, registry):
        with pytest.raises(StoreValidationError):
            registry.relabel("pending", "   ")

    def test_unknown_key_mutation_rejected(self, registry):
        with pytest.raises(StoreValidationError):
            registry.set_enabled("on_hold", True)

    def test_save_and_reload(self, registry, local_store):
        registry.relabel("pending", "New")
        registry.toggle_enabled("processing")
        registry.save()

        reloaded = StatusRegistry(TENANT, local_store)

        assert reloaded.label_for("pending") == "New"
        assert reloaded.is_enabled("processing") is False

    def test_configuration_is_per_tenant(self, registry, local_store):
        registry.relabel("pending", "New")
        registry.save()

        other = StatusRegistry(OTHER_TENANT, local_store)

        assert other.label_for("pending") != "New"

    def test_empty_vocabulary_cannot_be_saved(self, registry):
        registry.configs = []

        with pytest.raises(StoreValidationError):
            registry.save()

    def test_legacy_status_field_name_accepted(self, local_store):
        local_store.save(status_configs_name(TENANT), [
            {"status": "pending", "label": "Waiting", "order": 2, "enabled": True},
            {"status": "delivered", "label": "Done", "order": 1, "enabled": True},
        ])

        registry = StatusRegistry(TENANT, local_store)

        assert [c.key for c in registry.configs] == ["delivered", "pending"]

    def test_invalid_saved_config_falls_back_to_defaults(self, local_store):
        local_store.save(status_configs_name(TENANT), [{"label": "no key"}])

        registry = StatusRegistry(TENANT, local_store)

        assert registry.configs[0].key == "pending"

    def test_reset(self, registry):
        registry.relabel("pending", "Changed")

        registry.reset()

        assert registry.label_for("pending") == "Pending review"
