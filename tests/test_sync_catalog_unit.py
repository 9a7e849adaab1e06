"""
Unit tests for the table catalog.

Tests:
- Default catalog order and primary-key overrides
- Dependency-order validation
- YAML catalog loading
"""

import pytest

from extsync.sync.catalog import (
    DEFAULT_CATALOG,
    DEFAULT_TIMESTAMP_COLUMNS,
    TableCatalog,
    load_catalog,
    resolve_catalog,
)
from extsync.sync.exceptions import CatalogError


class TestDefaultCatalog:
    """Tests for the built-in catalog."""

    def test_has_all_tables(self):
        assert len(DEFAULT_CATALOG) == 39
        assert DEFAULT_CATALOG.tables[0] == "profiles"
        assert DEFAULT_CATALOG.tables[-1] == "system_integrity_resolutions"

    def test_primary_key_override(self):
        assert DEFAULT_CATALOG.primary_key("patrimonio_historico") == "historico_id"
        assert DEFAULT_CATALOG.primary_key("assets") == "id"

    def test_declared_dependencies_come_first(self):
        for table, refs in DEFAULT_CATALOG.dependencies.items():
            for ref in refs:
                assert DEFAULT_CATALOG.tables.index(ref) < DEFAULT_CATALOG.tables.index(table)

    def test_sample_returns_first_tables(self):
        assert DEFAULT_CATALOG.sample(3) == ("profiles", "equipment_rental_catalog", "user_roles")
        assert DEFAULT_CATALOG.sample(0) == ()
        assert len(DEFAULT_CATALOG.sample(100)) == 39

    def test_membership_and_iteration(self):
        assert "messages" in DEFAULT_CATALOG
        assert "unknown_table" not in DEFAULT_CATALOG
        assert list(DEFAULT_CATALOG) == list(DEFAULT_CATALOG.tables)

    def test_default_timestamp_columns(self):
        assert DEFAULT_CATALOG.timestamp_columns("assets") == DEFAULT_TIMESTAMP_COLUMNS


class TestCatalogValidation:
    """Tests for catalog construction rules."""

    def test_duplicate_table_rejected(self):
        with pytest.raises(CatalogError):
            TableCatalog(tables=("parents", "children", "parents"))

    def test_reference_after_dependent_rejected(self):
        with pytest.raises(CatalogError) as exc_info:
            TableCatalog(
                tables=("children", "parents"),
                dependencies={"children": ("parents",)},
            )
        assert "children" in str(exc_info.value)

    def test_reference_outside_catalog_allowed(self):
        catalog = TableCatalog(
            tables=("children",),
            dependencies={"children": ("parents",)},
        )
        assert catalog.tables == ("children",)

    def test_catalog_is_immutable(self):
        primary_keys = {"parents": "parent_id"}
        catalog = TableCatalog(tables=["parents"], primary_keys=primary_keys)

        primary_keys["parents"] = "changed"
        assert catalog.primary_key("parents") == "parent_id"
        assert isinstance(catalog.tables, tuple)
        with pytest.raises(TypeError):
            catalog.primary_keys["parents"] = "other"

    def test_empty_timestamp_columns_rejected(self):
        with pytest.raises(CatalogError) as exc_info:
            TableCatalog(tables=("events",), incremental_columns={"events": []})
        assert "events" in str(exc_info.value)

    def test_custom_timestamp_columns(self):
        catalog = TableCatalog(
            tables=("events",),
            incremental_columns={"events": ["created_at"]},
        )
        assert catalog.timestamp_columns("events") == ("created_at",)


class TestLoadCatalog:
    """Tests for YAML catalog files."""

    def test_load_catalog(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "tables: [parents, children]\n"
            "primary_keys: {parents: parent_id}\n"
            "dependencies: {children: [parents]}\n"
            "incremental_columns: {children: [created_at]}\n"
        )

        catalog = load_catalog(path)

        assert catalog.tables == ("parents", "children")
        assert catalog.primary_key("parents") == "parent_id"
        assert catalog.primary_key("children") == "id"
        assert catalog.timestamp_columns("children") == ("created_at",)

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError):
            load_catalog(tmp_path / "missing.yaml")

    def test_empty_tables_rejected(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("tables: []\n")
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_invalid_order_in_file(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "tables: [children, parents]\n"
            "dependencies: {children: [parents]}\n"
        )
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_empty_timestamp_columns_in_file(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "tables: [events]\n"
            "incremental_columns: {events: []}\n"
        )
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_resolve_catalog_default(self):
        assert resolve_catalog("") is DEFAULT_CATALOG
        assert resolve_catalog(None) is DEFAULT_CATALOG
