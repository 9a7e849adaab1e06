"""
Table Catalog Module.

Defines the ordered set of replicated tables. Catalog order is a
topological order of the foreign-key graph: every table comes after the
tables it references, so inserting in catalog order never hits a missing
parent row.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple, Union

import yaml

from extsync.sync.exceptions import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_KEY = "id"
DEFAULT_TIMESTAMP_COLUMNS: Tuple[str, ...] = ("created_at", "updated_at")


@dataclass(frozen=True)
class TableCatalog:
    """
    Immutable, ordered catalog of replicated tables.

    Attributes:
        tables: Table names in dependency order (referenced tables first)
        primary_keys: Tables whose primary-key column is not the default
        default_primary_key: Primary-key column used when not overridden
        dependencies: Optional declared references, validated against order
        incremental_columns: Tables whose change-tracking columns differ
            from ``created_at``/``updated_at``
    """
    tables: Tuple[str, ...]
    primary_keys: Mapping[str, str] = field(default_factory=dict)
    default_primary_key: str = DEFAULT_PRIMARY_KEY
    dependencies: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    incremental_columns: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tables", tuple(self.tables))
        object.__setattr__(self, "primary_keys", MappingProxyType(dict(self.primary_keys)))
        object.__setattr__(self, "dependencies", MappingProxyType(
            {table: tuple(refs) for table, refs in self.dependencies.items()}
        ))
        object.__setattr__(self, "incremental_columns", MappingProxyType(
            {table: tuple(cols) for table, cols in self.incremental_columns.items()}
        ))
        self._validate()

    def _validate(self) -> None:
        seen = set()
        for table in self.tables:
            if table in seen:
                raise CatalogError(f"Table '{table}' appears more than once in the catalog")
            seen.add(table)

        for table, columns in self.incremental_columns.items():
            if not columns:
                raise CatalogError(f"Table '{table}' has an empty incremental_columns list")

        position = {table: index for index, table in enumerate(self.tables)}
        for table, refs in self.dependencies.items():
            if table not in position:
                continue
            for ref in refs:
                # References outside the catalog are not replicated here
                if ref in position and position[ref] >= position[table]:
                    raise CatalogError(
                        f"Table '{table}' references '{ref}' but is ordered before it"
                    )

    def __contains__(self, table: object) -> bool:
        return table in self.tables

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def primary_key(self, table: str) -> str:
        """Primary-key column used for ordering and bulk deletes."""
        return self.primary_keys.get(table, self.default_primary_key)

    def timestamp_columns(self, table: str) -> Tuple[str, ...]:
        """Columns compared against ``since`` in incremental sync."""
        return self.incremental_columns.get(table, DEFAULT_TIMESTAMP_COLUMNS)

    def sample(self, size: int) -> Tuple[str, ...]:
        """First ``size`` tables in catalog order."""
        return self.tables[:max(size, 0)]


DEFAULT_CATALOG = TableCatalog(
    tables=(
        # Base tables
        "profiles",
        "equipment_rental_catalog",

        # Reference profiles
        "user_roles",
        "user_permissions",
        "user_presence",

        # Base for assets and stock
        "products",
        "rental_companies",

        # Reference products / assets
        "assets",
        "product_purchases",
        "product_stock_adjustments",

        # Reference assets
        "asset_collaborators",
        "asset_lifecycle_history",
        "asset_maintenances",
        "asset_maintenance_parts",
        "asset_mobilization_expenses",
        "asset_mobilization_parts",
        "asset_spare_parts",
        "equipment_receipts",
        "equipment_receipt_items",

        # Reference rental_companies
        "rental_equipment",

        # Reports
        "reports",
        "report_parts",
        "report_photos",
        "report_external_services",

        # Material withdrawals
        "material_withdrawals",
        "material_withdrawal_collaborators",

        # Chat
        "conversations",
        "conversation_participants",
        "chat_groups",
        "group_permissions",
        "messages",

        # Cash
        "cash_boxes",
        "cash_box_transactions",

        # Audit tables always last
        "patrimonio_historico",
        "audit_logs",
        "error_logs",
        "receipt_access_logs",
        "system_integrity_resolutions",
    ),
    primary_keys={
        "patrimonio_historico": "historico_id",
    },
    dependencies={
        "user_roles": ("profiles",),
        "user_permissions": ("profiles",),
        "user_presence": ("profiles",),
        "assets": ("products",),
        "product_purchases": ("products",),
        "product_stock_adjustments": ("products",),
        "asset_collaborators": ("assets",),
        "asset_lifecycle_history": ("assets",),
        "asset_maintenances": ("assets",),
        "asset_maintenance_parts": ("asset_maintenances", "products"),
        "asset_mobilization_expenses": ("assets",),
        "asset_mobilization_parts": ("assets", "products"),
        "asset_spare_parts": ("assets", "products"),
        "equipment_receipts": ("assets",),
        "equipment_receipt_items": ("equipment_receipts",),
        "rental_equipment": ("rental_companies",),
        "report_parts": ("reports",),
        "report_photos": ("reports",),
        "report_external_services": ("reports",),
        "material_withdrawal_collaborators": ("material_withdrawals",),
        "conversation_participants": ("conversations", "profiles"),
        "group_permissions": ("chat_groups",),
        "messages": ("conversations",),
        "cash_box_transactions": ("cash_boxes",),
        "patrimonio_historico": ("assets",),
    },
)


def load_catalog(path: Union[str, Path]) -> TableCatalog:
    """
    Load a catalog from a YAML file.

    Expected layout::

        tables: [parents, children]
        primary_keys: {parents: parent_id}
        default_primary_key: id
        dependencies: {children: [parents]}
        incremental_columns: {parents: [created_at]}

    Raises:
        CatalogError: If the file is missing, malformed or the order is invalid
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot read catalog file {path}: {e}") from e

    if not isinstance(data, dict) or not data.get("tables"):
        raise CatalogError(f"Catalog file {path} must define a non-empty 'tables' list")

    catalog = TableCatalog(
        tables=tuple(str(t) for t in data["tables"]),
        primary_keys=dict(data.get("primary_keys") or {}),
        default_primary_key=data.get("default_primary_key") or DEFAULT_PRIMARY_KEY,
        dependencies={k: tuple(v) for k, v in (data.get("dependencies") or {}).items()},
        incremental_columns={k: tuple(v) for k, v in (data.get("incremental_columns") or {}).items()},
    )
    logger.info(f"Loaded catalog with {len(catalog)} tables from {path}")
    return catalog


def resolve_catalog(catalog_file: Optional[str] = None) -> TableCatalog:
    """Catalog from ``catalog_file`` when given, otherwise the built-in one."""
    if catalog_file:
        return load_catalog(catalog_file)
    return DEFAULT_CATALOG


__all__ = [
    "DEFAULT_CATALOG",
    "DEFAULT_PRIMARY_KEY",
    "DEFAULT_TIMESTAMP_COLUMNS",
    "TableCatalog",
    "load_catalog",
    "resolve_catalog",
]
