"""Discovery adapter interface for pluggable datasource introspection."""

from abc import ABC, abstractmethod

from schemalens.discovery.types import DiscoveredColumn, DiscoveredForeignKey, DiscoveredTable


class SchemaDiscoveryAdapter(ABC):
    """Abstract schema introspection for one external datasource.

    Implementations raise ``DiscoveryError`` when the datasource cannot be read.
    """

    @abstractmethod
    def discover_tables(self) -> list[DiscoveredTable]:
        """List user tables with an optional row-count estimate."""

    @abstractmethod
    def discover_columns(self, schema_name: str, table_name: str) -> list[DiscoveredColumn]:
        """List the columns of one table in ordinal order."""

    def discover_foreign_keys(self) -> list[DiscoveredForeignKey]:
        """List foreign key column pairs; only called when supported."""

        return []

    def supports_foreign_keys(self) -> bool:
        return False
