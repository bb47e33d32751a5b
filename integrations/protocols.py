"""
Collaborator interfaces used by the reconciliation pipelines.

The concrete clients live next to this module (apify, shopify, telegram);
tests swap in in-memory fakes.
"""

from typing import Optional, Protocol, Sequence

from models.catalog import DestinationRecord, RecordStatus


class SourceCatalog(Protocol):
    """Supplier feed."""

    def fetch_all(self) -> list[dict]:
        """Return every raw feed record. Raises SourceFetchError."""
        ...


class DestinationCatalog(Protocol):
    """Store product and inventory API."""

    def fetch_all(self, fields: Optional[Sequence[str]] = None) -> list[DestinationRecord]:
        """Return every product. Raises DestinationFetchError."""
        ...

    def fetch_inventory_levels(self, item_ids: Sequence[str]) -> dict[str, int]:
        ...

    def set_inventory(self, item_id: str, quantity: int) -> None:
        ...

    def enable_inventory_tracking(self, variant_id: str) -> None:
        ...

    def create_record(self, payload: dict) -> DestinationRecord:
        ...

    def update_status(self, record_id: str, status: RecordStatus) -> None:
        ...

    def update_sku(self, variant_id: str, sku: str) -> None:
        ...

    def delete(self, record_id: str) -> None:
        ...


class Notifier(Protocol):
    """Operator alert channel. Best effort: never raises."""

    def send(self, text: str) -> bool:
        ...
