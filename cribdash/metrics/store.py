"""In-memory holder of the latest polled metric snapshot."""

from typing import Any, Dict, List, Optional

Snapshot = Dict[str, List[Dict[str, Any]]]


class MetricStore:
    """
    Latest {entity: metric items} snapshot.

    The poller swaps in a whole new dict each tick; readers never see a
    partially updated snapshot.
    """

    def __init__(self, initial: Optional[Snapshot] = None):
        self._snapshot: Snapshot = initial if initial is not None else {"host": []}

    def load(self) -> Snapshot:
        return self._snapshot

    def store(self, snapshot: Snapshot):
        self._snapshot = snapshot

    def items_for(self, entity: str) -> Optional[List[Dict[str, Any]]]:
        """Items of an entity, or None when the entity is unknown."""
        return self._snapshot.get(entity)
