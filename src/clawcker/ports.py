"""Host port allocation for new instances."""

from __future__ import annotations

from clawcker.store import InstanceStore

BASE_PORT = 18789


def next_available_port(store: InstanceStore, base_port: int = BASE_PORT) -> int:
    """Return the lowest port >= ``base_port`` not used by any stored record.

    Recomputed from the store on every call; there is no persisted counter.
    Two processes creating instances at the same moment can both get the same
    port. Nothing here takes a lock.
    """
    used = {record.port for record in store.list_all()}
    port = base_port
    while port in used:
        port += 1
    return port
