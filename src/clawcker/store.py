"""Instance metadata store: one directory per instance, no separate index.

Layout under the instances root::

    <root>/<name>/config/          mounted as the gateway config dir
    <root>/<name>/workspace/       mounted as the agent workspace
    <root>/<name>/instance.json    the InstanceRecord

The filesystem is the source of truth: an instance exists when its directory
and a readable ``instance.json`` exist. Unreadable or malformed metadata is
treated as "not found" so one damaged file never breaks the listing.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

from clawcker.logger import logger
from clawcker.types import InstanceRecord

METADATA_FILE = "instance.json"


def write_json_atomic(path: Path, data: Any, *, indent: int | None = None) -> None:
    """Write JSON data to a file using atomic rename (tmp → final).

    Readers either see the old content or the complete new content.
    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(data, indent=indent))
    tmp.replace(path)


class InstanceStore:
    """Reads and writes instance records under a single root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def instance_dir(self, name: str) -> Path:
        return self.root / name

    def config_dir(self, name: str) -> Path:
        return self.instance_dir(name) / "config"

    def workspace_dir(self, name: str) -> Path:
        return self.instance_dir(name) / "workspace"

    def metadata_path(self, name: str) -> Path:
        return self.instance_dir(name) / METADATA_FILE

    def exists(self, name: str) -> bool:
        """True if the instance directory is present, even without metadata.

        Creation refuses to reuse a directory in either state.
        """
        return self.instance_dir(name).is_dir()

    def save(self, record: InstanceRecord) -> None:
        write_json_atomic(self.metadata_path(record.name), record.to_dict(), indent=2)

    def load(self, name: str) -> InstanceRecord | None:
        path = self.metadata_path(name)
        if not path.is_file():
            return None
        try:
            return InstanceRecord.from_dict(json.loads(path.read_text()))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            # json.JSONDecodeError is a ValueError
            logger.warning("Ignoring unreadable instance metadata", path=str(path), err=str(exc))
            return None

    def list_all(self) -> list[InstanceRecord]:
        if not self.root.is_dir():
            return []
        records: list[InstanceRecord] = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            record = self.load(entry.name)
            if record is not None:
                records.append(record)
        return records

    def remove(self, name: str) -> None:
        """Delete the whole instance directory (rollback of a failed create)."""
        shutil.rmtree(self.instance_dir(name), ignore_errors=True)
