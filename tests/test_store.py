"""Tests for the on-disk instance metadata store."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from clawcker.store import InstanceStore, write_json_atomic
from clawcker.types import InstanceRecord


def _record(store: InstanceStore, name: str = "alpha", port: int = 18789, **kwargs) -> InstanceRecord:
    return InstanceRecord(
        name=name,
        port=port,
        config_path=str(store.config_dir(name)),
        workspace_path=str(store.workspace_dir(name)),
        gateway_token="ab" * 32,
        is_created=True,
        created_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
        **kwargs,
    )


class TestSaveLoad:
    def test_load_returns_saved_record(self, store):
        record = _record(store, provider="anthropic", api_key="sk-ant-x")
        store.save(record)

        assert store.load("alpha") == record

    def test_metadata_uses_documented_keys(self, store):
        store.save(_record(store))

        data = json.loads(store.metadata_path("alpha").read_text())
        assert data == {
            "name": "alpha",
            "port": 18789,
            "configPath": str(store.config_dir("alpha")),
            "workspacePath": str(store.workspace_dir("alpha")),
            "gatewayToken": "ab" * 32,
            "isCreated": True,
            "createdAt": "2026-01-02T03:04:05+00:00",
        }

    def test_save_overwrites(self, store):
        record = _record(store)
        store.save(record)
        record.provider = "openai"
        store.save(record)

        assert store.load("alpha").provider == "openai"
        assert not store.metadata_path("alpha").with_suffix(".json.tmp").exists()

    def test_missing_is_none(self, store):
        assert store.load("ghost") is None

    def test_corrupt_json_is_none(self, store):
        path = store.metadata_path("alpha")
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        assert store.load("alpha") is None

    def test_wrong_shape_is_none(self, store):
        path = store.metadata_path("alpha")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"name": "alpha", "port": "18789"}))

        assert store.load("alpha") is None

    def test_directory_without_metadata_exists_but_does_not_load(self, store):
        store.instance_dir("alpha").mkdir(parents=True)

        assert store.exists("alpha")
        assert store.load("alpha") is None


class TestListAll:
    def test_missing_root_is_empty(self, store):
        assert store.list_all() == []

    def test_skips_unparseable_entries(self, store):
        store.save(_record(store, "alpha"))
        store.save(_record(store, "gamma", port=18790))
        broken = store.metadata_path("beta")
        broken.parent.mkdir(parents=True)
        broken.write_text("[]")
        (store.root / "stray-file.txt").write_text("x")

        assert [r.name for r in store.list_all()] == ["alpha", "gamma"]


class TestRemove:
    def test_removes_whole_tree(self, store):
        store.save(_record(store))
        store.config_dir("alpha").mkdir()

        store.remove("alpha")

        assert not store.instance_dir("alpha").exists()


def test_write_json_atomic_creates_parents(tmp_path):
    path = tmp_path / "a" / "b" / "data.json"
    write_json_atomic(path, {"k": 1}, indent=2)

    assert json.loads(path.read_text()) == {"k": 1}
