"""Tests for the in-memory and local file state stores."""

import json
import threading
import pytest
from converge.state.local import LocalStateStore
from converge.state.memory import InMemoryStateStore
from converge.state.models import StoredState
from converge.utils.errors import StateConflict, StateError, StateLocked


def _state(address="aws_vpc.main", identifier="vpc-1", **kwargs):
    resource_type, name = address.split("[")[0].split(".")
    return StoredState(address=address, type=resource_type, name=name, identifier=identifier, **kwargs)


@pytest.fixture(params=["memory", "local"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStateStore()
    return LocalStateStore(tmp_path / "state.json")


class TestStateStoreContract:
    """Behavior shared by every store."""

    def test_put_and_get(self, store):
        stored = store.put("aws_vpc.main", _state(attributes={"cidr_block": "10.0.0.0/16"}), None)

        assert stored.version >= 1
        fetched = store.get("aws_vpc.main")
        assert fetched.identifier == "vpc-1"
        assert fetched.attributes == {"cidr_block": "10.0.0.0/16"}
        assert fetched.version == stored.version

    def test_missing_entry(self, store):
        assert store.get("aws_vpc.nope") is None

    def test_versions_increase(self, store):
        first = store.put("aws_vpc.main", _state(), None)
        second = store.put("aws_vpc.main", _state(identifier="vpc-2"), first.version)

        assert second.version > first.version

    def test_conflict_on_stale_version(self, store):
        """Test a write based on an old version is rejected."""
        first = store.put("aws_vpc.main", _state(), None)
        store.put("aws_vpc.main", _state(identifier="vpc-2"), first.version)

        with pytest.raises(StateConflict) as exc_info:
            store.put("aws_vpc.main", _state(identifier="vpc-3"), first.version)
        assert exc_info.value.expected == first.version
        assert store.get("aws_vpc.main").identifier == "vpc-2"

    def test_conflict_when_entry_appeared(self, store):
        store.put("aws_vpc.main", _state(), None)
        with pytest.raises(StateConflict):
            store.put("aws_vpc.main", _state(), None)

    def test_delete(self, store):
        stored = store.put("aws_vpc.main", _state(), None)
        store.delete("aws_vpc.main", stored.version)
        assert store.get("aws_vpc.main") is None

    def test_delete_conflict(self, store):
        stored = store.put("aws_vpc.main", _state(), None)
        with pytest.raises(StateConflict):
            store.delete("aws_vpc.main", stored.version + 5)

    def test_recreated_entry_never_reuses_version(self, store):
        first = store.put("aws_vpc.main", _state(), None)
        store.delete("aws_vpc.main", first.version)
        second = store.put("aws_vpc.main", _state(), None)
        assert second.version > first.version

    def test_list_sorted(self, store):
        store.put("aws_vpc.main", _state(), None)
        store.put("aws_subnet.a[1]", _state("aws_subnet.a[1]", "subnet-2", index=1), None)
        store.put("aws_subnet.a[0]", _state("aws_subnet.a[0]", "subnet-1", index=0), None)

        assert [s.address for s in store.list()] == ["aws_subnet.a[0]", "aws_subnet.a[1]", "aws_vpc.main"]
        assert set(store.snapshot()) == {"aws_subnet.a[0]", "aws_subnet.a[1]", "aws_vpc.main"}

    def test_lock(self, store):
        """Test a second run cannot take the lock while it is held."""
        store.lock("run-1")
        store.lock("run-1")
        with pytest.raises(StateLocked) as exc_info:
            store.lock("run-2")
        assert exc_info.value.holder == "run-1"

        store.unlock("run-2")
        assert store.lock_holder() == "run-1"
        store.unlock("run-1")
        store.lock("run-2")
        assert store.lock_holder() == "run-2"

    def test_concurrent_writers_one_wins(self, store):
        """Test racing writers with the same expected version: exactly one succeeds."""
        base = store.put("aws_vpc.main", _state(), None)
        results = []
        barrier = threading.Barrier(4)

        def writer(n):
            barrier.wait()
            try:
                store.put("aws_vpc.main", _state(identifier=f"vpc-{n}"), base.version)
                results.append("ok")
            except StateConflict:
                results.append("conflict")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["conflict", "conflict", "conflict", "ok"]


class TestLocalStateStore:
    """File-specific behavior."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state.json"
        LocalStateStore(path).put("aws_vpc.main", _state(outputs={"arn": "arn:vpc"}), None)

        reopened = LocalStateStore(path).get("aws_vpc.main")
        assert reopened.outputs == {"arn": "arn:vpc"}

    def test_document_layout(self, tmp_path):
        path = tmp_path / "state.json"
        store = LocalStateStore(path)
        store.put("aws_vpc.main", _state(), None)
        store.lock("run-1")

        document = json.loads(path.read_text())
        assert document["format_version"] == 1
        assert document["serial"] == 1
        assert document["lock"] == "run-1"
        assert document["resources"]["aws_vpc.main"]["identifier"] == "vpc-1"

    def test_no_temporary_files_left(self, tmp_path):
        store = LocalStateStore(tmp_path / "state.json")
        for n in range(3):
            current = store.get("aws_vpc.main")
            store.put("aws_vpc.main", _state(identifier=f"vpc-{n}"), current.version if current else None)

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(StateError, match="Invalid JSON"):
            LocalStateStore(path).list()

    def test_missing_resources_key(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"format_version": 1}))
        with pytest.raises(StateError, match="resources"):
            LocalStateStore(path).get("aws_vpc.main")

    def test_newer_format_rejected(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"format_version": 99, "resources": {}}))
        with pytest.raises(StateError, match="newer"):
            LocalStateStore(path).list()

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"format_version": 1, "resources": {"aws_vpc.main": {"type": "aws_vpc"}}}))
        with pytest.raises(StateError, match="aws_vpc.main"):
            LocalStateStore(path).get("aws_vpc.main")

    def test_missing_file_is_empty(self, tmp_path):
        store = LocalStateStore(tmp_path / "nested" / "state.json")
        assert store.list() == []
        assert store.lock_holder() is None
