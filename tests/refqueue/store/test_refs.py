"""Tests for the ref registry: atomic set/remove and timestamped listing."""

from __future__ import annotations

import os
import time
from unittest.mock import patch

import pytest

from refqueue.core.exceptions import CorruptState, NotFound, RegistryUnavailable
from refqueue.core.repository import Repository
from refqueue.store.objects import ObjectStore
from refqueue.store.ordering import order_refs
from refqueue.store.refs import PACKED_REFS, RefRegistry
from tests.utils import run_git


def test_producer_consumer_scenario(objects: ObjectStore, refs: RefRegistry) -> None:
    h1 = objects.write(b"task-1")
    refs.set_ref("refs/q/a", h1)

    listed = refs.list_refs("refs/q/")
    assert [(ref.name, ref.target) for ref in listed] == [("refs/q/a", h1)]
    assert objects.read(listed[0].target) == b"task-1"

    refs.remove_ref("refs/q/a")

    assert refs.list_refs("refs/q/") == []


class TestListRefs:
    def test_empty_repository(self, refs: RefRegistry) -> None:
        assert refs.list_refs("refs/") == []

    def test_prefix_is_a_plain_string_prefix(self, objects: ObjectStore, refs: RefRegistry) -> None:
        object_id = objects.write(b"x")
        for name in ("refs/q/a", "refs/qq/b", "refs/other/c"):
            refs.set_ref(name, object_id)

        assert {ref.name for ref in refs.list_refs("refs/q/")} == {"refs/q/a"}
        assert {ref.name for ref in refs.list_refs("refs/q")} == {"refs/q/a", "refs/qq/b"}

    def test_every_ref_has_a_timestamp(self, objects: ObjectStore, refs: RefRegistry) -> None:
        before = time.time() - 2
        refs.set_ref("refs/q/a", objects.write(b"a"))

        [ref] = refs.list_refs("refs/q/")

        assert ref.created_at.tzinfo is not None
        assert ref.created_at.timestamp() >= before

    def test_strictly_increasing_timestamps_list_in_order(
        self, replica: Repository, objects: ObjectStore, refs: RefRegistry
    ) -> None:
        base = time.time() - 100
        # names deliberately out of lexical order
        for offset, name in enumerate(["refs/q/c", "refs/q/a", "refs/q/b"]):
            refs.set_ref(name, objects.write(name.encode()))
            os.utime(replica.git_dir / name, (base + offset, base + offset))

        listed = refs.list_refs("refs/q/")

        assert [ref.name for ref in listed] == ["refs/q/c", "refs/q/a", "refs/q/b"]
        assert order_refs(listed) == listed

    def test_packed_refs_use_packed_refs_mtime(
        self, replica: Repository, objects: ObjectStore, refs: RefRegistry
    ) -> None:
        refs.set_ref("refs/q/a", objects.write(b"a"))
        run_git("pack-refs", "--all", cwd=replica.path)
        assert not (replica.git_dir / "refs/q/a").exists()

        [ref] = refs.list_refs("refs/q/")

        packed_mtime = (replica.git_dir / PACKED_REFS).stat().st_mtime
        assert ref.created_at.timestamp() == pytest.approx(packed_mtime)
        assert ref.packed

    def test_packed_refs_list_before_older_loose_refs(
        self, replica: Repository, objects: ObjectStore, refs: RefRegistry
    ) -> None:
        refs.set_ref("refs/q/b", objects.write(b"b"))
        refs.set_ref("refs/q/c", objects.write(b"c"))
        run_git("pack-refs", "--all", cwd=replica.path)
        refs.set_ref("refs/q/a", objects.write(b"a"))
        past = time.time() - 100
        os.utime(replica.git_dir / "refs/q/a", (past, past))

        listed = refs.list_refs("refs/q/")

        assert [(ref.name, ref.packed) for ref in listed] == [
            ("refs/q/b", True),
            ("refs/q/c", True),
            ("refs/q/a", False),
        ]

    def test_repointed_packed_ref_is_loose(
        self, replica: Repository, objects: ObjectStore, refs: RefRegistry
    ) -> None:
        refs.set_ref("refs/q/a", objects.write(b"a"))
        run_git("pack-refs", "--all", cwd=replica.path)

        refs.set_ref("refs/q/a", objects.write(b"a2"))

        [ref] = refs.list_refs("refs/q/")
        assert not ref.packed

    def test_missing_timestamp_is_corrupt_state(self, objects: ObjectStore, refs: RefRegistry) -> None:
        refs.set_ref("refs/q/a", objects.write(b"a"))

        with patch.object(RefRegistry, "_loose_timestamp", return_value=None):
            with pytest.raises(CorruptState):
                refs.list_refs("refs/q/")

    def test_ref_deleted_during_listing_is_skipped(self, objects: ObjectStore, refs: RefRegistry) -> None:
        refs.set_ref("refs/q/a", objects.write(b"a"))

        with patch.object(RefRegistry, "_loose_timestamp", return_value=None), patch.object(
            RefRegistry, "resolve", return_value=None
        ):
            assert refs.list_refs("refs/q/") == []

    def test_outside_repository_is_unavailable(self, tmp_path) -> None:
        with pytest.raises(RegistryUnavailable):
            RefRegistry(Repository(tmp_path / "missing")).list_refs("refs/")


class TestSetRef:
    def test_replace_keeps_one_ref(self, objects: ObjectStore, refs: RefRegistry) -> None:
        h1 = objects.write(b"one")
        h2 = objects.write(b"two")

        refs.set_ref("refs/q/a", h1)
        refs.set_ref("refs/q/a", h2)

        listed = refs.list_refs("refs/q/")
        assert [(ref.name, ref.target) for ref in listed] == [("refs/q/a", h2)]

    def test_unknown_object_is_rejected(self, refs: RefRegistry) -> None:
        with pytest.raises(RegistryUnavailable) as exc_info:
            refs.set_ref("refs/q/a", "0123456789abcdef0123456789abcdef01234567")

        assert exc_info.value.operation == "update-ref"
        assert exc_info.value.stderr

    @pytest.mark.parametrize("name", ["HEAD", "queue/a", "refs/q/"])
    def test_name_must_be_full_ref(self, objects: ObjectStore, refs: RefRegistry, name: str) -> None:
        with pytest.raises(ValueError):
            refs.set_ref(name, objects.write(b"x"))

    def test_get_ref(self, objects: ObjectStore, refs: RefRegistry) -> None:
        object_id = objects.write(b"x")
        refs.set_ref("refs/q/a", object_id)
        refs.set_ref("refs/q/ab", object_id)

        ref = refs.get_ref("refs/q/a")

        assert ref is not None
        assert ref.name == "refs/q/a"
        assert ref.target == object_id
        assert refs.get_ref("refs/q/missing") is None


class TestRemoveRef:
    def test_missing_ref_is_not_found(self, refs: RefRegistry) -> None:
        with pytest.raises(NotFound):
            refs.remove_ref("refs/q/missing")

    def test_second_removal_is_not_found(self, objects: ObjectStore, refs: RefRegistry) -> None:
        object_id = objects.write(b"x")
        refs.set_ref("refs/q/a", object_id)

        refs.remove_ref("refs/q/a", object_id)
        with pytest.raises(NotFound):
            refs.remove_ref("refs/q/a", object_id)

    def test_expected_mismatch_leaves_ref(self, objects: ObjectStore, refs: RefRegistry) -> None:
        h1 = objects.write(b"one")
        h2 = objects.write(b"two")
        refs.set_ref("refs/q/a", h2)

        with pytest.raises(NotFound, match="no longer points at"):
            refs.remove_ref("refs/q/a", h1)

        assert refs.resolve("refs/q/a") == h2

    def test_remove_packed_ref(self, replica: Repository, objects: ObjectStore, refs: RefRegistry) -> None:
        refs.set_ref("refs/q/a", objects.write(b"a"))
        run_git("pack-refs", "--all", cwd=replica.path)

        refs.remove_ref("refs/q/a")

        assert refs.list_refs("refs/q/") == []
