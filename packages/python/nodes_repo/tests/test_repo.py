import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from nodes_repo import (
    InMemoryNodeStore,
    InvalidOperationError,
    NodeCreate,
    NodeMove,
    NodeNotFoundError,
    PartialDeleteError,
    StoreError,
    create_node,
    delete_with_descendants,
    descendant_ids,
    get_node,
    get_tree,
    list_nodes,
    list_orphans,
    move_node,
    purge_orphans,
    would_cycle,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _doc(node_id, parent_id=None, minute=0):
    return {
        "_id": node_id,
        "text": f"node {node_id}",
        "parent_id": parent_id,
        "created_at": BASE_TIME + timedelta(minutes=minute),
    }


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def chain_store():
    """Root(1) -> Child(2) -> Grandchild(3)."""

    return InMemoryNodeStore([_doc("1"), _doc("2", "1", 1), _doc("3", "2", 2)])


@pytest.fixture()
def wide_store():
    return InMemoryNodeStore(
        [
            _doc("root"),
            _doc("x", "root", 1),
            _doc("a", "x", 2),
            _doc("b", "x", 3),
            _doc("c", "b", 4),
            _doc("sibling", "root", 5),
            _doc("sibling-child", "sibling", 6),
        ]
    )


async def _ids(store):
    return {node.id for node in await list_nodes(store)}


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


def test_create_root_node():
    store = InMemoryNodeStore()

    node = run(create_node(store, NodeCreate(text="  Long-term goal  ")))

    assert node.parent_id is None
    assert node.text == "Long-term goal"
    assert run(get_node(store, node.id)) == node


def test_create_child_under_existing_parent(chain_store):
    node = run(create_node(chain_store, NodeCreate(text="consequence", parent_id="2")))

    assert node.parent_id == "2"
    assert run(descendant_ids(chain_store, "1")) == {"2", "3", node.id}


def test_create_with_missing_parent_fails_without_writing(chain_store):
    with pytest.raises(NodeNotFoundError) as excinfo:
        run(create_node(chain_store, NodeCreate(text="orphan", parent_id="nope")))

    assert excinfo.value.node_id == "nope"
    assert excinfo.value.kind == "NotFound"
    assert run(_ids(chain_store)) == {"1", "2", "3"}


def test_create_with_empty_parent_id_creates_root():
    payload = NodeCreate.model_validate({"text": "root", "parentId": ""})

    assert payload.parent_id is None


@pytest.mark.parametrize("text", ["", "   "])
def test_create_rejects_blank_text(text):
    with pytest.raises(ValueError):
        NodeCreate(text=text)


def test_get_node_missing_raises_not_found():
    with pytest.raises(NodeNotFoundError):
        run(get_node(InMemoryNodeStore(), "missing"))


def test_get_tree_uses_stored_records(chain_store):
    trees = run(get_tree(chain_store))

    assert [tree.id for tree in trees] == ["1"]
    assert trees[0].children[0].children[0].id == "3"


# ---------------------------------------------------------------------------
# cascading delete
# ---------------------------------------------------------------------------


def test_delete_removes_node_and_descendants_only(wide_store):
    deleted = run(delete_with_descendants(wide_store, "x"))

    assert deleted == ["x", "a", "b", "c"]
    assert run(_ids(wide_store)) == {"root", "sibling", "sibling-child"}


def test_delete_child_in_chain_keeps_root(chain_store):
    deleted = run(delete_with_descendants(chain_store, "2"))

    assert set(deleted) == {"2", "3"}
    assert run(_ids(chain_store)) == {"1"}


def test_delete_is_idempotent(chain_store):
    run(delete_with_descendants(chain_store, "2"))

    assert run(delete_with_descendants(chain_store, "2")) == []
    assert run(delete_with_descendants(chain_store, "never-existed")) == []
    assert run(_ids(chain_store)) == {"1"}


def test_delete_terminates_on_stored_cycle():
    store = InMemoryNodeStore([_doc("a", "b"), _doc("b", "a", 1), _doc("keep")])

    assert set(run(delete_with_descendants(store, "a"))) == {"a", "b"}
    assert run(_ids(store)) == {"keep"}


class FlakyDeleteStore(InMemoryNodeStore):
    """Fails the first ``failures`` delete calls."""

    def __init__(self, documents, failures):
        super().__init__(documents)
        self.failures = failures
        self.delete_calls = 0

    async def delete_many(self, ids):
        self.delete_calls += 1
        if self.delete_calls <= self.failures:
            raise StoreError("delete_many failed: connection reset")
        return await super().delete_many(ids)


class PartialDeleteStore(InMemoryNodeStore):
    """Drops one id from every delete call, like a write that half applied."""

    def __init__(self, documents, skip_id, retries_fix_it=False):
        super().__init__(documents)
        self.skip_id = skip_id
        self.retries_fix_it = retries_fix_it
        self.delete_calls = 0

    async def delete_many(self, ids):
        self.delete_calls += 1
        ids = set(ids)
        if not (self.retries_fix_it and self.delete_calls > 1):
            ids.discard(self.skip_id)
        return await super().delete_many(ids)


def test_delete_retries_once_after_store_error():
    store = FlakyDeleteStore(
        [_doc("1"), _doc("2", "1", 1), _doc("3", "2", 2)], failures=1
    )

    deleted = run(delete_with_descendants(store, "2"))

    assert set(deleted) == {"2", "3"}
    assert store.delete_calls == 2
    assert run(_ids(store)) == {"1"}


def test_delete_reports_failure_when_nothing_could_be_removed():
    store = FlakyDeleteStore([_doc("1"), _doc("2", "1", 1)], failures=5)

    with pytest.raises(PartialDeleteError) as excinfo:
        run(delete_with_descendants(store, "1"))

    assert store.delete_calls == 2
    assert excinfo.value.kind == "PartialFailure"
    assert excinfo.value.removed == []
    assert excinfo.value.remaining == ["1", "2"]


def test_delete_retry_removes_leftovers():
    store = PartialDeleteStore(
        [_doc("1"), _doc("2", "1", 1), _doc("3", "2", 2)], skip_id="3", retries_fix_it=True
    )

    assert set(run(delete_with_descendants(store, "2"))) == {"2", "3"}
    assert store.delete_calls == 2


def test_delete_surfaces_partial_failure():
    store = PartialDeleteStore([_doc("1"), _doc("2", "1", 1), _doc("3", "2", 2)], skip_id="3")

    with pytest.raises(PartialDeleteError) as excinfo:
        run(delete_with_descendants(store, "2"))

    assert excinfo.value.removed == ["2"]
    assert excinfo.value.remaining == ["3"]


# ---------------------------------------------------------------------------
# cycle guard and move
# ---------------------------------------------------------------------------


def test_would_cycle_for_self_and_descendants(wide_store):
    assert run(would_cycle(wide_store, "x", "x")) is True
    assert run(would_cycle(wide_store, "x", "a")) is True
    assert run(would_cycle(wide_store, "x", "c")) is True


def test_would_cycle_false_for_unrelated_or_null(wide_store):
    assert run(would_cycle(wide_store, "x", "sibling-child")) is False
    assert run(would_cycle(wide_store, "x", "root")) is False
    assert run(would_cycle(wide_store, "x", None)) is False


def test_would_cycle_treats_existing_loop_as_cycle():
    store = InMemoryNodeStore([_doc("a", "b"), _doc("b", "a", 1), _doc("n")])

    assert run(would_cycle(store, "n", "a")) is True


def test_move_into_own_descendant_is_rejected(chain_store):
    with pytest.raises(InvalidOperationError):
        run(move_node(chain_store, "1", "3"))

    assert run(get_node(chain_store, "1")).parent_id is None


def test_move_grandchild_under_root(chain_store):
    moved = run(move_node(chain_store, "3", "1"))

    assert moved.parent_id == "1"
    assert run(get_node(chain_store, "3")).parent_id == "1"


def test_move_onto_itself_is_rejected(chain_store):
    with pytest.raises(InvalidOperationError):
        run(move_node(chain_store, "2", "2"))


def test_move_to_missing_parent_is_not_found(chain_store):
    with pytest.raises(NodeNotFoundError) as excinfo:
        run(move_node(chain_store, "3", "ghost"))

    assert excinfo.value.node_id == "ghost"
    assert run(get_node(chain_store, "3")).parent_id == "2"


def test_move_missing_node_is_not_found(chain_store):
    with pytest.raises(NodeNotFoundError):
        run(move_node(chain_store, "ghost", "1"))


def test_move_to_root_level_is_not_supported(chain_store):
    with pytest.raises(InvalidOperationError):
        run(move_node(chain_store, "3", None))

    assert run(get_node(chain_store, "3")).parent_id == "2"


# ---------------------------------------------------------------------------
# orphans
# ---------------------------------------------------------------------------


def test_orphans_are_listed_and_purged():
    store = InMemoryNodeStore(
        [
            _doc("root"),
            _doc("orphan", "deleted-parent", 1),
            _doc("orphan-child", "orphan", 2),
        ]
    )

    assert [node.id for node in run(list_orphans(store))] == ["orphan"]
    assert run(purge_orphans(store)) == ["orphan", "orphan-child"]
    assert run(_ids(store)) == {"root"}
    assert run(list_orphans(store)) == []


def test_move_with_empty_parent_id_is_a_root_move(chain_store):
    payload = NodeMove.model_validate({"newParentId": ""})

    assert payload.new_parent_id is None
    with pytest.raises(InvalidOperationError):
        run(move_node(chain_store, "3", ""))
    assert run(get_node(chain_store, "3")).parent_id == "2"


class UnverifiableDeleteStore(InMemoryNodeStore):
    """Deletes fine, but the follow-up id lookup cannot reach the database."""

    async def find(self, filter):
        if "_id" in filter:
            raise StoreError("find failed: connection reset")
        return await super().find(filter)


def test_delete_with_failed_verification_reports_unverified_ids():
    store = UnverifiableDeleteStore([_doc("1"), _doc("2", "1", 1), _doc("3", "2", 2)])

    with pytest.raises(PartialDeleteError) as excinfo:
        run(delete_with_descendants(store, "2"))

    assert excinfo.value.verified is False
    assert excinfo.value.removed == []
    assert excinfo.value.remaining == ["2", "3"]
    assert run(_ids(store)) == {"1"}
