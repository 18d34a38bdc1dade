"""Tests for GitEngine."""

import itertools

import pytest

from gitmaze.core.engine import GitEngine
from gitmaze.core.errors import (
    BranchNotFoundError,
    DuplicateBranchError,
    ImportMalformedError,
    InvalidTargetError,
    TargetNotFoundError,
)
from gitmaze.core.references import BRANCH_PALETTE
from gitmaze.models.reference import HeadRef, RefType


def make_clock(start: int = 1000):
    ticks = itertools.count(start)
    return lambda: next(ticks)


def world(x: int, z: int = 0, **extra) -> dict:
    state = {"playerPosition": {"x": x, "z": z}, "flags": {}, "inventory": []}
    state.update(extra)
    return state


@pytest.fixture
def engine():
    return GitEngine(world(0), clock=make_clock())


def assert_acyclic(engine: GitEngine) -> None:
    commits = engine.get_graph().commits
    for start in commits:
        stack = list(commits[start].parents)
        seen = set()
        while stack:
            commit_id = stack.pop()
            assert commit_id != start
            if commit_id in seen:
                continue
            seen.add(commit_id)
            stack.extend(commits[commit_id].parents)


def assert_branches_valid(engine: GitEngine) -> None:
    graph = engine.get_graph()
    for target in graph.branches.values():
        assert target in graph.commits


def test_initialize_creates_root_on_main(engine):
    """A new engine has one root commit with main attached."""
    assert len(engine) == 1
    assert engine.get_branches() == ["main"]
    assert engine.get_head() == HeadRef(type=RefType.BRANCH, ref="main")

    root = engine.get_commit(engine.get_current_commit_id())
    assert root.parents == ()
    assert root.message == "Initial commit"
    assert engine.get_current_state() == world(0)


def test_initialize_normalizes_missing_position():
    engine = GitEngine({"flags": {}})
    assert engine.get_current_state()["playerPosition"] == {"x": 0, "z": 0}


def test_initialize_copies_snapshot():
    state = world(0)
    engine = GitEngine(state)
    state["flags"]["door"] = True
    assert engine.get_current_state()["flags"] == {}


def test_commit_advances_attached_branch(engine):
    root_id = engine.get_current_commit_id()
    commit_id = engine.commit("a", world(1))

    assert engine.get_graph().branches["main"] == commit_id
    assert engine.get_commit(commit_id).parents == (root_id,)
    assert engine.get_commit(commit_id).branch == "main"
    assert engine.get_current_state() == world(1)


def test_commit_ids_are_unique_for_identical_content():
    engine = GitEngine(world(0), clock=lambda: 5)
    first = engine.commit("same", world(1))
    engine.checkout(engine.get_commit(first).parents[0])
    second = engine.commit("same", world(1))
    assert first != second


def test_snapshots_are_not_aliased(engine):
    """Neither the committed input nor returned states share structure."""
    state = world(1)
    engine.commit("a", state)
    state["playerPosition"]["x"] = 99

    current = engine.get_current_state()
    assert current["playerPosition"]["x"] == 1

    current["flags"]["mutated"] = True
    assert engine.get_current_state()["flags"] == {}


def test_graph_view_commits_are_copies(engine):
    engine.commit("a", world(1))
    head = engine.get_current_commit_id()

    engine.get_graph().commits[head].snapshot["flags"]["door"] = True

    assert engine.get_current_state()["flags"] == {}
    assert engine.get_graph().commits[head].snapshot["flags"] == {}


def test_get_commit_returns_copy(engine):
    engine.commit("a", world(1))
    head = engine.get_current_commit_id()

    engine.get_commit(head).snapshot["playerPosition"]["x"] = 99

    assert engine.get_current_state()["playerPosition"]["x"] == 1
    assert engine.get_commit(head).snapshot["playerPosition"]["x"] == 1


def test_history_returns_copies(engine):
    engine.commit("a", world(1))

    engine.history()[0].snapshot["inventory"].append("key")

    assert engine.get_current_state()["inventory"] == []


def test_detached_commit_moves_only_head(engine):
    root_id = engine.get_current_commit_id()
    engine.commit("a", world(1))
    main_target = engine.get_graph().branches["main"]

    engine.checkout(root_id)
    floating = engine.commit("floating", world(5))

    head = engine.get_head()
    assert head.is_detached
    assert head.ref == floating
    assert engine.get_graph().branches["main"] == main_target
    assert engine.get_commit(floating).branch == "detached HEAD"


class TestCreateBranch:
    def test_branch_points_at_head(self, engine):
        commit_id = engine.commit("a", world(1))
        engine.create_branch("feat")
        assert engine.get_graph().branches["feat"] == commit_id
        # Creating a branch never moves HEAD
        assert engine.current_branch() == "main"

    def test_duplicate_branch_leaves_table_unchanged(self, engine):
        engine.create_branch("feat")
        before = engine.get_graph()

        with pytest.raises(DuplicateBranchError) as exc_info:
            engine.create_branch("feat")

        assert exc_info.value.kind == "DuplicateBranch"
        after = engine.get_graph()
        assert dict(after.branches) == dict(before.branches)
        assert dict(after.branch_colors) == dict(before.branch_colors)

    def test_colors_follow_palette_by_branch_count(self, engine):
        engine.create_branch("feat")
        engine.create_branch("fix")
        colors = engine.get_branch_colors()
        assert colors == {
            "main": BRANCH_PALETTE[0],
            "feat": BRANCH_PALETTE[1],
            "fix": BRANCH_PALETTE[2],
        }

    def test_custom_palette_cycles(self):
        engine = GitEngine(world(0), palette=["red", "blue"])
        engine.create_branch("a")
        engine.create_branch("b")
        assert engine.get_branch_colors() == {"main": "red", "a": "blue", "b": "red"}


class TestCheckout:
    def test_checkout_branch_attaches_head(self, engine):
        engine.create_branch("feat")
        state = engine.checkout("feat")
        assert engine.get_head() == HeadRef.attached("feat")
        assert state == world(0)

    def test_checkout_commit_detaches_head(self, engine):
        root_id = engine.get_current_commit_id()
        engine.commit("a", world(1))

        state = engine.checkout(root_id)
        assert engine.get_head() == HeadRef.detached(root_id)
        assert state == world(0)

    def test_checkout_accepts_unique_prefix(self, engine):
        commit_id = engine.commit("a", world(1))
        engine.checkout("main")
        engine.checkout(commit_id[:8])
        assert engine.get_head().ref == commit_id

    def test_checkout_is_idempotent(self, engine):
        engine.commit("a", world(1))
        engine.create_branch("feat")
        assert engine.checkout("feat") == engine.checkout("feat")

    def test_checkout_missing_target_leaves_head(self, engine):
        with pytest.raises(TargetNotFoundError):
            engine.checkout("nonexistent")
        assert engine.get_head() == HeadRef.attached("main")

    def test_checkout_never_changes_graph_shape(self, engine):
        root_id = engine.get_current_commit_id()
        engine.commit("a", world(1))
        engine.create_branch("feat")
        engine.checkout(root_id)
        engine.checkout("feat")
        assert len(engine) == 2
        assert sorted(engine.get_branches()) == ["feat", "main"]


class TestReset:
    def test_soft_and_hard_contrast(self, engine):
        """Soft keeps the live position, hard restores the snapshot exactly."""
        target = engine.commit("a", world(1, flags={"door": True}))
        engine.commit("b", world(2))
        live = world(9, 9)

        soft = engine.reset(target, "soft", live)
        expected = world(1, flags={"door": True})
        assert soft == {**expected, "playerPosition": {"x": 9, "z": 9}}

        hard = engine.reset(target, "hard", live)
        assert hard == expected

    def test_reset_moves_attached_branch(self, engine):
        first = engine.commit("a", world(1))
        engine.commit("b", world(2))
        engine.reset(first, "soft", world(3))
        assert engine.get_graph().branches["main"] == first
        assert engine.current_branch() == "main"

    def test_reset_moves_detached_head(self, engine):
        root_id = engine.get_current_commit_id()
        first = engine.commit("a", world(1))
        engine.checkout(first)
        engine.reset(root_id, "soft", world(0))
        assert engine.get_head() == HeadRef.detached(root_id)
        assert engine.get_graph().branches["main"] == first

    def test_hard_reset_head_parent_drops_newest(self, engine):
        middle = engine.commit("a", world(1))
        newest = engine.commit("b", world(2))

        state = engine.reset("HEAD~1", "hard", world(7))

        assert state == world(1)
        assert engine.get_current_commit_id() == middle
        assert engine.get_commit(newest) is None
        assert len(engine) == 2

    def test_soft_reset_keeps_unreachable_commits(self, engine):
        engine.commit("a", world(1))
        newest = engine.commit("b", world(2))
        engine.reset("HEAD~1", "soft", world(2))
        assert engine.get_commit(newest) is not None

    def test_head_and_head_zero(self, engine):
        commit_id = engine.commit("a", world(1))
        assert engine.resolve_target("HEAD") == commit_id
        assert engine.resolve_target("HEAD~0") == commit_id

    def test_head_tilde_follows_first_parent(self, engine):
        first = engine.commit("a", world(1))
        engine.create_branch("feat")
        engine.checkout("feat")
        engine.commit("b", world(2))
        engine.checkout("main")
        engine.commit("c", world(3))
        engine.merge("feat")
        # merge -> c -> a
        assert engine.resolve_target("HEAD~2") == first

    @pytest.mark.parametrize("target", ["HEAD~5", "HEAD~x", "HEAD~-1", "HEAD~"])
    def test_invalid_relative_target(self, engine, target):
        engine.commit("a", world(1))
        before = engine.get_graph()

        with pytest.raises(InvalidTargetError) as exc_info:
            engine.reset(target, "hard", world(0))

        assert isinstance(exc_info.value, TargetNotFoundError)
        after = engine.get_graph()
        assert after.head == before.head
        assert dict(after.branches) == dict(before.branches)
        assert len(engine) == 2

    def test_unknown_target(self, engine):
        with pytest.raises(TargetNotFoundError):
            engine.reset("deadbeefdead", "soft", world(0))
        assert engine.get_head() == HeadRef.attached("main")

    def test_unknown_mode(self, engine):
        with pytest.raises(InvalidTargetError):
            engine.reset("HEAD", "mixed", world(0))


class TestMerge:
    def test_merge_scenario(self):
        """main + feat diverge and are merged back into main."""
        engine = GitEngine({"pos": [0, 0]}, clock=make_clock())
        root_id = engine.get_current_commit_id()
        a = engine.commit("a", {"pos": [1, 0]})
        engine.create_branch("feat")
        engine.checkout("feat")
        b = engine.commit("b", {"pos": [2, 0]})
        engine.checkout("main")

        message = engine.merge("feat")

        assert "feat" in message
        assert "feat" not in engine.get_branches()
        assert "feat" not in engine.get_branch_colors()
        assert engine.get_head() == HeadRef.attached("main")

        merge_commit = engine.get_commit(engine.get_current_commit_id())
        assert merge_commit.parents == (a, b)
        assert [c.id for c in engine.history()] == [merge_commit.id, a, root_id]
        assert engine.get_current_state()["pos"] == [1, 0]
        assert_acyclic(engine)
        assert_branches_valid(engine)

    def test_merge_same_commit_is_noop(self, engine):
        engine.commit("a", world(1))
        engine.create_branch("feat")

        message = engine.merge("feat")

        assert "Already up to date" in message
        assert len(engine) == 2
        assert "feat" in engine.get_branches()

    def test_merge_missing_branch(self, engine):
        with pytest.raises(BranchNotFoundError):
            engine.merge("nope")
        assert len(engine) == 1

    def test_merge_while_detached_advances_head(self, engine):
        root_id = engine.get_current_commit_id()
        engine.create_branch("feat")
        engine.checkout("feat")
        feat_commit = engine.commit("b", world(2))
        engine.checkout(root_id)

        engine.merge("feat")

        head = engine.get_head()
        assert head.is_detached
        assert engine.get_commit(head.ref).parents == (root_id, feat_commit)


class TestGarbageCollect:
    def test_removes_commits_unreachable_from_branches(self, engine):
        root_id = engine.get_current_commit_id()
        engine.checkout(root_id)
        floating = engine.commit("floating", world(5))
        engine.checkout("main")

        removed = engine.garbage_collect()

        assert removed == [floating]
        assert engine.get_commit(floating) is None

    def test_keeps_current_detached_target(self, engine):
        root_id = engine.get_current_commit_id()
        engine.checkout(root_id)
        floating = engine.commit("floating", world(5))

        engine.reset("HEAD", "hard", world(5))

        assert engine.get_commit(floating) is not None
        assert engine.get_current_state() == world(5)

    def test_everything_left_is_reachable(self, engine):
        engine.commit("a", world(1))
        engine.create_branch("feat")
        engine.checkout("feat")
        engine.commit("b", world(2))
        engine.commit("c", world(3))
        engine.reset("HEAD~2", "hard", world(0))

        graph = engine.get_graph()
        roots = list(graph.branches.values())
        reachable = set()
        stack = list(roots)
        while stack:
            commit_id = stack.pop()
            if commit_id not in reachable:
                reachable.add(commit_id)
                stack.extend(graph.commits[commit_id].parents)
        assert reachable == set(graph.commits)
        assert len(engine) == 2


class TestExportImport:
    def build(self, engine):
        engine.commit("a", world(1))
        engine.create_branch("feat")
        engine.checkout("feat")
        engine.commit("b", world(2))
        engine.checkout("main")
        engine.commit("c", world(3))
        return engine

    def test_round_trip(self, engine):
        self.build(engine)
        document = engine.export()

        other = GitEngine(world(42))
        state = other.import_graph(document)

        assert state == engine.get_current_state()
        assert other.get_branches() == engine.get_branches()
        assert other.get_branch_colors() == engine.get_branch_colors()
        assert other.get_head() == engine.get_head()
        assert set(other.get_graph().commits) == set(engine.get_graph().commits)

    def test_round_trip_through_json(self, engine):
        self.build(engine)
        engine.checkout(engine.history()[1].id)

        other = GitEngine(world(0))
        other.import_graph(engine.export_json())

        assert other.get_head() == engine.get_head()
        assert other.get_current_state() == engine.get_current_state()

    def test_document_shape(self, engine):
        document = engine.export()
        assert set(document) == {"commits", "branches", "branchColors", "HEAD"}
        commit_id, record = document["commits"][0]
        assert record["id"] == commit_id
        assert record["parents"] == []
        assert document["branches"] == [["main", commit_id]]
        assert document["HEAD"] == {"type": "branch", "ref": "main"}

    def test_malformed_import_leaves_graph(self, engine):
        self.build(engine)
        before = engine.export()

        with pytest.raises(ImportMalformedError):
            engine.import_graph({"commits": [], "branches": [], "HEAD": {"type": "branch", "ref": "main"}})
        with pytest.raises(ImportMalformedError):
            engine.import_graph("{not json")
        with pytest.raises(ImportMalformedError):
            engine.import_graph(b"\xff\xfe{")

        assert engine.export() == before

    def test_engine_keeps_working_after_import(self, engine):
        self.build(engine)
        other = GitEngine(world(0))
        other.import_graph(engine.export())

        commit_id = other.commit("d", world(4))
        other.create_branch("after-import")

        assert other.get_graph().branches["main"] == commit_id
        assert other.get_branch_colors()["after-import"] == BRANCH_PALETTE[2]
        assert_acyclic(other)
