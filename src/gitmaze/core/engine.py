"""In-memory commit graph engine for gitmaze."""

import copy
import hashlib
import json
import re
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from gitmaze.core.codec import Document, decode_document, export_document
from gitmaze.core.errors import (
    BranchNotFoundError,
    EmptyStoreError,
    InvalidTargetError,
    TargetNotFoundError,
)
from gitmaze.core.references import DEFAULT_BRANCH, ReferenceTable
from gitmaze.core.store import CommitStore
from gitmaze.models.commit import Commit
from gitmaze.models.reference import HeadRef

Snapshot = Dict[str, Any]

RESET_MODES = ("soft", "hard")
_RELATIVE_TARGET = re.compile(r"^HEAD~(.*)$")
_STEP_COUNT = re.compile(r"[0-9]+")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class GraphView:
    """Read-only view of the graph for layout and display code."""

    commits: Mapping[str, Commit]
    branches: Mapping[str, str]
    branch_colors: Mapping[str, str]
    head: HeadRef

    def head_commit_id(self) -> Optional[str]:
        if self.head.is_detached:
            return self.head.ref
        return self.branches.get(self.head.ref)


class GitEngine:
    """Owns the commit DAG, branch pointers and HEAD.

    All mutation goes through this class. Snapshots handed in are deep
    copied on the way in and every snapshot handed out is a fresh copy.
    """

    def __init__(
        self,
        initial_state: Snapshot,
        position_key: str = "playerPosition",
        palette: Optional[Sequence[str]] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.position_key = position_key
        self._palette = list(palette) if palette else None
        self._clock = clock
        self._sequence = 0
        self._store = CommitStore()

        state = self._clone(initial_state)
        if state.get(position_key) is None:
            state[position_key] = {"x": 0, "z": 0}

        root = self._make_commit("Initial commit", [], state, DEFAULT_BRANCH)
        self._store.add(root)
        self._refs = ReferenceTable(head=HeadRef.attached(DEFAULT_BRANCH), palette=palette)
        self._refs.add_branch(DEFAULT_BRANCH, root.id)
        logger.debug(f"Initialized graph with root commit {root.short_id}")

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    def get_current_commit_id(self) -> Optional[str]:
        commit_id = self._refs.resolve_head()
        return commit_id if commit_id in self._store else None

    def get_current_state(self) -> Snapshot:
        """Return a copy of the snapshot HEAD resolves to."""
        return self._clone(self._head_commit().snapshot)

    def get_branches(self) -> List[str]:
        return self._refs.branch_names()

    def get_branch_colors(self) -> Dict[str, str]:
        return dict(self._refs.colors)

    def get_head(self) -> HeadRef:
        return self._refs.head

    def current_branch(self) -> Optional[str]:
        return self._refs.current_branch()

    def get_commit(self, commit_id: str) -> Optional[Commit]:
        """Return a detached copy of a stored commit, or None."""
        commit = self._store.get(commit_id)
        return commit.model_copy(deep=True) if commit is not None else None

    def get_graph(self) -> GraphView:
        return GraphView(
            commits=MappingProxyType({c.id: c.model_copy(deep=True) for c in self._store}),
            branches=MappingProxyType(dict(self._refs.branches)),
            branch_colors=MappingProxyType(dict(self._refs.colors)),
            head=self._refs.head,
        )

    def history(self, limit: Optional[int] = None) -> List[Commit]:
        """First-parent history from HEAD, newest first."""
        head_id = self.get_current_commit_id()
        if head_id is None:
            return []
        commits = self._store.first_parent_history(head_id)
        if limit is not None:
            commits = commits[:limit]
        return [c.model_copy(deep=True) for c in commits]

    def __len__(self) -> int:
        return len(self._store)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def commit(self, message: str, state: Snapshot) -> str:
        """Record ``state`` as a child of HEAD and advance HEAD."""
        parent = self._head_commit()
        new_commit = self._make_commit(
            message, [parent.id], self._clone(state), self._branch_label()
        )
        self._store.add(new_commit)
        self._refs.move_head(new_commit.id)
        logger.debug(f"Committed {new_commit.short_id} on {self._branch_label()}: {message}")
        return new_commit.id

    def create_branch(self, name: str) -> None:
        """Create a branch at the commit HEAD resolves to."""
        commit_id = self._head_commit().id
        color = self._refs.add_branch(name, commit_id)
        logger.debug(f"Created branch {name} at {commit_id[:7]} ({color})")

    def checkout(self, target: str) -> Snapshot:
        """Attach HEAD to a branch or detach it at a commit."""
        if self._refs.has_branch(target):
            self._refs.attach(target)
            commit_id = self._refs.branch_target(target)
        else:
            commit_id = self._lookup_commit(target)
            if commit_id is None:
                raise TargetNotFoundError(target)
            self._refs.detach(commit_id)

        logger.debug(f"Checked out {target}")
        return self._clone(self._store.get(commit_id).snapshot)

    def reset(self, target: str, mode: str, current_state: Snapshot) -> Snapshot:
        """Move HEAD's pointer to ``target`` and return the state to load.

        ``soft`` keeps the player position from ``current_state``; ``hard``
        restores the target snapshot exactly and then collects commits no
        longer reachable.
        """
        if mode not in RESET_MODES:
            raise InvalidTargetError(target, f"Unknown reset mode '{mode}'")

        commit_id = self.resolve_target(target)
        self._refs.move_head(commit_id)

        state = self._clone(self._store.get(commit_id).snapshot)
        if mode == "soft":
            if self.position_key in current_state:
                state[self.position_key] = copy.deepcopy(current_state[self.position_key])
        else:
            self.garbage_collect()

        logger.debug(f"Reset ({mode}) to {commit_id[:7]}")
        return state

    def merge(self, branch: str) -> str:
        """Merge ``branch`` into HEAD and delete it.

        Only the graph is merged: the new commit carries HEAD's snapshot.
        """
        if not self._refs.has_branch(branch):
            raise BranchNotFoundError(branch)

        head = self._head_commit()
        other_id = self._refs.branch_target(branch)
        into = self._branch_label()
        if other_id == head.id:
            return f"Already up to date. '{branch}' and {into} point at the same commit."

        merge_commit = self._make_commit(
            f"Merge branch '{branch}' into {into}",
            [head.id, other_id],
            self._clone(head.snapshot),
            into,
        )
        self._store.add(merge_commit)
        self._refs.move_head(merge_commit.id)
        self._refs.delete_branch(branch)
        logger.debug(f"Merged {branch} into {into} as {merge_commit.short_id}")
        return f"Merged '{branch}' into {into} ({merge_commit.short_id}). Branch '{branch}' deleted."

    def garbage_collect(self) -> List[str]:
        """Remove every commit unreachable from a branch or a detached HEAD.

        Returns the removed commit ids.
        """
        roots = list(self._refs.branches.values())
        if self._refs.head.is_detached:
            roots.append(self._refs.head.ref)

        reachable = self._store.reachable_from(roots)
        removed = self._store.retain(reachable)
        if removed:
            logger.info(f"Garbage collected {len(removed)} unreachable commit(s)")
        return removed

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def export(self) -> Document:
        return export_document(self._store, self._refs)

    def export_json(self) -> str:
        return json.dumps(self.export())

    def import_graph(self, document: Union[str, bytes, Mapping[str, Any]]) -> Snapshot:
        """Replace the whole graph with ``document``.

        The live graph is only swapped once the document fully decoded,
        so a malformed document leaves it untouched.
        """
        store, refs = decode_document(document, palette=self._palette)
        self._store, self._refs = store, refs
        logger.info(f"Imported graph with {len(store)} commit(s), HEAD at {refs.head.ref}")
        return self.get_current_state()

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def resolve_target(self, target: str) -> str:
        """Resolve a commit id, ``HEAD`` or ``HEAD~n`` to a commit id."""
        if target == "HEAD":
            return self._head_commit().id

        match = _RELATIVE_TARGET.match(target)
        if match:
            steps_text = match.group(1)
            if not _STEP_COUNT.fullmatch(steps_text):
                raise InvalidTargetError(
                    target, f"Invalid target '{target}': '{steps_text}' is not a number."
                )
            ancestor = self._store.first_parent_ancestor(
                self._head_commit().id, int(steps_text)
            )
            if ancestor is None:
                raise InvalidTargetError(
                    target, f"Invalid target '{target}': history is not that long."
                )
            return ancestor

        commit_id = self._lookup_commit(target)
        if commit_id is None:
            raise TargetNotFoundError(target, f"Target '{target}' is not a valid commit.")
        return commit_id

    def _lookup_commit(self, target: str) -> Optional[str]:
        if target in self._store:
            return target
        return self._store.find_by_prefix(target)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _head_commit(self) -> Commit:
        commit_id = self._refs.resolve_head()
        commit = self._store.get(commit_id) if commit_id is not None else None
        if commit is None:
            raise EmptyStoreError("HEAD does not resolve to a commit")
        return commit

    def _branch_label(self) -> str:
        branch = self._refs.current_branch()
        return branch if branch is not None else "detached HEAD"

    def _make_commit(
        self, message: str, parents: List[str], state: Snapshot, branch: str
    ) -> Commit:
        timestamp = self._clock()
        commit_id = None
        while commit_id is None or commit_id in self._store:
            self._sequence += 1
            payload = json.dumps(
                {
                    "parents": parents,
                    "message": message,
                    "snapshot": state,
                    "timestamp": timestamp,
                    "sequence": self._sequence,
                },
                sort_keys=True,
                default=str,
            )
            commit_id = hashlib.sha1(payload.encode("utf-8")).hexdigest()
        return Commit(
            id=commit_id,
            message=message,
            parents=parents,
            timestamp=timestamp,
            branch=branch,
            snapshot=state,
        )

    @staticmethod
    def _clone(state: Mapping[str, Any]) -> Snapshot:
        return copy.deepcopy(dict(state))
