"""Commit storage: the arena of commit records keyed by id."""

from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Set

from gitmaze.core.errors import ImportMalformedError, TargetNotFoundError
from gitmaze.models.commit import Commit


class CommitStore:
    """Insertion-ordered mapping of commit id to commit.

    Append-only apart from ``retain``, which garbage collection uses to
    drop unreachable commits.
    """

    def __init__(self, commits: Optional[Iterable[Commit]] = None):
        self._commits: Dict[str, Commit] = {}
        for commit in commits or ():
            self.add(commit)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._commits

    def __len__(self) -> int:
        return len(self._commits)

    def __iter__(self) -> Iterator[Commit]:
        return iter(list(self._commits.values()))

    def ids(self) -> List[str]:
        return list(self._commits)

    def get(self, commit_id: str) -> Optional[Commit]:
        return self._commits.get(commit_id)

    def add(self, commit: Commit) -> None:
        """Insert a commit whose parents are already stored."""
        if commit.id in self._commits:
            raise ImportMalformedError(f"Commit already stored: {commit.id}")
        missing = [p for p in commit.parents if p not in self._commits]
        if missing:
            raise TargetNotFoundError(
                missing[0],
                f"Commit {commit.id} references unknown parents: {', '.join(missing)}",
            )
        self._commits[commit.id] = commit

    def find_by_prefix(self, prefix: str, min_length: int = 4) -> Optional[str]:
        """Return the single commit id starting with ``prefix``, if unique."""
        if len(prefix) < min_length:
            return None
        matches = [cid for cid in self._commits if cid.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    def first_parent_ancestor(self, commit_id: str, steps: int) -> Optional[str]:
        """Walk ``steps`` first-parent links back from ``commit_id``."""
        current = commit_id
        for _ in range(steps):
            commit = self._commits.get(current)
            if commit is None or not commit.parents:
                return None
            current = commit.parents[0]
        return current if current in self._commits else None

    def first_parent_history(self, commit_id: str) -> List[Commit]:
        """Commits on the first-parent chain from ``commit_id``, newest first."""
        history = []
        commit = self._commits.get(commit_id)
        while commit is not None:
            history.append(commit)
            commit = self._commits.get(commit.parents[0]) if commit.parents else None
        return history

    def reachable_from(self, roots: Iterable[str]) -> Set[str]:
        """Breadth-first walk over parents from every root."""
        seen: Set[str] = set()
        queue = deque(r for r in roots if r in self._commits)
        while queue:
            commit_id = queue.popleft()
            if commit_id in seen:
                continue
            seen.add(commit_id)
            for parent in self._commits[commit_id].parents:
                if parent not in seen and parent in self._commits:
                    queue.append(parent)
        return seen

    def retain(self, keep: Set[str]) -> List[str]:
        """Drop every commit not in ``keep``; return the removed ids."""
        removed = [cid for cid in self._commits if cid not in keep]
        for commit_id in removed:
            del self._commits[commit_id]
        return removed
