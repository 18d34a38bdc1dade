"""Branch pointers, branch colors and HEAD."""

from typing import Dict, List, Optional, Sequence

from gitmaze.core.errors import BranchNotFoundError, DuplicateBranchError
from gitmaze.models.reference import HeadRef

DEFAULT_BRANCH = "main"

# Cycled through by branch count at creation time
BRANCH_PALETTE = [
    "#4CAF50",  # Green
    "#2196F3",  # Blue
    "#FF9800",  # Orange
    "#9C27B0",  # Purple
    "#F44336",  # Red
    "#00BCD4",  # Cyan
    "#E91E63",  # Pink
    "#795548",  # Brown
]


class ReferenceTable:
    """Named branch pointers plus the HEAD reference."""

    def __init__(
        self,
        head: HeadRef,
        branches: Optional[Dict[str, str]] = None,
        colors: Optional[Dict[str, str]] = None,
        palette: Optional[Sequence[str]] = None,
    ):
        self.head = head
        self.branches: Dict[str, str] = dict(branches or {})
        self.colors: Dict[str, str] = dict(colors or {})
        self.palette = list(palette or BRANCH_PALETTE)
        if not self.palette:
            raise ValueError("Branch palette must not be empty")

    def next_color(self) -> str:
        return self.palette[len(self.branches) % len(self.palette)]

    def has_branch(self, name: str) -> bool:
        return name in self.branches

    def branch_target(self, name: str) -> str:
        try:
            return self.branches[name]
        except KeyError:
            raise BranchNotFoundError(name) from None

    def add_branch(self, name: str, commit_id: str) -> str:
        """Create a branch and give it the next palette color."""
        if name in self.branches:
            raise DuplicateBranchError(name)
        color = self.next_color()
        self.branches[name] = commit_id
        self.colors[name] = color
        return color

    def delete_branch(self, name: str) -> None:
        if name not in self.branches:
            raise BranchNotFoundError(name)
        del self.branches[name]
        self.colors.pop(name, None)

    def branch_names(self) -> List[str]:
        return list(self.branches)

    def current_branch(self) -> Optional[str]:
        """Name of the branch HEAD is attached to, or None when detached."""
        return None if self.head.is_detached else self.head.ref

    def resolve_head(self) -> Optional[str]:
        if self.head.is_detached:
            return self.head.ref
        return self.branches.get(self.head.ref)

    def attach(self, name: str) -> None:
        if name not in self.branches:
            raise BranchNotFoundError(name)
        self.head = HeadRef.attached(name)

    def detach(self, commit_id: str) -> None:
        self.head = HeadRef.detached(commit_id)

    def move_head(self, commit_id: str) -> None:
        """Point whatever HEAD follows at ``commit_id``."""
        if self.head.is_detached:
            self.head = HeadRef.detached(commit_id)
        else:
            self.branches[self.head.ref] = commit_id
