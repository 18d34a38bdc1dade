"""Commit model for the gitmaze commit graph."""

from typing import Any, Dict, Tuple

from pydantic import BaseModel


class Commit(BaseModel):
    """An immutable node in the commit DAG."""

    id: str
    message: str
    parents: Tuple[str, ...] = ()
    timestamp: int
    branch: str = ""  # Branch active at creation, cosmetic only
    snapshot: Dict[str, Any]

    model_config = {"frozen": True}

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def short_id(self) -> str:
        return self.id[:7]
