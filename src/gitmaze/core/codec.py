"""Conversion between the live commit graph and a transport document.

The document is a plain JSON-compatible dict::

    {
        "commits": [[id, {id, message, parents, timestamp, branch, snapshot}], ...],
        "branches": [[name, commit_id], ...],
        "branchColors": [[name, color], ...],
        "HEAD": {"type": "branch" | "detached", "ref": name_or_id},
    }
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from gitmaze.core.errors import ImportMalformedError
from gitmaze.core.references import ReferenceTable
from gitmaze.core.store import CommitStore
from gitmaze.models.commit import Commit
from gitmaze.models.reference import HeadRef

Document = Dict[str, Any]


class CommitRecord(BaseModel):
    id: str
    message: str
    parents: List[str] = []
    timestamp: int
    branch: str = ""
    snapshot: Dict[str, Any]


class GraphDocument(BaseModel):
    """Schema of an exported graph."""

    commits: List[Tuple[str, CommitRecord]]
    branches: List[Tuple[str, str]]
    branch_colors: List[Tuple[str, str]] = Field(default_factory=list, alias="branchColors")
    head: HeadRef = Field(alias="HEAD")

    model_config = {"populate_by_name": True}


def export_document(store: CommitStore, refs: ReferenceTable) -> Document:
    """Serialize the whole graph as one JSON-compatible dict."""
    return {
        "commits": [[c.id, c.model_dump(mode="json")] for c in store],
        "branches": [[name, target] for name, target in refs.branches.items()],
        "branchColors": [
            [name, refs.colors[name]] for name in refs.branches if name in refs.colors
        ],
        "HEAD": refs.head.model_dump(mode="json"),
    }


def parse_document(raw: Union[str, bytes, Mapping[str, Any]]) -> GraphDocument:
    """Validate the document structure without touching any live graph."""
    try:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        return GraphDocument.model_validate(raw)
    except (ValueError, TypeError) as e:
        # JSONDecodeError, UnicodeDecodeError and ValidationError are all ValueErrors
        raise ImportMalformedError(f"Malformed graph document: {e}") from e


def _topological_order(records: Dict[str, CommitRecord]) -> List[CommitRecord]:
    """Order records parents-first, keeping document order where possible."""
    ordered: List[CommitRecord] = []
    state: Dict[str, int] = {}  # 1 = on the stack, 2 = emitted

    for root in records:
        if root in state:
            continue
        state[root] = 1
        stack = [(root, iter(records[root].parents))]
        while stack:
            commit_id, parents = stack[-1]
            for parent in parents:
                if parent not in records:
                    raise ImportMalformedError(
                        f"Commit {commit_id} references unknown parent {parent}"
                    )
                if state.get(parent) == 1:
                    raise ImportMalformedError(f"Cycle detected at commit {parent}")
                if parent not in state:
                    state[parent] = 1
                    stack.append((parent, iter(records[parent].parents)))
                    break
            else:
                stack.pop()
                state[commit_id] = 2
                ordered.append(records[commit_id])
    return ordered


def decode_document(
    raw: Union[str, bytes, Mapping[str, Any]],
    palette: Optional[Sequence[str]] = None,
) -> Tuple[CommitStore, ReferenceTable]:
    """Build a fresh store and reference table from a document.

    Raises ImportMalformedError on any structural problem; nothing is
    built unless the whole document checks out.
    """
    document = parse_document(raw)

    records: Dict[str, CommitRecord] = {}
    for commit_id, record in document.commits:
        if commit_id != record.id:
            raise ImportMalformedError(
                f"Commit key {commit_id} does not match record id {record.id}"
            )
        if commit_id in records:
            raise ImportMalformedError(f"Duplicate commit id {commit_id}")
        records[commit_id] = record

    store = CommitStore()
    for record in _topological_order(records):
        store.add(Commit(**record.model_dump()))

    branches: Dict[str, str] = {}
    for name, target in document.branches:
        if name in branches:
            raise ImportMalformedError(f"Duplicate branch {name}")
        if target not in store:
            raise ImportMalformedError(f"Branch {name} points at unknown commit {target}")
        branches[name] = target

    refs = ReferenceTable(head=document.head, palette=palette)
    colors = dict(document.branch_colors)
    for name, target in branches.items():
        # Documents without colors get them assigned in branch order
        color = colors.get(name) or refs.next_color()
        refs.branches[name] = target
        refs.colors[name] = color

    if refs.resolve_head() not in store:
        raise ImportMalformedError(f"HEAD ({document.head.ref}) does not resolve to a commit")

    return store, refs
