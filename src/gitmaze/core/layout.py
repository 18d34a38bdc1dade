"""Lane/depth layout for drawing the commit graph.

Oldest commits sit at depth 0 and depth grows with distance from the
roots. Lanes are reused across depths so the drawing stays narrow.
"""

import zlib
from typing import Dict, List, Mapping, Set, Tuple

from gitmaze.core.engine import GraphView
from gitmaze.models.commit import Commit
from gitmaze.models.layout import LayoutNode

LANE_WIDTH = 30.0
DEPTH_HEIGHT = 40.0


def _compute_depths(commits: Mapping[str, Commit]) -> Dict[str, int]:
    """Longest distance from a root for every commit (iterative DFS)."""
    depths: Dict[str, int] = {}
    for start in commits:
        if start in depths:
            continue
        stack = [start]
        while stack:
            commit_id = stack[-1]
            parents = [p for p in commits[commit_id].parents if p in commits]
            pending = [p for p in parents if p not in depths]
            if pending:
                stack.extend(pending)
                continue
            stack.pop()
            depths[commit_id] = 1 + max((depths[p] for p in parents), default=-1)
    return depths


def _reachable(graph: GraphView) -> Set[str]:
    roots = list(graph.branches.values())
    head_id = graph.head_commit_id()
    if head_id is not None:
        roots.append(head_id)

    seen: Set[str] = set()
    stack = [r for r in roots if r in graph.commits]
    while stack:
        commit_id = stack.pop()
        if commit_id in seen:
            continue
        seen.add(commit_id)
        stack.extend(p for p in graph.commits[commit_id].parents if p in graph.commits)
    return seen


def jitter(commit_id: str) -> Tuple[float, float]:
    """Small fixed (dx, dy) offset derived from the commit id."""
    digest = zlib.crc32(commit_id.encode("utf-8"))
    dx = ((digest % 10) - 5) * 0.6
    dy = (((digest >> 2) % 10) - 5) * 0.8
    return dx, dy


def calculate_layout(
    graph: GraphView,
    reachable_only: bool = False,
    lane_width: float = LANE_WIDTH,
    depth_height: float = DEPTH_HEIGHT,
) -> List[LayoutNode]:
    """Assign a lane and depth to every commit in ``graph``.

    Commits are placed in timestamp order (store order breaks ties). A
    commit keeps its first parent's lane when that lane is still free at
    its depth, otherwise it takes the lowest free lane at that depth.
    """
    commits = dict(graph.commits)
    if reachable_only:
        keep = _reachable(graph)
        commits = {cid: c for cid, c in commits.items() if cid in keep}

    depths = _compute_depths(commits)
    ordered = sorted(commits.values(), key=lambda c: c.timestamp)

    lanes: Dict[str, int] = {}
    used_at_depth: Dict[int, Set[int]] = {}
    for commit in ordered:
        depth = depths[commit.id]
        used = used_at_depth.setdefault(depth, set())

        lane = -1
        if commit.parents:
            parent_lane = lanes.get(commit.parents[0])
            if parent_lane is not None and parent_lane not in used:
                lane = parent_lane

        if lane == -1:
            lane = 0
            while lane in used:
                lane += 1

        lanes[commit.id] = lane
        used.add(lane)

    nodes = []
    for commit in ordered:
        lane, depth = lanes[commit.id], depths[commit.id]
        dx, dy = jitter(commit.id)
        nodes.append(
            LayoutNode(
                id=commit.id,
                lane=lane,
                depth=depth,
                x=lane * lane_width + dx,
                y=depth * depth_height + dy,
            )
        )
    return nodes
