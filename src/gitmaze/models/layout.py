"""Layout node model for graph visualization."""

from pydantic import BaseModel


class LayoutNode(BaseModel):
    """Position of one commit in the drawn graph."""

    id: str
    lane: int
    depth: int
    x: float
    y: float

    model_config = {"frozen": True}
