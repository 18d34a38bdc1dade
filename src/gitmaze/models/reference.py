"""HEAD reference model."""

from enum import Enum

from pydantic import BaseModel


class RefType(str, Enum):
    """What HEAD is pointing at."""

    BRANCH = "branch"
    DETACHED = "detached"


class HeadRef(BaseModel):
    """HEAD: either attached to a branch name or detached at a commit id."""

    type: RefType
    ref: str

    model_config = {"frozen": True}

    @classmethod
    def attached(cls, branch: str) -> "HeadRef":
        return cls(type=RefType.BRANCH, ref=branch)

    @classmethod
    def detached(cls, commit_id: str) -> "HeadRef":
        return cls(type=RefType.DETACHED, ref=commit_id)

    @property
    def is_detached(self) -> bool:
        return self.type == RefType.DETACHED
