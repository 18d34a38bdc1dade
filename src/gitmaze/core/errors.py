"""Errors raised by the gitmaze engine.

Every engine operation either returns its result or raises exactly one
of these, leaving the graph as it was before the call.
"""


class GitMazeError(Exception):
    """Base class for all engine failures."""

    kind = "GitMazeError"


class DuplicateBranchError(GitMazeError):
    kind = "DuplicateBranch"

    def __init__(self, name: str):
        super().__init__(f"Branch already exists: {name}")
        self.name = name


class BranchNotFoundError(GitMazeError):
    kind = "BranchNotFound"

    def __init__(self, name: str):
        super().__init__(f"Branch '{name}' not found.")
        self.name = name


class TargetNotFoundError(GitMazeError):
    kind = "TargetNotFound"

    def __init__(self, target: str, message: str = ""):
        super().__init__(message or f"Target '{target}' not found.")
        self.target = target


class InvalidTargetError(TargetNotFoundError):
    """A relative target like ``HEAD~n`` that cannot be resolved."""

    kind = "InvalidTarget"


class EmptyStoreError(GitMazeError):
    kind = "EmptyStore"

    def __init__(self, message: str = "No commits in the store"):
        super().__init__(message)


class ImportMalformedError(GitMazeError):
    kind = "ImportMalformed"
