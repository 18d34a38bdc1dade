"""Text command surface: turns terminal input into engine calls."""

import shlex
from typing import Callable, Dict, List, Optional

from loguru import logger

from gitmaze.core.engine import GitEngine, Snapshot
from gitmaze.core.errors import GitMazeError
from gitmaze.core.storage import SaveFile

HELP_TEXT = [
    "usage: git <command> [<args>]",
    "Available commands:",
    "  branch [<name>]               List branches, or create one",
    "  checkout [-b] <target>        Switch to a branch or commit",
    '  commit [-m "<message>"]       Record the current state',
    "  merge <branch>                Merge a branch into HEAD",
    "  reset [--soft|--hard] [<target>]  Move HEAD (default: HEAD~1)",
    "  log                           Show first-parent history",
    "  status                        Show where HEAD is",
    "  push                          Save the graph",
    "  pull                          Load the saved graph",
]


class UsageError(Exception):
    """Input that parsed but is missing a required argument."""


class Terminal:
    """Executes one command line at a time against a GitEngine.

    Keeps the live state (what the player currently sees) so commit and
    reset have something to work from. Engine failures are rendered as
    ``Error: ...`` lines and never propagate.
    """

    def __init__(
        self,
        git: GitEngine,
        save_file: Optional[SaveFile] = None,
        current_state: Optional[Snapshot] = None,
    ):
        self.git = git
        self.save_file = save_file
        self.current_state: Snapshot = (
            current_state if current_state is not None else git.get_current_state()
        )
        self.history: List[str] = []
        self._handlers: Dict[str, Callable[[List[str]], List[str]]] = {
            "help": self._help,
            "branch": self._branch,
            "checkout": self._checkout,
            "commit": self._commit,
            "merge": self._merge,
            "reset": self._reset,
            "log": self._log,
            "status": self._status,
            "push": self._push,
            "pull": self._pull,
        }

    def set_state(self, state: Snapshot) -> None:
        """Replace the live state (e.g. after the player moved)."""
        self.current_state = state

    def execute(self, cmd: str) -> List[str]:
        """Run ``cmd`` and return the lines it printed."""
        self.history.append(f"> {cmd}")
        try:
            lines = self._dispatch(cmd)
        except (GitMazeError, UsageError) as e:
            logger.debug(f"Command failed: {cmd!r}: {e}")
            lines = [f"Error: {e}"]
        self.history.extend(lines)
        return lines

    def _dispatch(self, cmd: str) -> List[str]:
        try:
            parts = shlex.split(cmd)
        except ValueError as e:
            raise UsageError(f"Could not parse command: {e}") from e

        if not parts:
            return []
        if parts == ["help"]:
            return self._help([])
        if parts[0] == "git" and len(parts) > 1 and parts[1] in self._handlers:
            return self._handlers[parts[1]](parts[2:])
        return [f"Command not recognized: {cmd}. Type 'help' for a list of commands."]

    def _help(self, args: List[str]) -> List[str]:
        return list(HELP_TEXT)

    def _branch(self, args: List[str]) -> List[str]:
        if args:
            self.git.create_branch(args[0])
            return [f"Branch '{args[0]}' created."]

        current = self.git.current_branch()
        return [
            f"* {name}" if name == current else f"  {name}"
            for name in self.git.get_branches()
        ]

    def _checkout(self, args: List[str]) -> List[str]:
        if not args:
            raise UsageError("Checkout target required")

        lines = []
        if args[0] == "-b":
            if len(args) < 2:
                raise UsageError("Branch name required")
            target = args[1]
            # Create first; a failure here skips the checkout entirely
            self.git.create_branch(target)
            lines.append(f"Created branch '{target}'")
        else:
            target = args[0]

        self.current_state = self.git.checkout(target)
        lines.append(f"Switched to '{target}'")
        return lines

    def _commit(self, args: List[str]) -> List[str]:
        message = "New commit"
        if "-m" in args:
            rest = args[args.index("-m") + 1:]
            if rest:
                message = " ".join(rest)

        commit_id = self.git.commit(message, self.current_state)
        return [f"[{commit_id[:7]}] {message}"]

    def _merge(self, args: List[str]) -> List[str]:
        if not args:
            raise UsageError("Merge target branch required")
        return [self.git.merge(args[0])]

    def _reset(self, args: List[str]) -> List[str]:
        mode = "hard" if "--hard" in args else "soft"
        targets = [a for a in args if not a.startswith("--")]
        target = targets[0] if targets else "HEAD~1"

        self.current_state = self.git.reset(target, mode, self.current_state)
        return [f"Reset to {target} ({mode})"]

    def _log(self, args: List[str]) -> List[str]:
        lines = []
        graph = self.git.get_graph()
        for commit in self.git.history():
            labels = [name for name, target in graph.branches.items() if target == commit.id]
            suffix = f" ({', '.join(labels)})" if labels else ""
            lines.append(f"{commit.short_id}{suffix} {commit.message}")
        return lines

    def _status(self, args: List[str]) -> List[str]:
        head = self.git.get_head()
        commit_id = self.git.get_current_commit_id() or ""
        if head.is_detached:
            where = f"HEAD detached at {commit_id[:7]}"
        else:
            where = f"On branch {head.ref}"
        return [where, f"{len(self.git)} commit(s), {len(self.git.get_branches())} branch(es)"]

    def _push(self, args: List[str]) -> List[str]:
        if self.save_file is None:
            raise UsageError("No save file configured")
        self.save_file.save(self.git.export())
        return [f"Graph saved to {self.save_file.path}"]

    def _pull(self, args: List[str]) -> List[str]:
        if self.save_file is None:
            raise UsageError("No save file configured")
        document = self.save_file.load()
        if document is None:
            raise UsageError(f"No saved graph found at {self.save_file.path}")
        self.current_state = self.git.import_graph(document)
        return [f"Graph restored from {self.save_file.path}"]
