"""Local save file used by ``git push`` / ``git pull``."""

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from gitmaze.core.errors import ImportMalformedError


class SaveFile:
    """Stores one exported graph document as JSON on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, document: Dict[str, Any]) -> None:
        """Write the document, replacing any previous save in one step."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Saved graph to {self.path}")

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the saved document, or None when nothing was saved yet."""
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ImportMalformedError(f"Save file {self.path} is not valid JSON: {e}") from e
