"""Content sinks — release stored bytes when a leaf node is deleted.

Byte transfer is owned by the surrounding application; these sinks only
implement the release half that the core calls during cascades.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class NullContentSink:
    """Sink that keeps nothing. Used when content lives elsewhere."""

    async def release(self, content_ref: str) -> None:
        logger.debug("NullContentSink ignoring release of %r", content_ref)


class LocalDiskContentSink:
    """Releases blobs stored under *root* at ``root / content_ref``.

    Security: ``path_for()`` ensures every resolved path stays within
    *root*, so a crafted ref cannot unlink files elsewhere.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def path_for(self, content_ref: str) -> Path:
        """Resolve *content_ref* to an absolute path inside ``root``."""
        candidate = (self.root / content_ref).resolve()
        if os.path.commonpath([str(self.root), str(candidate)]) != str(self.root):
            raise ValidationError(
                f"Content reference escapes storage root: {content_ref!r}",
                content_ref=content_ref,
            )
        return candidate

    async def release(self, content_ref: str) -> None:
        """Unlink the blob for *content_ref*. Missing blobs are ignored."""
        if not content_ref:
            return
        path = self.path_for(content_ref)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.debug("Released %s", path)
