"""
Workspace Manager - Isolated, disposable scratch directories for renders.

Each render gets its own directory named after a random session token, so
concurrent renders never share files. Cleanup is best-effort: failures are
logged and never propagated to the caller.
"""

import asyncio
import logging
import os
import shutil
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

logger = logging.getLogger(__name__)


SESSION_DIR_PREFIX = "video-"


@dataclass(frozen=True)
class RenderSession:
    """A single render's private workspace."""

    session_id: str
    workspace_root: Path


class WorkspaceManager:
    """
    Allocates and removes per-request workspaces.

    Layout:
        {root_directory}/
        ├── video-{session_id}/
        │   ├── audio.mp3
        │   ├── image_000.png
        │   ├── filelist.txt
        │   └── output.mp4
        └── ...
    """

    def __init__(self, root_directory: str):
        self.root_directory = Path(root_directory)
        # Sessions opened by this process; other workers may share the root
        self._open_sessions: dict[str, RenderSession] = {}

    def ensure_root(self) -> None:
        """Create the root directory if it doesn't exist."""
        os.makedirs(self.root_directory, exist_ok=True)

    def open_session(self) -> RenderSession:
        """
        Create a new, uniquely named workspace.

        Synchronous: nothing can cancel the caller between creating the
        directory and receiving the session.
        """
        session_id = uuid.uuid4().hex
        workspace_root = self.root_directory / f"{SESSION_DIR_PREFIX}{session_id}"
        workspace_root.mkdir(parents=True, exist_ok=False)

        session = RenderSession(session_id=session_id, workspace_root=workspace_root)
        self._open_sessions[session_id] = session

        logger.debug(f"[{session_id}] Workspace created: {workspace_root}")
        return session

    async def materialize(self, session: RenderSession, data: bytes, name: str) -> Path:
        """
        Write bytes to a file inside the session workspace.

        Args:
            session: Owning session
            data: File contents
            name: Plain file name (no directory components)

        Returns:
            Path of the written file
        """
        if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
            raise WorkspaceError(f"Invalid workspace file name: {name!r}")

        path = session.workspace_root / name

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, path.write_bytes, data)
        return path

    def close_session(self, session: RenderSession) -> bool:
        """
        Remove the session workspace and everything in it.

        Idempotent and never raises.

        Returns:
            True if the workspace is gone afterwards
        """
        if not session.workspace_root.exists():
            self._open_sessions.pop(session.session_id, None)
            return True

        try:
            shutil.rmtree(session.workspace_root)
        except OSError as e:
            logger.warning(f"[{session.session_id}] Cleanup error: {e}")
            return False

        self._open_sessions.pop(session.session_id, None)
        logger.debug(f"[{session.session_id}] Workspace removed")
        return True

    @asynccontextmanager
    async def session(self) -> AsyncIterator[RenderSession]:
        """
        Open a session and guarantee its removal on every exit path,
        including errors and cancellation.
        """
        render_session = self.open_session()
        try:
            yield render_session
        finally:
            logger.info(f"[{render_session.session_id}] Cleaning up...")
            self.close_session(render_session)

    def purge_sessions(self) -> int:
        """
        Remove the workspaces this manager opened and never closed.

        Directories belonging to other processes sharing the root are left
        alone. Returns how many workspaces were removed.
        """
        removed = 0
        for session in list(self._open_sessions.values()):
            existed = session.workspace_root.exists()
            if self.close_session(session) and existed:
                removed += 1
        return removed


class WorkspaceError(Exception):
    """Exception raised when a workspace operation fails."""
    pass
