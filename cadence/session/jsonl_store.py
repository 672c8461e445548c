"""File-backed session store using one JSONL file per session."""

import json
from datetime import datetime
from pathlib import Path

from loguru import logger

from cadence.session.models import Session, SessionMessage, SessionStatus, SessionSummary
from cadence.session.store import SessionStore


class JsonlSessionStore(SessionStore):
    """
    Session store on the local filesystem.

    Directory layout:
        <root>/
        ├── sessions/        # One file per session
        │   └── {session_id}.jsonl   (metadata line, then one line per message)
        └── summaries/
            └── {session_id}.json
    """

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()
        self.sessions_dir = self.root / "sessions"
        self.summaries_dir = self.root / "summaries"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self.summaries_dir.mkdir(parents=True, exist_ok=True)

    # ── sessions ────────────────────────────────────────────────

    async def get_session(self, session_id: str) -> Session | None:
        path = self._session_path(session_id)
        if not path.exists():
            return None
        return self._read_metadata(path)

    async def save_session(self, session: Session) -> None:
        """Rewrite the metadata line, keeping the messages that follow it."""
        path = self._session_path(session.id)
        message_lines: list[str] = []
        if path.exists():
            with open(path) as f:
                message_lines = [line for line in f.readlines()[1:] if line.strip()]

        metadata_line = {"_type": "metadata", **session.to_dict()}
        tmp = path.with_suffix(".jsonl.tmp")
        with open(tmp, "w") as f:
            f.write(json.dumps(metadata_line, ensure_ascii=False) + "\n")
            f.writelines(message_lines)
        tmp.replace(path)

    async def sessions_for_project(self, project_id: str) -> list[Session]:
        return [s for s in self._scan() if s.project_id == project_id]

    async def sessions_pending_summarisation(self, older_than: datetime) -> list[Session]:
        return [
            s for s in self._scan()
            if s.status == SessionStatus.PAUSED and s.last_active_at <= older_than
        ]

    async def sessions_with_status(self, status: SessionStatus) -> list[Session]:
        return [s for s in self._scan() if s.status == status]

    # ── messages ────────────────────────────────────────────────

    async def append_message(self, message: SessionMessage) -> None:
        path = self._session_path(message.session_id)
        if not path.exists():
            raise FileNotFoundError(f"No session file for {message.session_id}")
        with open(path, "a") as f:
            f.write(json.dumps(message.to_dict(), ensure_ascii=False) + "\n")

    async def messages_for_session(self, session_id: str) -> list[SessionMessage]:
        path = self._session_path(session_id)
        if not path.exists():
            return []

        messages = []
        with open(path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                if data.get("_type") == "metadata":
                    continue
                messages.append(SessionMessage.from_dict(data))
        return sorted(messages, key=lambda m: m.sequence)

    # ── summaries ───────────────────────────────────────────────

    async def get_summary(self, session_id: str) -> SessionSummary | None:
        path = self._summary_path(session_id)
        if not path.exists():
            return None
        return SessionSummary.from_dict(json.loads(path.read_text()))

    async def save_summary(self, summary: SessionSummary) -> None:
        path = self._summary_path(summary.session_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))
        tmp.replace(path)

    # ── internal helpers ────────────────────────────────────────

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.jsonl"

    def _summary_path(self, session_id: str) -> Path:
        return self.summaries_dir / f"{session_id}.json"

    def _read_metadata(self, path: Path) -> Session | None:
        with open(path) as f:
            first_line = f.readline().strip()
        if not first_line:
            return None
        data = json.loads(first_line)
        if data.pop("_type", None) != "metadata":
            return None
        return Session.from_dict(data)

    def _scan(self) -> list[Session]:
        """Load every session's metadata, skipping unreadable files."""
        sessions = []
        for path in self.sessions_dir.glob("*.jsonl"):
            try:
                session = self._read_metadata(path)
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")
                continue
            if session:
                sessions.append(session)
        return sorted(sessions, key=lambda s: s.created_at)
