"""SQLite document store for novels (save / load / list / delete)."""

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Optional

from config.exceptions import PersistenceError
from models.chapter import Chapter
from models.character import Character
from models.enums import Language, NovelStatus, NovelType
from models.novel import NovelDocument, NovelSettings, UsageStats

logger = logging.getLogger(__name__)

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS novels (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT DEFAULT 'idle',
    settings TEXT NOT NULL,
    current_chapter_id INTEGER,
    input_tokens INTEGER DEFAULT 0,
    output_tokens INTEGER DEFAULT 0,
    consistency_report TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS chapters (
    novel_id INTEGER NOT NULL REFERENCES novels(id) ON DELETE CASCADE,
    chapter_id INTEGER NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    summary TEXT DEFAULT '',
    content TEXT DEFAULT '',
    is_done BOOLEAN DEFAULT FALSE,
    volume_id INTEGER,
    volume_title TEXT,
    consistency_analysis TEXT,
    PRIMARY KEY (novel_id, chapter_id)
);

CREATE TABLE IF NOT EXISTS characters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    novel_id INTEGER NOT NULL REFERENCES novels(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    role TEXT DEFAULT '',
    description TEXT DEFAULT '',
    relationships TEXT DEFAULT ''
);
"""

# Indexes added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chapters_novel ON chapters(novel_id)",
    "CREATE INDEX IF NOT EXISTS idx_characters_novel ON characters(novel_id, position)",
]


def _settings_to_json(settings: NovelSettings) -> str:
    data = asdict(settings)
    data["language"] = settings.language.value
    data["novel_type"] = settings.novel_type.value
    return json.dumps(data, ensure_ascii=False)


def _settings_from_json(raw: str) -> NovelSettings:
    data = json.loads(raw or "{}")
    known = NovelSettings.__dataclass_fields__
    data = {k: v for k, v in data.items() if k in known}
    if "language" in data:
        data["language"] = Language(data["language"])
    if "novel_type" in data:
        data["novel_type"] = NovelType(data["novel_type"])
    return NovelSettings(**data)


class Database:
    """SQLite-backed persistence collaborator for novel documents.

    Methods are synchronous; async callers go through ``asyncio.to_thread``.
    The in-flight ``is_generating`` flag is never persisted.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_CREATE_TABLES_SQL)
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes)."""
        with self._get_conn() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    # ---- Document operations ----

    def save_novel(self, doc: NovelDocument) -> int:
        """Insert or replace a whole document. Returns its id.

        Raises:
            PersistenceError: If the write fails.
        """
        try:
            with self._get_conn() as conn:
                novel_id = doc.id
                if novel_id is None or not self._exists(conn, novel_id):
                    novel_id = novel_id or self._next_id(conn)
                    conn.execute(
                        "INSERT INTO novels (id, title, status, settings, current_chapter_id, "
                        "input_tokens, output_tokens, consistency_report) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        (novel_id, doc.title, doc.status.value, _settings_to_json(doc.settings),
                         doc.current_chapter_id, doc.usage.input_tokens,
                         doc.usage.output_tokens, doc.consistency_report),
                    )
                else:
                    conn.execute(
                        "UPDATE novels SET title=?, status=?, settings=?, current_chapter_id=?, "
                        "input_tokens=?, output_tokens=?, consistency_report=?, "
                        "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                        (doc.title, doc.status.value, _settings_to_json(doc.settings),
                         doc.current_chapter_id, doc.usage.input_tokens,
                         doc.usage.output_tokens, doc.consistency_report, novel_id),
                    )

                conn.execute("DELETE FROM chapters WHERE novel_id = ?", (novel_id,))
                conn.executemany(
                    "INSERT INTO chapters (novel_id, chapter_id, title, summary, content, is_done, "
                    "volume_id, volume_title, consistency_analysis) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (novel_id, c.id, c.title, c.summary, c.content, c.is_done,
                         c.volume_id, c.volume_title, c.consistency_analysis)
                        for c in doc.chapters
                    ],
                )

                conn.execute("DELETE FROM characters WHERE novel_id = ?", (novel_id,))
                conn.executemany(
                    "INSERT INTO characters (novel_id, position, name, role, description, relationships) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (novel_id, pos, ch.name, ch.role, ch.description, ch.relationships)
                        for pos, ch in enumerate(doc.characters)
                    ],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save novel: {e}", {"novel_id": doc.id}) from e

        logger.debug("Novel %d saved (%d chapters)", novel_id, len(doc.chapters))
        return novel_id

    def load_novel(self, novel_id: int) -> Optional[NovelDocument]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM novels WHERE id = ?", (novel_id,)).fetchone()
            if not row:
                return None
            chapter_rows = conn.execute(
                "SELECT * FROM chapters WHERE novel_id = ? ORDER BY chapter_id",
                (novel_id,),
            ).fetchall()
            character_rows = conn.execute(
                "SELECT * FROM characters WHERE novel_id = ? ORDER BY position",
                (novel_id,),
            ).fetchall()

        return NovelDocument(
            id=row["id"],
            settings=_settings_from_json(row["settings"]),
            chapters=tuple(self._row_to_chapter(r) for r in chapter_rows),
            characters=tuple(
                Character(
                    name=r["name"], role=r["role"] or "",
                    description=r["description"] or "",
                    relationships=r["relationships"] or "",
                )
                for r in character_rows
            ),
            current_chapter_id=row["current_chapter_id"],
            status=NovelStatus(row["status"]),
            usage=UsageStats(row["input_tokens"] or 0, row["output_tokens"] or 0),
            consistency_report=row["consistency_report"],
            last_saved=self._parse_timestamp(row["updated_at"]),
        )

    def list_novels(self) -> list[dict]:
        """Return ``[{id, title, updated_at}]`` ordered by id."""
        with self._get_conn() as conn:
            rows = conn.execute("SELECT id, title, updated_at FROM novels ORDER BY id").fetchall()
            return [
                {"id": r["id"], "title": r["title"], "updated_at": self._parse_timestamp(r["updated_at"])}
                for r in rows
            ]

    def delete_novel(self, novel_id: int):
        """Delete a novel with its chapters and characters."""
        with self._get_conn() as conn:
            conn.execute("DELETE FROM characters WHERE novel_id = ?", (novel_id,))
            conn.execute("DELETE FROM chapters WHERE novel_id = ?", (novel_id,))
            conn.execute("DELETE FROM novels WHERE id = ?", (novel_id,))
        logger.info("Novel %d and all associated data deleted", novel_id)

    # ---- Helpers ----

    @staticmethod
    def _exists(conn: sqlite3.Connection, novel_id: int) -> bool:
        return conn.execute("SELECT 1 FROM novels WHERE id = ?", (novel_id,)).fetchone() is not None

    @staticmethod
    def _next_id(conn: sqlite3.Connection) -> int:
        # Lowest available ID starting from 1
        existing = {r["id"] for r in conn.execute("SELECT id FROM novels").fetchall()}
        next_id = 1
        while next_id in existing:
            next_id += 1
        return next_id

    @staticmethod
    def _parse_timestamp(value) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value))
        except ValueError:
            return None

    @staticmethod
    def _row_to_chapter(row) -> Chapter:
        return Chapter(
            id=row["chapter_id"],
            title=row["title"],
            summary=row["summary"] or "",
            content=row["content"] or "",
            is_done=bool(row["is_done"]),
            volume_id=row["volume_id"],
            volume_title=row["volume_title"],
            consistency_analysis=row["consistency_analysis"],
        )
