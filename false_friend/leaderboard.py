from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .results import RunResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_LIMIT = 10
MAX_NAME_LENGTH = 16


class LeaderboardError(RuntimeError):
    """Score storage could not be read or written."""


@dataclass(frozen=True, slots=True)
class ScoreEntry:
    player_name: str
    score: int
    rounds_cleared: int
    friends_clicked: int
    avg_reaction_ms: int | None
    config_key: str
    created_at_utc: str


@dataclass(frozen=True, slots=True)
class ScoreSubmission:
    player_name: str
    score: int
    rounds_cleared: int
    config_key: str
    friends_clicked: int = 0
    avg_reaction_ms: int | None = None


class Leaderboard(Protocol):
    def list_top_scores(self, config_key: str, limit: int) -> list[ScoreEntry]:
        """Best first; equal scores ordered by earliest submission."""
        ...

    def submit_score(self, submission: ScoreSubmission) -> None:
        ...


def normalize_player_name(raw: str) -> str:
    name = " ".join(str(raw).split())
    if not name:
        raise ValueError("player name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"player name must be at most {MAX_NAME_LENGTH} characters")
    return name


def qualifies_for_leaderboard(score: int, entries: list[ScoreEntry], *, limit: int = DEFAULT_LIMIT) -> bool:
    """A run qualifies if the table has room or it beats at least one entry."""

    if len(entries) < limit:
        return True
    return any(score > e.score for e in entries)


def submission_from_result(result: RunResult, *, player_name: str) -> ScoreSubmission:
    avg = None if result.friends_clicked == 0 else int(round(result.avg_reaction_ms))
    return ScoreSubmission(
        player_name=normalize_player_name(player_name),
        score=int(result.score),
        rounds_cleared=int(result.rounds_cleared),
        config_key=result.score_key,
        friends_clicked=int(result.friends_clicked),
        avg_reaction_ms=avg,
    )


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS score_entry (
                id INTEGER PRIMARY KEY,
                config_key TEXT NOT NULL,
                player_name TEXT NOT NULL,
                score INTEGER NOT NULL CHECK (score >= 0),
                rounds_cleared INTEGER NOT NULL CHECK (rounds_cleared >= 0),
                friends_clicked INTEGER NOT NULL CHECK (friends_clicked >= 0),
                avg_reaction_ms INTEGER,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_score_entry_rank "
            "ON score_entry(config_key, score DESC, created_at_utc ASC, id ASC);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteLeaderboard:
    """Local score table, one connection per call."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def list_top_scores(self, config_key: str, limit: int = DEFAULT_LIMIT) -> list[ScoreEntry]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT player_name, score, rounds_cleared, friends_clicked,
                       avg_reaction_ms, config_key, created_at_utc
                FROM score_entry
                WHERE config_key = ?
                ORDER BY score DESC, created_at_utc ASC, id ASC
                LIMIT ?
                """,
                (str(config_key), int(limit)),
            ).fetchall()
        except sqlite3.Error as exc:
            raise LeaderboardError(f"could not read scores: {exc}") from exc
        finally:
            conn.close()

        return [
            ScoreEntry(
                player_name=str(r[0]),
                score=int(r[1]),
                rounds_cleared=int(r[2]),
                friends_clicked=int(r[3]),
                avg_reaction_ms=None if r[4] is None else int(r[4]),
                config_key=str(r[5]),
                created_at_utc=str(r[6]),
            )
            for r in rows
        ]

    def submit_score(self, submission: ScoreSubmission) -> None:
        name = normalize_player_name(submission.player_name)
        if submission.score < 0 or submission.rounds_cleared < 0 or submission.friends_clicked < 0:
            raise ValueError("score, rounds_cleared and friends_clicked must be >= 0")

        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO score_entry(
                        config_key, player_name, score, rounds_cleared,
                        friends_clicked, avg_reaction_ms, created_at_utc
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(submission.config_key),
                        name,
                        int(submission.score),
                        int(submission.rounds_cleared),
                        int(submission.friends_clicked),
                        submission.avg_reaction_ms,
                        _utc_now_iso(),
                    ),
                )
        except sqlite3.Error as exc:
            raise LeaderboardError(f"could not save score: {exc}") from exc
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            return open_db(self._path)
        except (OSError, sqlite3.Error) as exc:
            raise LeaderboardError(f"could not open {self._path}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class LeaderboardStatus:
    ok: bool
    message: str
    entries: tuple[ScoreEntry, ...] = ()
    qualifies: bool = False


class LeaderboardService:
    """Boundary wrapper for the UI: never raises, reports failures as a status."""

    def __init__(self, backend: Leaderboard, *, limit: int = DEFAULT_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._backend = backend
        self._limit = int(limit)

    @property
    def limit(self) -> int:
        return self._limit

    def load(self, config_key: str, *, score: int | None = None) -> LeaderboardStatus:
        try:
            entries = self._backend.list_top_scores(config_key, self._limit)
        except LeaderboardError as exc:
            logger.warning(f"[leaderboard] list failed for {config_key}: {exc}")
            return LeaderboardStatus(ok=False, message="Scores unavailable")

        qualifies = False if score is None else qualifies_for_leaderboard(score, entries, limit=self._limit)
        return LeaderboardStatus(ok=True, message="", entries=tuple(entries), qualifies=qualifies)

    def submit(self, submission: ScoreSubmission) -> LeaderboardStatus:
        try:
            self._backend.submit_score(submission)
        except ValueError as exc:
            return LeaderboardStatus(ok=False, message=str(exc))
        except LeaderboardError as exc:
            logger.warning(f"[leaderboard] submit failed for {submission.config_key}: {exc}")
            return LeaderboardStatus(ok=False, message="Could not save score")

        logger.info(f"[leaderboard] saved {submission.player_name!r} score={submission.score}")
        refreshed = self.load(submission.config_key)
        if not refreshed.ok:
            return LeaderboardStatus(ok=True, message="Score saved")
        return LeaderboardStatus(ok=True, message="Score saved", entries=refreshed.entries)
