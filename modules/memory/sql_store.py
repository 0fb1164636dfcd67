"""
Memory System - SQLite Storage

Memory rows plus an FTS5 search index over their content.

The index is maintained explicitly rather than with triggers: every
mutation that changes the set of rows (insert, delete) writes both
tables inside one transaction, so the index always holds exactly the
content currently present in the memory table.
"""

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, List, Dict, Any, Iterator

from modules.memory.base import (
    MemoryStore, Memory, Sector, SweepResult,
    MemoryStoreError, MemorySearchError, IndexConsistencyError
)
from utils.config import MemoryConfig
from utils.logger import get_logger

logger = get_logger('memory.sql_store')

IN_MEMORY = ":memory:"


def build_fts_query(query: str) -> str:
    """
    Turn free text into an FTS5 prefix query.

    Everything but letters, digits and whitespace is dropped, and each
    remaining token is quoted and given a prefix wildcard. Returns an
    empty string when nothing searchable is left.

    Example:
        "dark-mode, please!" -> '"darkmode"* "please"*'
    """
    if not query:
        return ""

    cleaned = "".join(ch for ch in query if ch.isalnum() or ch.isspace())
    terms = cleaned.split()

    return " ".join(f'"{term}"*' for term in terms)


class SQLStore(MemoryStore):
    """SQLite storage for memories with a one-to-one FTS5 index"""

    def __init__(
        self,
        db_path: Optional[str] = None,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        self.config = config or MemoryConfig()
        self.db_path = str(db_path or self.config.db_path)
        self.clock = clock
        self.conn: Optional[sqlite3.Connection] = None

        if not self._is_in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"SQLStore created (path={self.db_path})")

    @property
    def _is_in_memory(self) -> bool:
        return self.db_path == IN_MEMORY

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection"""
        if self.conn is None:
            # Autocommit mode: transactions are opened explicitly
            self.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 5000")
            if not self._is_in_memory:
                self.conn.execute("PRAGMA journal_mode = WAL")
        return self.conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements atomically"""
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def initialize(self):
        """Create tables and indexes, then verify the search index"""
        if self.config.backup_on_startup:
            self.backup()

        logger.info("Initializing memory schema...")

        try:
            with self._transaction() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS memories (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        owner TEXT NOT NULL,
                        topic_key TEXT,
                        content TEXT NOT NULL,
                        sector TEXT NOT NULL CHECK(sector IN ('semantic', 'episodic')),
                        salience REAL NOT NULL DEFAULT 1.0,
                        created_at REAL NOT NULL,
                        accessed_at REAL NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_owner
                    ON memories(owner)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_sector
                    ON memories(owner, sector)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_salience
                    ON memories(salience)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_accessed
                    ON memories(owner, accessed_at DESC)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_created
                    ON memories(created_at)
                """)

                # rowid of the index entry == memories.id
                conn.execute("""
                    CREATE VIRTUAL TABLE IF NOT EXISTS memories_fts USING fts5(content)
                """)
        except sqlite3.OperationalError as e:
            raise MemoryStoreError(f"Failed to initialize memory schema: {e}") from e

        self.verify_index()
        logger.info("Memory schema initialized successfully")

    def backup(self) -> Optional[Path]:
        """
        Copy an existing database to <db_path>.bak.

        Uses SQLite's online backup, so pages still sitting in the
        write-ahead log are included.
        """
        if self._is_in_memory or self.conn is not None:
            return None

        source = Path(self.db_path)
        if not source.exists():
            return None

        target = source.with_name(source.name + ".bak")
        src = dst = None
        try:
            src = sqlite3.connect(str(source))
            dst = sqlite3.connect(str(target))
            src.backup(dst)
            logger.info(f"Database backed up to {target}")
            return target
        except sqlite3.Error as e:
            logger.warning(f"Failed to backup database: {e}")
            return None
        finally:
            if dst is not None:
                dst.close()
            if src is not None:
                src.close()

    # Mutations

    def insert(
        self,
        owner: str,
        content: str,
        sector: Sector,
        topic_key: Optional[str] = None
    ) -> int:
        """Store a memory and index its content"""
        now = self.clock()
        sector = Sector(sector)

        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO memories (
                    owner, topic_key, content, sector, salience,
                    created_at, accessed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                owner,
                topic_key,
                content,
                sector.value,
                self.config.initial_salience,
                now,
                now
            ))
            memory_id = cursor.lastrowid

            conn.execute(
                "INSERT INTO memories_fts(rowid, content) VALUES (?, ?)",
                (memory_id, content)
            )

        logger.debug(f"[{owner}] Stored {sector.value} memory {memory_id}: {content[:50]}")
        return memory_id

    def touch(self, memory_id: int, owner: Optional[str] = None) -> bool:
        """
        Reinforce a memory.

        Refreshes accessed_at and raises salience by the configured boost,
        capped at max_salience. A single UPDATE, so it is atomic with
        respect to a concurrent sweep.

        Args:
            memory_id: Memory to reinforce
            owner: If given, only touch the memory when it belongs to owner

        Returns:
            True if a row was updated
        """
        query = """
            UPDATE memories
            SET accessed_at = ?,
                salience = MIN(salience + ?, ?)
            WHERE id = ?
        """
        params = [
            self.clock(),
            self.config.salience_boost,
            self.config.max_salience,
            memory_id
        ]

        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)

        cursor = self._get_connection().execute(query, params)
        return cursor.rowcount > 0

    def decay_sweep(
        self,
        rate: float,
        min_salience: float,
        grace_seconds: Optional[float] = None
    ) -> SweepResult:
        """
        Fade and prune memories across all owners.

        1. salience *= rate for every memory created at or before
           now - grace_seconds
        2. delete every memory with salience < min_salience, along with
           its index entry

        Both steps run in one transaction.
        """
        if not 0.0 < rate <= 1.0:
            raise ValueError(f"Decay rate must be in (0, 1], got {rate}")

        if grace_seconds is None:
            grace_seconds = self.config.decay_grace_seconds
        cutoff = self.clock() - grace_seconds

        with self._transaction() as conn:
            decayed = conn.execute("""
                UPDATE memories
                SET salience = salience * ?
                WHERE created_at <= ?
            """, (rate, cutoff)).rowcount

            conn.execute("""
                DELETE FROM memories_fts
                WHERE rowid IN (SELECT id FROM memories WHERE salience < ?)
            """, (min_salience,))

            deleted = conn.execute(
                "DELETE FROM memories WHERE salience < ?",
                (min_salience,)
            ).rowcount

        logger.info(f"Decay sweep: {decayed} decayed, {deleted} deleted")
        return SweepResult(decayed=decayed, deleted=deleted)

    # Queries

    def search(self, owner: str, query: str, limit: int = 3) -> List[Memory]:
        """
        Search an owner's memories through the FTS5 index.

        Returns an empty list when the query has nothing searchable in it.

        Raises:
            MemorySearchError: If the index cannot be queried
        """
        fts_query = build_fts_query(query)
        if not fts_query:
            return []

        try:
            rows = self._get_connection().execute("""
                SELECT m.*
                FROM memories_fts
                JOIN memories m ON m.id = memories_fts.rowid
                WHERE memories_fts MATCH ?
                    AND m.owner = ?
                ORDER BY rank
                LIMIT ?
            """, (fts_query, owner, limit)).fetchall()
        except sqlite3.Error as e:
            raise MemorySearchError(f"FTS search failed for {fts_query!r}: {e}") from e

        results = [self._row_to_memory(row) for row in rows]
        logger.debug(f"[{owner}] FTS search found {len(results)} results for: {fts_query}")
        return results

    def recent(self, owner: str, limit: int = 5) -> List[Memory]:
        """Memories for owner, most recently accessed first"""
        rows = self._get_connection().execute("""
            SELECT * FROM memories
            WHERE owner = ?
            ORDER BY accessed_at DESC, id DESC
            LIMIT ?
        """, (owner, limit)).fetchall()

        return [self._row_to_memory(row) for row in rows]

    def list_for_display(self, owner: str, limit: int = 10) -> List[Memory]:
        """Memories for owner, newest first (read-only view)"""
        rows = self._get_connection().execute("""
            SELECT * FROM memories
            WHERE owner = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        """, (owner, limit)).fetchall()

        return [self._row_to_memory(row) for row in rows]

    def get_memory(self, memory_id: int, owner: Optional[str] = None) -> Optional[Memory]:
        """Get a specific memory by ID"""
        query = "SELECT * FROM memories WHERE id = ?"
        params = [memory_id]

        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)

        row = self._get_connection().execute(query, params).fetchone()

        if row:
            return self._row_to_memory(row)
        return None

    def count(self, owner: Optional[str] = None) -> int:
        """Number of stored memories, optionally for one owner"""
        conn = self._get_connection()

        if owner is None:
            row = conn.execute("SELECT COUNT(*) AS count FROM memories").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM memories WHERE owner = ?",
                (owner,)
            ).fetchone()

        return row['count']

    def get_stats(self) -> Dict[str, Any]:
        """Get database statistics"""
        conn = self._get_connection()

        row = conn.execute("""
            SELECT
                COUNT(*) AS total,
                COUNT(DISTINCT owner) AS owners,
                AVG(salience) AS avg_salience,
                SUM(CASE WHEN sector = 'semantic' THEN 1 ELSE 0 END) AS semantic,
                SUM(CASE WHEN sector = 'episodic' THEN 1 ELSE 0 END) AS episodic
            FROM memories
        """).fetchone()

        indexed = conn.execute("SELECT COUNT(*) AS count FROM memories_fts").fetchone()

        return {
            'total_memories': row['total'],
            'owners': row['owners'],
            'semantic': row['semantic'] or 0,
            'episodic': row['episodic'] or 0,
            'average_salience': round(row['avg_salience'] or 0.0, 4),
            'indexed': indexed['count']
        }

    # Index consistency

    def verify_index(self, raise_on_error: bool = False) -> bool:
        """
        Check that the search index mirrors the memory table.

        Args:
            raise_on_error: Raise IndexConsistencyError instead of returning False

        Returns:
            True if consistent
        """
        conn = self._get_connection()

        missing = conn.execute("""
            SELECT COUNT(*) AS count FROM memories
            WHERE id NOT IN (SELECT rowid FROM memories_fts)
        """).fetchone()['count']

        orphaned = conn.execute("""
            SELECT COUNT(*) AS count FROM memories_fts
            WHERE rowid NOT IN (SELECT id FROM memories)
        """).fetchone()['count']

        mismatched = conn.execute("""
            SELECT COUNT(*) AS count
            FROM memories m
            JOIN memories_fts f ON f.rowid = m.id
            WHERE f.content != m.content
        """).fetchone()['count']

        if missing or orphaned or mismatched:
            message = (
                f"Search index out of sync: {missing} unindexed, "
                f"{orphaned} orphaned, {mismatched} stale"
            )
            logger.critical(message)
            if raise_on_error:
                raise IndexConsistencyError(message)
            return False

        return True

    def rebuild_index(self) -> int:
        """Repopulate the search index from the memory table"""
        with self._transaction() as conn:
            conn.execute("DELETE FROM memories_fts")
            conn.execute("""
                INSERT INTO memories_fts(rowid, content)
                SELECT id, content FROM memories
            """)
            indexed = conn.execute(
                "SELECT COUNT(*) AS count FROM memories_fts"
            ).fetchone()['count']

        logger.warning(f"Search index rebuilt ({indexed} entries)")
        return indexed

    # Helper methods

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert DB row to Memory object"""
        return Memory(
            id=row['id'],
            owner=row['owner'],
            content=row['content'],
            sector=Sector(row['sector']),
            salience=row['salience'],
            created_at=row['created_at'],
            accessed_at=row['accessed_at'],
            topic_key=row['topic_key']
        )

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed")
