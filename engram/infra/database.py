"""Database connection management for KùzuDB."""

from __future__ import annotations

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from ..domain.exceptions import StoreUnavailable

if TYPE_CHECKING:
    import kuzu

logger = logging.getLogger(__name__)

# Default retry settings for opening the database
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.5  # seconds


class DatabaseConnection:
    """Manages a read-write KùzuDB connection and the Engram schema.

    KùzuDB allows a single read-write process per database directory, so
    opening is retried with backoff before giving up with StoreUnavailable.
    """

    def __init__(
        self,
        db_path: Path,
        embedding_dimension: int,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the database connection.

        Args:
            db_path: Path to the database directory.
            embedding_dimension: Dimension of embedding vectors.
            max_retries: Maximum attempts to open the database.
            retry_delay: Initial delay between attempts in seconds.
        """
        self._db_path = db_path
        self._embedding_dimension = embedding_dimension
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._db: kuzu.Database | None = None
        self._conn: kuzu.Connection | None = None
        self._vector_index_ready = False

    @property
    def embedding_dimension(self) -> int:
        return self._embedding_dimension

    @property
    def vector_index_ready(self) -> bool:
        """Whether the native vector index could be created."""
        return self._vector_index_ready

    @property
    def conn(self) -> kuzu.Connection:
        """Get the connection, opening the database and schema if needed."""
        if self._conn is None:
            self._open()
        return self._conn  # type: ignore[return-value]

    def _open(self) -> None:
        import kuzu

        last_error: Exception | None = None
        retry_delay = self._retry_delay

        for attempt in range(self._max_retries):
            try:
                logger.info(f"Opening database at: {self._db_path}")
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._db = kuzu.Database(str(self._db_path))
                self._conn = kuzu.Connection(self._db)
                self._init_schema()
                return
            except Exception as e:
                last_error = e
                self._conn = None
                self._db = None
                if attempt < self._max_retries - 1:
                    logger.warning(
                        f"Failed to open database (attempt {attempt + 1}/"
                        f"{self._max_retries}): {e}. Retrying in {retry_delay}s..."
                    )
                    time.sleep(retry_delay)
                    retry_delay *= 1.5

        raise StoreUnavailable(
            f"Failed to open database after {self._max_retries} attempts. "
            f"Another process may be using it. Last error: {last_error}"
        ) from last_error

    def _init_schema(self) -> None:
        """Initialize the database schema."""
        logger.info("Initializing database schema...")
        dim = self._embedding_dimension
        assert self._conn is not None

        self._conn.execute(f"""
            CREATE NODE TABLE IF NOT EXISTS Memory (
                id STRING,
                content STRING,
                embedding FLOAT[{dim}],
                concept_type STRING,
                status STRING,
                subject_key STRING,
                created_at TIMESTAMP,
                updated_at TIMESTAMP,
                PRIMARY KEY (id)
            )
        """)

        self._conn.execute("""
            CREATE NODE TABLE IF NOT EXISTS Entity (
                name STRING,
                created_at TIMESTAMP,
                PRIMARY KEY (name)
            )
        """)

        # Typed memory-to-memory edges (kind holds the RelationKind value)
        self._conn.execute("""
            CREATE REL TABLE IF NOT EXISTS RELATION (
                FROM Memory TO Memory,
                kind STRING,
                reason STRING,
                weight DOUBLE,
                created_at TIMESTAMP
            )
        """)

        self._conn.execute("""
            CREATE REL TABLE IF NOT EXISTS MENTIONS (
                FROM Memory TO Entity
            )
        """)

        self._create_vector_index()
        logger.info("Database schema initialized successfully")

    def _create_vector_index(self) -> None:
        """Create vector index for memory embeddings."""
        assert self._conn is not None
        try:
            self._conn.execute("""
                CALL CREATE_VECTOR_INDEX(
                    'Memory',
                    'memory_embedding_idx',
                    'embedding',
                    metric := 'cosine'
                )
            """)
            self._vector_index_ready = True
            logger.info("Vector index created successfully")
        except Exception as e:
            # Index might already exist
            message = str(e).lower()
            self._vector_index_ready = "already exists" in message
            logger.debug(f"Vector index creation skipped: {e}")

    def execute(self, query: str, parameters: dict | None = None) -> kuzu.QueryResult:
        """Execute a query on the database.

        Args:
            query: Cypher query string.
            parameters: Optional query parameters.

        Returns:
            Query result.
        """
        if parameters:
            return self.conn.execute(query, parameters=parameters)
        return self.conn.execute(query)

    @contextmanager
    def transaction(self) -> Generator[DatabaseConnection, None, None]:
        """Run the enclosed statements in one explicit transaction.

        Usage:
            with db.transaction():
                db.execute("CREATE ...")
                db.execute("MATCH ... SET ...")

        Rolls back on any exception and re-raises it.
        """
        self.execute("BEGIN TRANSACTION")
        try:
            yield self
        except BaseException:
            try:
                self.execute("ROLLBACK")
            except Exception as rollback_error:
                # KùzuDB already rolled back a transaction whose statement failed
                logger.debug(f"Rollback skipped: {rollback_error}")
            raise
        else:
            self.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn = None
        if self._db is not None:
            self._db = None
        logger.info("Database connection closed")
