"""
PostgreSQL source of truth for expected subscribers.

Provides a read-only connection to the parents database and a lazy,
forward-only query yielding one AuthoritativeRow per parent whose grades
overlap a mailing list's grade filter.
"""

import logging
from collections.abc import Iterator, Sequence
from typing import Any, Optional

import psycopg
from psycopg.conninfo import make_conninfo

from octopus_sync.sync.contact import AuthoritativeRow

# Parents whose grade array overlaps the requested grades
GRADES_QUERY = """
SELECT email, first_name, last_name
FROM parents
WHERE grade && %s::int[]
"""

# Rows fetched per round trip by the server-side cursor
DEFAULT_FETCH_SIZE = 500

DEFAULT_PORT = 5432

logger = logging.getLogger(__name__)


class DataSourceError(Exception):
    """Raised when the source query or a row scan fails."""

    pass


def build_conninfo(
    user: str,
    password: str,
    host: str,
    dbname: str,
    port: int | str = DEFAULT_PORT,
) -> str:
    """
    Build a libpq connection string.

    Values are quoted by psycopg, so passwords may contain any character.
    """
    return make_conninfo(
        host=host, port=str(port), dbname=dbname, user=user, password=password
    )


class ParentDatabase:
    """
    Read-only access to the parents table.

    A single connection is used for the whole run; each query streams its
    rows through a named (server-side) cursor, so a large grade filter is
    never materialized in memory.

    Usage:
        with ParentDatabase(conninfo) as db:
            for row in db.query_grades([3, 4]):
                ...
    """

    def __init__(self, conninfo: str, fetch_size: int = DEFAULT_FETCH_SIZE):
        """
        Initialize the database wrapper.

        Args:
            conninfo: libpq connection string (see build_conninfo)
            fetch_size: Rows fetched per round trip while streaming
        """
        self.conninfo = conninfo
        self.fetch_size = fetch_size
        self._connection: Optional[psycopg.Connection[Any]] = None
        self._query_count = 0

    def connect(self) -> psycopg.Connection[Any]:
        """
        Open the connection if not already open.

        Returns:
            The open connection

        Raises:
            DataSourceError: If the connection cannot be established
        """
        if self._connection is not None:
            return self._connection
        try:
            conn = psycopg.connect(self.conninfo)
            conn.read_only = True
        except psycopg.Error as e:
            raise DataSourceError(f"Failed to connect to database: {e}") from e
        self._connection = conn
        logger.debug("Connected to source database")
        return conn

    @property
    def connection(self) -> psycopg.Connection[Any]:
        """Open connection, connecting on first use."""
        if self._connection is None:
            return self.connect()
        return self._connection

    def query_grades(self, grades: Sequence[int]) -> Iterator[AuthoritativeRow]:
        """
        Stream parents whose grades overlap the given grades.

        The returned iterator is lazy and can be consumed once.

        Args:
            grades: Grade tags of a mailing list

        Yields:
            AuthoritativeRow per matching parent

        Raises:
            DataSourceError: If the query or reading a row fails
        """
        self._query_count += 1
        cursor_name = f"grades_{self._query_count}"
        conn = self.connection

        try:
            with conn.transaction():
                with conn.cursor(name=cursor_name) as cur:
                    cur.itersize = self.fetch_size
                    cur.execute(GRADES_QUERY, (list(grades),))
                    for record in cur:
                        yield self._to_row(record)
        except psycopg.Error as e:
            raise DataSourceError(f"Grade query {list(grades)} failed: {e}") from e

    @staticmethod
    def _to_row(record: Sequence[Any]) -> AuthoritativeRow:
        if len(record) != 3:
            raise DataSourceError(f"Expected 3 columns, got {len(record)}")
        email, first_name, last_name = record
        return AuthoritativeRow.from_db_row(email, first_name, last_name)

    def close(self) -> None:
        """Close the connection."""
        if self._connection is not None:
            try:
                self._connection.close()
            finally:
                self._connection = None
            logger.debug("Closed source database connection")

    def __enter__(self) -> "ParentDatabase":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self._connection is not None else "closed"
        return f"ParentDatabase({state})"
