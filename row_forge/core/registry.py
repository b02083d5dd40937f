"""SQL registry - named command texts loaded from .sql files.

Sessions consult the registry when a procedure is executed: a registered
name runs the file's SQL, anything else is handed to the adapter as a
native stored procedure call. This lets SQLite, which has no stored
procedures, serve the procedure API from files.

Namespace convention:
    sql/employee/by_department.sql -> "employee.by_department"
    sql/reports/monthly/totals.sql -> "reports.monthly.totals"
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path

from row_forge.core.exceptions import DuplicateQueryError, QueryNotFoundError
from row_forge.utils.logging import get_logger

logger = get_logger(__name__)


class SQLRegistry(Mapping[str, str]):
    """Read-only mapping of query name -> SQL text.

    Args:
        root_dir: Root directory searched recursively for ``*.sql`` files.
            A missing directory gives an empty registry.
        queries: Extra name -> SQL pairs, e.g. for tests or generated SQL.

    Raises:
        DuplicateQueryError: If two sources resolve to the same name.
    """

    def __init__(
        self,
        root_dir: Path | str | None = None,
        queries: Mapping[str, str] | None = None,
    ) -> None:
        self._root_dir = Path(root_dir) if root_dir is not None else None
        self._queries: dict[str, str] = {}
        self._sources: dict[str, str] = {}
        if self._root_dir is not None:
            self._load_directory(self._root_dir)
        for name, sql in (queries or {}).items():
            self._add(name, sql.strip(), "<inline>")
        logger.debug("Registered %d queries", len(self._queries))

    def _add(self, name: str, sql: str, source: str) -> None:
        if name in self._queries:
            raise DuplicateQueryError(name, self._sources[name], source)
        self._queries[name] = sql
        self._sources[name] = source

    def _load_directory(self, root: Path) -> None:
        if not root.exists():
            return
        for sql_file in sorted(root.rglob("*.sql")):
            parts = list(sql_file.relative_to(root).parts)
            parts[-1] = parts[-1].removesuffix(".sql")
            self._add(".".join(parts), sql_file.read_text(encoding="utf-8").strip(), str(sql_file))

    def get_sql(self, query_name: str) -> str:
        """Look up SQL text by namespace-qualified name.

        Raises:
            QueryNotFoundError: If no query matches the given name.
        """
        try:
            return self._queries[query_name]
        except KeyError:
            raise QueryNotFoundError(query_name) from None

    def source_of(self, query_name: str) -> str:
        """File path the query was loaded from, or ``"<inline>"``."""
        self.get_sql(query_name)
        return self._sources[query_name]

    @property
    def query_names(self) -> list[str]:
        return sorted(self._queries)

    def __getitem__(self, query_name: str) -> str:
        return self._queries[query_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._queries)

    def __len__(self) -> int:
        return len(self._queries)
