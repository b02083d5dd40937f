"""Integration tests against a real SQLite database (sync API).

Covers: convenience reads and the execution cache, compiled queries,
streaming, procedures through the SQL registry, non-query execution,
error reporting, row error policies and connection open/close discipline.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

import pytest
from pydantic import BaseModel

from row_forge import (
    AdapterError,
    ConfigurationError,
    ConnectionConfig,
    ConnectionError as RowForgeConnectionError,
    ConversionError,
    ExecutionCache,
    ExecutionPhase,
    ParameterBindingError,
    QueryDisposedError,
    RowErrorPolicy,
    Session,
    SqlExecutionError,
    SQLRegistry,
)

pytestmark = pytest.mark.integration

# --- Test models ---


class EmployeeCategory(IntEnum):
    REGULAR = 1
    LEAD = 2
    MANAGER = 3


@dataclass
class Employee:
    id: int = 0
    name: str = ""
    department_id: int = 0


@dataclass
class NameOnly:
    name: str = ""


@dataclass
class ExtendedEmployee:
    id: int = 0
    name: str = ""
    department_id: int = -1
    email: str | None = "unset"
    score: float | None = None
    category: EmployeeCategory = EmployeeCategory.REGULAR


class EmployeeModel(BaseModel):
    id: int = 0
    name: str = ""


@dataclass(frozen=True)
class FrozenEmployee:
    id: int = 0


CREATE_TABLE = (
    "CREATE TABLE employee (Id INTEGER PRIMARY KEY, Name TEXT NOT NULL, "
    "DepartmentId INTEGER, Email TEXT, Score REAL, Category TEXT)"
)
INSERT = (
    "INSERT INTO employee (Id, Name, DepartmentId, Email, Score, Category) "
    "VALUES (:id, :name, :dept, :email, :score, :category)"
)
EMPLOYEES = [
    {"id": 1, "name": "Employee1", "dept": 1, "email": "e1@example.com", "score": 4.5,
     "category": "Lead"},
    {"id": 2, "name": "Employee2", "dept": 1, "email": None, "score": None,
     "category": "regular"},
    {"id": 3, "name": "Employee3", "dept": 2, "email": "e3@example.com", "score": 3.0,
     "category": "MANAGER"},
    {"id": 4, "name": "Employee4", "dept": 2, "email": None, "score": 2.5,
     "category": "Regular"},
    {"id": 5, "name": "Employee5", "dept": None, "email": "e5@example.com", "score": 1.0,
     "category": "lead"},
]

BY_DEPARTMENT = "SELECT Id, Name, DepartmentId FROM employee WHERE DepartmentId = :dept ORDER BY Id"


def _seed(session: Session) -> None:
    session.execute(CREATE_TABLE)
    for row in EMPLOYEES:
        session.execute(INSERT, row)


@pytest.fixture
def registry(tmp_sql_dir: Path, write_sql) -> SQLRegistry:
    write_sql("employee/by_department.sql", BY_DEPARTMENT)
    write_sql("employee/rename.sql", "UPDATE employee SET Name = :name WHERE Id = :id")
    return SQLRegistry(tmp_sql_dir)


@pytest.fixture
def session(sqlite_config: ConnectionConfig, registry: SQLRegistry) -> Iterator[Session]:
    """Open in-memory session, seeded; kept open for the whole test."""
    with Session.from_config(
        sqlite_config, registry, execution_cache=ExecutionCache()
    ) as session:
        _seed(session)
        yield session


@pytest.fixture
def file_session(sqlite_file_config: ConnectionConfig, registry: SQLRegistry) -> Session:
    """Session over a file database that is NOT held open between calls."""
    session = Session.from_config(sqlite_file_config, registry, execution_cache=ExecutionCache())
    _seed(session)
    return session


# --- Convenience reads ---


class TestFetchAll:
    def test_round_trip(self, session: Session) -> None:
        rows = session.fetch_all(
            Employee, "SELECT Id, Name, DepartmentId FROM employee WHERE Id = :id", {"id": 1}
        )
        assert rows == [Employee(id=1, name="Employee1", department_id=1)]

    def test_all_rows_in_order(self, session: Session) -> None:
        rows = session.fetch_all(Employee, "SELECT Id, Name, DepartmentId FROM employee ORDER BY Id")
        assert [row.id for row in rows] == [1, 2, 3, 4, 5]

    def test_extra_columns_are_ignored(self, session: Session) -> None:
        rows = session.fetch_all(NameOnly, "SELECT * FROM employee ORDER BY Id")
        assert rows[0] == NameOnly(name="Employee1")

    def test_missing_columns_keep_defaults(self, session: Session) -> None:
        rows = session.fetch_all(Employee, "SELECT Name FROM employee WHERE Id = 3")
        assert rows == [Employee(id=0, name="Employee3", department_id=0)]

    def test_dict_rows(self, session: Session) -> None:
        rows = session.fetch_all(dict, "SELECT Id, Name FROM employee WHERE Id = 1")
        assert rows == [{"Id": 1, "Name": "Employee1"}]

    def test_dict_rows_keep_column_spelling(self, session: Session) -> None:
        assert session.fetch_all(dict, "SELECT 1 AS Id, 'Employee1' AS Name") == [
            {"Id": 1, "Name": "Employee1"}
        ]
        assert session.fetch_all(dict, "SELECT 1 AS ID") == [{"ID": 1}]

    def test_null_handling(self, session: Session) -> None:
        rows = session.fetch_all(ExtendedEmployee, "SELECT * FROM employee ORDER BY Id")
        assert rows[1].email is None
        assert rows[1].score is None
        # value-type field keeps its default on NULL
        assert rows[4].department_id == -1

    def test_enum_and_float_columns(self, session: Session) -> None:
        rows = session.fetch_all(ExtendedEmployee, "SELECT * FROM employee ORDER BY Id")
        assert [row.category for row in rows] == [
            EmployeeCategory.LEAD,
            EmployeeCategory.REGULAR,
            EmployeeCategory.MANAGER,
            EmployeeCategory.REGULAR,
            EmployeeCategory.LEAD,
        ]
        assert rows[0].score == 4.5

    def test_empty_result(self, session: Session) -> None:
        assert session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 99}) == []

    def test_pydantic_model(self, session: Session) -> None:
        rows = session.fetch_all(EmployeeModel, "SELECT Id, Name FROM employee WHERE Id = 2")
        assert isinstance(rows[0], EmployeeModel)
        assert (rows[0].id, rows[0].name) == (2, "Employee2")

    def test_scalar_results(self, session: Session) -> None:
        assert session.fetch_all(int, "SELECT Id FROM employee ORDER BY Id") == [1, 2, 3, 4, 5]

    def test_frozen_model_is_rejected(self, session: Session) -> None:
        with pytest.raises(ConfigurationError):
            session.fetch_all(FrozenEmployee, "SELECT Id FROM employee")


class TestExecutionCacheReuse:
    def test_repeated_calls_share_one_command(self, session: Session) -> None:
        first = session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        second = session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 2})
        assert [row.id for row in first] == [1, 2]
        assert [row.id for row in second] == [3, 4]
        assert session.cached_command_count == 1

    def test_prefixed_parameter_names(self, session: Session) -> None:
        session.fetch_all(Employee, BY_DEPARTMENT, {":dept": 1})
        rows = session.fetch_all(Employee, BY_DEPARTMENT, {":dept": 2})
        assert [row.id for row in rows] == [3, 4]

    def test_unknown_parameter_names_are_ignored(self, session: Session) -> None:
        session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        rows = session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 2, "other": 5})
        assert [row.id for row in rows] == [3, 4]

    def test_distinct_models_get_distinct_entries(self, session: Session) -> None:
        session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        session.fetch_all(NameOnly, BY_DEPARTMENT, {"dept": 1})
        assert session.cached_command_count == 2

    def test_clear_cache_drops_entries(self, session: Session) -> None:
        session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        session.clear_cache()
        assert session.cached_command_count == 0


class TestFetchFirst:
    def test_first_row(self, session: Session) -> None:
        result = session.fetch_first(Employee, BY_DEPARTMENT, {"dept": 2})
        assert result == Employee(3, "Employee3", 2)

    def test_no_rows(self, session: Session) -> None:
        assert session.fetch_first(Employee, BY_DEPARTMENT, {"dept": 99}) is None

    def test_not_cached(self, session: Session) -> None:
        session.fetch_first(Employee, BY_DEPARTMENT, {"dept": 2})
        assert session.cached_command_count == 0

    def test_scalar(self, session: Session) -> None:
        assert session.fetch_first(str, "SELECT Name FROM employee WHERE Id = 5") == "Employee5"


class TestStream:
    def test_stream_equals_fetch_all(self, session: Session) -> None:
        sql = "SELECT * FROM employee ORDER BY Id"
        assert list(session.stream(ExtendedEmployee, sql)) == session.fetch_all(
            ExtendedEmployee, sql
        )

    def test_stream_is_lazy(self, session: Session) -> None:
        rows = session.stream(Employee, "SELECT * FROM missing_table")
        with pytest.raises(SqlExecutionError):
            next(rows)

    def test_early_exit_closes_connection_opened_for_the_call(
        self, file_session: Session
    ) -> None:
        rows = file_session.stream(Employee, "SELECT Id, Name FROM employee ORDER BY Id")
        assert next(rows).id == 1
        assert file_session.connection_manager.is_open is True
        rows.close()
        assert file_session.connection_manager.is_open is False


# --- Compiled queries ---


class TestCompiledQuery:
    def test_rebinding_returns_fresh_results(self, session: Session) -> None:
        with session.compile(Employee, BY_DEPARTMENT, "dept") as query:
            query.set_parameter(0, 1)
            assert [row.id for row in query.fetch_all()] == [1, 2]
            query.set_parameter(0, 2)
            assert [row.id for row in query.fetch_all()] == [3, 4]
            assert query.last_row_count == 2

    def test_idempotent_execution(self, session: Session) -> None:
        with session.compile(Employee, BY_DEPARTMENT, "dept") as query:
            query.set_parameter(0, 1)
            assert query.fetch_all() == query.fetch_all()

    def test_result_grows_past_previous_count(self, session: Session) -> None:
        with session.compile(Employee, "SELECT Id FROM employee WHERE Id <= :n", ":n") as query:
            query.set_parameter(0, 2)
            assert len(query.fetch_all()) == 2
            query.set_parameter(0, 5)
            assert len(query.fetch_all()) == 5
            query.set_parameter(0, 1)
            assert len(query.fetch_all()) == 1

    def test_fetch_first(self, session: Session) -> None:
        query = session.compile(Employee, BY_DEPARTMENT, "dept")
        query.set_parameter(0, 2)
        assert query.fetch_first() == Employee(3, "Employee3", 2)
        query.set_parameter(0, 99)
        assert query.fetch_first() is None
        query.close()

    def test_stream(self, session: Session) -> None:
        with session.compile(Employee, BY_DEPARTMENT, "dept") as query:
            query.set_parameter(0, 1)
            assert list(query.stream()) == query.fetch_all()

    def test_use_after_close(self, session: Session) -> None:
        query = session.compile(Employee, BY_DEPARTMENT, "dept")
        query.close()
        query.close()
        assert query.closed is True
        with pytest.raises(QueryDisposedError):
            query.fetch_all()
        with pytest.raises(QueryDisposedError):
            query.fetch_first()
        with pytest.raises(QueryDisposedError):
            query.set_parameter(0, 1)

    def test_index_out_of_range(self, session: Session) -> None:
        with session.compile(Employee, BY_DEPARTMENT, "dept") as query:
            with pytest.raises(ParameterBindingError):
                query.set_parameter(1, 1)

    def test_unset_parameter(self, session: Session) -> None:
        with session.compile(Employee, BY_DEPARTMENT, "dept") as query:
            with pytest.raises(ParameterBindingError):
                query.fetch_all()

    def test_null_parameter(self, session: Session) -> None:
        sql = "SELECT Id, Name FROM employee WHERE DepartmentId IS :dept"
        with session.compile(Employee, sql, "dept") as query:
            query.set_parameter(0, None)
            assert [row.id for row in query.fetch_all()] == [5]


# --- Procedures and non-query execution ---


class TestProcedures:
    def test_fetch_all_procedure(self, session: Session) -> None:
        rows = session.fetch_all_procedure(Employee, "employee.by_department", {"dept": 1})
        assert [row.id for row in rows] == [1, 2]

    def test_fetch_first_procedure(self, session: Session) -> None:
        row = session.fetch_first_procedure(Employee, "employee.by_department", {"dept": 2})
        assert row == Employee(3, "Employee3", 2)

    def test_stream_procedure(self, session: Session) -> None:
        rows = session.stream_procedure(Employee, "employee.by_department", {"dept": 2})
        assert [row.id for row in rows] == [3, 4]

    def test_compile_procedure(self, session: Session) -> None:
        with session.compile_procedure(Employee, "employee.by_department", "dept") as query:
            query.set_parameter(0, 1)
            assert len(query.fetch_all()) == 2

    def test_call(self, session: Session) -> None:
        assert session.call("employee.rename", {"id": 1, "name": "Renamed"}) == 1
        assert session.fetch_first(str, "SELECT Name FROM employee WHERE Id = 1") == "Renamed"

    def test_unregistered_procedure(self, session: Session) -> None:
        with pytest.raises(AdapterError):
            session.fetch_all_procedure(Employee, "get_staff", {"dept": 1})


class TestExecute:
    def test_returns_affected_rows(self, session: Session) -> None:
        assert session.execute("UPDATE employee SET Score = 0 WHERE DepartmentId = :d", {"d": 2}) == 2

    def test_changes_are_committed(self, file_session: Session) -> None:
        file_session.execute("DELETE FROM employee WHERE Id = :id", {"id": 5})
        assert file_session.fetch_all(int, "SELECT COUNT(*) FROM employee") == [4]


# --- Errors ---


class TestErrors:
    def test_sql_error_is_wrapped(self, session: Session) -> None:
        with pytest.raises(SqlExecutionError) as exc_info:
            session.fetch_all(Employee, "SELECT * FROM missing_table")
        assert exc_info.value.phase is ExecutionPhase.HEADERS
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_non_query_error_is_wrapped(self, session: Session) -> None:
        with pytest.raises(SqlExecutionError):
            session.execute("INSERT INTO missing_table VALUES (1)")

    def test_failure_after_first_row_is_a_row_error(
        self, sqlite_config: ConnectionConfig
    ) -> None:
        def boom(value: int) -> int:
            if value == 2:
                raise ValueError("bad row")
            return value

        connection = sqlite3.connect(":memory:")
        connection.create_function("boom", 1, boom)
        connection.execute("CREATE TABLE t (Id INTEGER)")
        connection.executemany("INSERT INTO t VALUES (?)", [(1,), (2,)])
        session = Session.from_config(sqlite_config, connection=connection)
        with pytest.raises(SqlExecutionError) as exc_info:
            session.fetch_all(Employee, "SELECT boom(Id) AS Id FROM t ORDER BY Id")
        assert exc_info.value.phase is ExecutionPhase.ROWS
        connection.close()

    def test_conversion_error_aborts_by_default(self, session: Session) -> None:
        sql = (
            "SELECT CASE WHEN Id = 2 THEN 'bad' ELSE CAST(Id AS TEXT) END AS Id "
            "FROM employee ORDER BY Id"
        )
        with pytest.raises(ConversionError) as exc_info:
            session.fetch_all(Employee, sql)
        assert exc_info.value.value == "bad"

    def test_skip_policy_drops_bad_rows(
        self, session: Session, caplog: pytest.LogCaptureFixture
    ) -> None:
        sql = (
            "SELECT CASE WHEN Id = 2 THEN 'bad' ELSE CAST(Id AS TEXT) END AS Id "
            "FROM employee ORDER BY Id"
        )
        with caplog.at_level(logging.WARNING, logger="row_forge"):
            rows = session.fetch_all(Employee, sql, policy=RowErrorPolicy.SKIP)
        assert [row.id for row in rows] == [1, 3, 4, 5]
        assert "Skipping row" in caplog.text

    def test_skip_policy_in_stream(self, session: Session) -> None:
        sql = "SELECT CASE WHEN Id = 2 THEN 'bad' ELSE CAST(Id AS TEXT) END AS Id FROM employee"
        rows = session.stream(Employee, sql, policy=RowErrorPolicy.SKIP)
        assert len(list(rows)) == 4


# --- Connection discipline ---


class TestConnectionDiscipline:
    def test_call_closes_connection_it_opened(self, file_session: Session) -> None:
        assert file_session.connection_manager.is_open is False
        file_session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        assert file_session.connection_manager.is_open is False

    def test_open_session_stays_open(self, file_session: Session) -> None:
        file_session.open()
        file_session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 1})
        assert file_session.connection_manager.is_open is True
        file_session.close()
        assert file_session.connection_manager.is_open is False

    def test_externally_closed_connection_is_reopened(self, file_session: Session) -> None:
        file_session.open()
        file_session.connection_manager.connection.close()
        rows = file_session.fetch_all(Employee, BY_DEPARTMENT, {"dept": 2})
        assert [row.id for row in rows] == [3, 4]
        assert file_session.connection_manager.is_open is False

    def test_connection_closed_after_error(self, file_session: Session) -> None:
        with pytest.raises(SqlExecutionError):
            file_session.fetch_all(Employee, "SELECT * FROM missing_table")
        assert file_session.connection_manager.is_open is False

    def test_adopted_connection(self, sqlite_config: ConnectionConfig) -> None:
        connection = sqlite3.connect(":memory:")
        connection.row_factory = sqlite3.Row
        connection.execute("CREATE TABLE t (Id INTEGER, Name TEXT)")
        connection.execute("INSERT INTO t VALUES (1, 'A')")
        session = Session.from_config(sqlite_config, connection=connection)
        assert session.fetch_all(Employee, "SELECT * FROM t") == [Employee(1, "A", 0)]
        # not opened by the call, so not closed by it
        assert session.connection_manager.is_open is True
        connection.close()

    def test_closing_session_leaves_adopted_connection_open(
        self, sqlite_config: ConnectionConfig
    ) -> None:
        connection = sqlite3.connect(":memory:")
        connection.execute("CREATE TABLE t (Id INTEGER, Name TEXT)")
        connection.execute("INSERT INTO t VALUES (1, 'A')")
        with Session.from_config(sqlite_config, connection=connection) as session:
            assert session.fetch_all(Employee, "SELECT * FROM t") == [Employee(1, "A", 0)]
        assert session.connection_manager.connection is None
        assert connection.execute("SELECT COUNT(*) FROM t").fetchone() == (1,)
        connection.close()

    def test_reopened_connection_is_closed(self, sqlite_file_config: ConnectionConfig) -> None:
        adopted = sqlite3.connect(sqlite_file_config.database)
        session = Session.from_config(sqlite_file_config, connection=adopted)
        adopted.close()
        session.open()
        reopened = session.connection_manager.connection
        assert reopened is not adopted
        session.close()
        with pytest.raises(sqlite3.ProgrammingError):
            reopened.execute("SELECT 1")

    def test_connection_failure_is_wrapped(self, tmp_path: Path) -> None:
        config = ConnectionConfig(driver="sqlite", database=str(tmp_path / "missing" / "x.db"))
        session = Session.from_config(config)
        with pytest.raises(RowForgeConnectionError) as exc_info:
            session.fetch_all(Employee, "SELECT 1 AS Id")
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        assert session.connection_manager.is_open is False
