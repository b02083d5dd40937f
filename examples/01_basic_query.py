"""
Example 01: Basic Query Execution

This example demonstrates mapping query results to typed objects with Session.
"""

from row_forge import Session, ConnectionConfig
from dataclasses import dataclass
import tempfile
import sqlite3
from pathlib import Path


@dataclass
class Employee:
    id: int = 0
    name: str = ""
    department_id: int = 0


def main():
    # Create a temporary database
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE employee (
            Id INTEGER PRIMARY KEY,
            Name TEXT NOT NULL,
            DepartmentId INTEGER
        )
    """)
    conn.execute("INSERT INTO employee (Name, DepartmentId) VALUES ('Alice', 1)")
    conn.execute("INSERT INTO employee (Name, DepartmentId) VALUES ('Bob', 1)")
    conn.execute("INSERT INTO employee (Name, DepartmentId) VALUES ('Charlie', 2)")
    conn.commit()
    conn.close()

    config = ConnectionConfig(driver="sqlite", database=db_path)

    print("=== Basic Query Execution ===\n")

    with Session.from_config(config) as session:
        # fetch_all: map every row; columns match fields ignoring case and underscores
        sql = "SELECT Id, Name, DepartmentId FROM employee WHERE DepartmentId = :dept"
        employees = session.fetch_all(Employee, sql, {"dept": 1})
        print(f"fetch_all result ({len(employees)} rows):")
        for employee in employees:
            print(f"  - {employee}")
        print()

        # The second call reuses the cached command and row factory
        employees = session.fetch_all(Employee, sql, {"dept": 2})
        print(f"Department 2: {[e.name for e in employees]}")
        print(f"Cached commands: {session.cached_command_count}\n")

        # fetch_first: first row or None
        employee = session.fetch_first(Employee, "SELECT * FROM employee WHERE Id = :id", {"id": 3})
        print(f"fetch_first result: {employee}")
        missing = session.fetch_first(Employee, "SELECT * FROM employee WHERE Id = :id", {"id": 99})
        print(f"fetch_first for a missing id: {missing}\n")

        # Scalar targets map the first column
        count = session.fetch_first(int, "SELECT COUNT(*) FROM employee")
        print(f"Scalar result: {count} employees\n")

        # execute: commit and return affected rows
        updated = session.execute("UPDATE employee SET DepartmentId = 3 WHERE Name = :name",
                                  {"name": "Bob"})
        print(f"execute updated {updated} row(s)")

    # Clean up
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
