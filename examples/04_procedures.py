"""
Example 04: Named Queries and Procedures

This example demonstrates the procedure API. Names registered in the
SQLRegistry run the SQL from the matching file; on PostgreSQL, other names
are called as native functions or procedures.
"""

from row_forge import Session, ConnectionConfig, SQLRegistry
from dataclasses import dataclass
import tempfile
from pathlib import Path


@dataclass
class Employee:
    id: int = 0
    name: str = ""
    department_id: int = 0


def main():
    # Create SQL query files
    sql_dir = Path(tempfile.mkdtemp())
    employee_dir = sql_dir / "employee"
    employee_dir.mkdir()
    (employee_dir / "by_department.sql").write_text(
        "SELECT Id, Name, DepartmentId FROM employee WHERE DepartmentId = :dept"
    )
    (employee_dir / "transfer.sql").write_text(
        "UPDATE employee SET DepartmentId = :dept WHERE Id = :id"
    )

    registry = SQLRegistry(sql_dir)
    print(f"Registered queries: {registry.query_names}\n")

    config = ConnectionConfig(driver="sqlite", database=":memory:")
    with Session.from_config(config, registry) as session:
        session.execute("CREATE TABLE employee (Id INTEGER PRIMARY KEY, Name TEXT, DepartmentId INTEGER)")
        for name, dept in [("Alice", 1), ("Bob", 1), ("Charlie", 2)]:
            session.execute("INSERT INTO employee (Name, DepartmentId) VALUES (:n, :d)",
                            {"n": name, "d": dept})

        print("=== Procedures ===\n")

        staff = session.fetch_all_procedure(Employee, "employee.by_department", {"dept": 1})
        print(f"Department 1: {[e.name for e in staff]}")

        moved = session.call("employee.transfer", {"id": 2, "dept": 2})
        print(f"Transferred {moved} employee(s)")

        for employee in session.stream_procedure(Employee, "employee.by_department", {"dept": 2}):
            print(f"  - {employee.name}")

    # Clean up
    for file in employee_dir.glob("*.sql"):
        file.unlink()
    employee_dir.rmdir()
    sql_dir.rmdir()


if __name__ == "__main__":
    main()
