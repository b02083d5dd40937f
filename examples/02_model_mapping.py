"""
Example 02: Model Mapping

This example demonstrates how column values are converted to field types:
NULL handling, enums stored as text, Pydantic models and row error policies.
"""

from row_forge import Session, ConnectionConfig, ConversionError, RowErrorPolicy
from dataclasses import dataclass
from enum import IntEnum
from pydantic import BaseModel
from typing import Optional


class Level(IntEnum):
    JUNIOR = 1
    SENIOR = 2
    LEAD = 3


@dataclass
class Employee:
    id: int = 0
    name: str = ""
    email: Optional[str] = "n/a"
    level: Level = Level.JUNIOR
    department_id: int = -1


class EmployeeSummary(BaseModel):
    id: int = 0
    name: str = ""


def main():
    config = ConnectionConfig(driver="sqlite", database=":memory:")

    with Session.from_config(config) as session:
        session.execute("""
            CREATE TABLE employee (
                Id INTEGER PRIMARY KEY,
                Name TEXT NOT NULL,
                Email TEXT,
                Level TEXT,
                DepartmentId INTEGER
            )
        """)
        rows = [
            (1, "Alice", "alice@example.com", "Lead", 1),
            (2, "Bob", None, "senior", 1),
            (3, "Charlie", "charlie@example.com", "1", None),
        ]
        for id_, name, email, level, dept in rows:
            session.execute(
                "INSERT INTO employee VALUES (:id, :name, :email, :level, :dept)",
                {"id": id_, "name": name, "email": email, "level": level, "dept": dept},
            )

        print("=== Model Mapping ===\n")

        # NULL sets Optional fields to None; non-nullable fields keep their default
        print("1. Dataclass with enums and NULLs:")
        for employee in session.fetch_all(Employee, "SELECT * FROM employee"):
            print(f"   {employee}")
        print()

        # Pydantic models work the same way; extra columns are ignored
        print("2. Pydantic model:")
        for summary in session.fetch_all(EmployeeSummary, "SELECT * FROM employee"):
            print(f"   {summary!r}")
        print()

        # A value that cannot be converted aborts the read by default
        bad = "SELECT CASE WHEN Id = 2 THEN 'oops' ELSE CAST(Id AS TEXT) END AS Id FROM employee"
        print("3. Conversion errors:")
        try:
            session.fetch_all(Employee, bad)
        except ConversionError as e:
            print(f"   {e}")

        # ...or the failing rows can be skipped
        kept = session.fetch_all(Employee, bad, policy=RowErrorPolicy.SKIP)
        print(f"   With SKIP policy: ids {[e.id for e in kept]}")


if __name__ == "__main__":
    main()
