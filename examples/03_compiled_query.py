"""
Example 03: Compiled Queries

This example demonstrates compiling a query once and re-executing it with
positional parameters, which skips text lookup and schema matching on
every call after the first.
"""

from row_forge import Session, ConnectionConfig, QueryDisposedError
from dataclasses import dataclass
import time


@dataclass
class Order:
    id: int = 0
    customer_id: int = 0
    total: float = 0.0


def main():
    config = ConnectionConfig(driver="sqlite", database=":memory:")

    with Session.from_config(config) as session:
        session.execute("CREATE TABLE orders (Id INTEGER PRIMARY KEY, CustomerId INTEGER, Total REAL)")
        for i in range(1, 1001):
            session.execute(
                "INSERT INTO orders VALUES (:id, :customer, :total)",
                {"id": i, "customer": i % 50, "total": i * 1.5},
            )

        print("=== Compiled Queries ===\n")

        sql = "SELECT Id, CustomerId, Total FROM orders WHERE CustomerId = :customer"
        with session.compile(Order, sql, "customer") as query:
            started = time.perf_counter()
            for customer in range(50):
                query.set_parameter(0, customer)
                orders = query.fetch_all()
            elapsed = time.perf_counter() - started
            print(f"50 executions in {elapsed * 1000:.1f} ms")
            print(f"Last result: {query.last_row_count} orders, first {orders[0]}\n")

            query.set_parameter(0, 7)
            print(f"fetch_first: {query.fetch_first()}")
            print(f"stream: {sum(o.total for o in query.stream()):.1f} total\n")

        # A closed query can no longer be used
        try:
            query.fetch_all()
        except QueryDisposedError as e:
            print(f"After close: {e}")


if __name__ == "__main__":
    main()
