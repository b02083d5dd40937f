"""
Example 05: Async Support

This example demonstrates asynchronous query execution using AsyncSession.
"""

import asyncio
from row_forge import AsyncSession, ConnectionConfig
from contextlib import aclosing
from dataclasses import dataclass
import tempfile
import sqlite3
from pathlib import Path


@dataclass
class User:
    id: int = 0
    name: str = ""
    email: str = ""


async def main():
    # Set up database
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT NOT NULL
        )
    """)
    conn.execute("INSERT INTO users (name, email) VALUES ('Alice', 'alice@example.com')")
    conn.execute("INSERT INTO users (name, email) VALUES ('Bob', 'bob@example.com')")
    conn.execute("INSERT INTO users (name, email) VALUES ('Charlie', 'charlie@example.com')")
    conn.commit()
    conn.close()

    config = ConnectionConfig(driver="sqlite", database=db_path)

    print("=== Async Query Execution ===\n")

    async with AsyncSession.from_config(config) as session:
        print("1. Async fetch_all:")
        users = await session.fetch_all(User, "SELECT * FROM users")
        for user in users:
            print(f"   - {user.name} ({user.email})")
        print()

        print("2. Async fetch_first:")
        user = await session.fetch_first(User, "SELECT * FROM users WHERE id = :id", {"id": 2})
        print(f"   {user}\n")

        print("3. Async execute:")
        await session.execute(
            "INSERT INTO users (name, email) VALUES (:name, :email)",
            {"name": "Dave", "email": "dave@example.com"},
        )
        print(f"   Total users: {await session.fetch_first(int, 'SELECT COUNT(*) FROM users')}\n")

        # aclosing releases the cursor even when the loop exits early
        print("4. Async stream:")
        async with aclosing(session.stream(User, "SELECT * FROM users ORDER BY id")) as rows:
            async for user in rows:
                print(f"   - {user.name}")
                if user.id == 2:
                    break
        print()

    # Separate sessions own separate connections and can run concurrently
    print("5. Concurrent queries:")
    sessions = [AsyncSession.from_config(config) for _ in range(2)]
    results = await asyncio.gather(
        sessions[0].fetch_first(User, "SELECT * FROM users WHERE id = :id", {"id": 1}),
        sessions[1].fetch_first(User, "SELECT * FROM users WHERE id = :id", {"id": 3}),
    )
    print(f"   User 1: {results[0].name}")
    print(f"   User 3: {results[1].name}\n")

    # Clean up
    Path(db_path).unlink()


if __name__ == "__main__":
    asyncio.run(main())
