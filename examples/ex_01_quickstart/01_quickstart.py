"""Quickstart: automatic dependency wiring from type hints.

Start with plain classes, resolve only the top-level service, and see how
dibox builds the full dependency chain for you.
"""

from __future__ import annotations

from dibox import Container


class Database:
    def __init__(self) -> None:
        self.host = "localhost"


class UserRepository:
    def __init__(self, database: Database) -> None:
        self.database = database


class OrderService:
    def __init__(self, users: UserRepository) -> None:
        self.users = users


def main() -> None:
    container = Container()
    service = container.get(OrderService)

    print(f"db_host={service.users.database.host}")  # => db_host=localhost

    chain = (
        f"{type(service).__name__}"
        f">{type(service.users).__name__}"
        f">{type(service.users.database).__name__}"
    )
    print(f"chain={chain}")  # => chain=OrderService>UserRepository>Database
    print(f"has_order_service={container.has(OrderService)}")  # => has_order_service=True


if __name__ == "__main__":
    main()
