"""Errors and troubleshooting.

Every failure derives from ``DIBoxError``. The common ones are a missing
service, a missing constructor dependency and a dependency cycle.
"""

from __future__ import annotations

from dibox import (
    Container,
    DIBoxCircularDependencyError,
    DIBoxError,
    DIBoxMissingDependenciesError,
    DIBoxServiceNotFoundError,
)


class Database:
    pass


class ReportService:
    def __init__(self, database: Database) -> None:
        self.database = database


class Left:
    def __init__(self, right: Right) -> None:
        self.right = right


class Right:
    def __init__(self, left: Left) -> None:
        self.left = left


def main() -> None:
    strict = Container(autoregister=False)

    try:
        strict.get("payments")
    except DIBoxServiceNotFoundError as error:
        print(f"not_found={error}")  # => not_found=Service 'payments' is not registered

    strict.register(ReportService)
    try:
        strict.get(ReportService)
    except DIBoxMissingDependenciesError as error:
        missing = ",".join(str(key) for key in error.missing)
        print(f"missing={missing}")  # => missing=Database

    container = Container()
    try:
        container.get(Left)
    except DIBoxCircularDependencyError as error:
        print(error)  # => Circular dependency detected: Left -> Right -> Left

    try:
        container.get(42)
    except DIBoxError as error:
        print(f"base_class_catches={type(error).__name__}")  # => base_class_catches=DIBoxNotAClassError


if __name__ == "__main__":
    main()
