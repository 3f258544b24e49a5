"""Scopes and cleanup with generator factories.

1. Scoped resources are torn down when their scope exits.
2. Singleton resources are torn down by ``container.close()``.
3. Resolving a scoped service outside its scope fails.
"""

from __future__ import annotations

from collections.abc import Generator

from dibox import Container, DIBoxScopeMismatchError, Lifetime


class Session:
    pass


class ConnectionPool:
    pass


def main() -> None:
    events: list[str] = []

    def open_session() -> Generator[Session, None, None]:
        events.append("session-open")
        try:
            yield Session()
        finally:
            events.append("session-close")

    def open_pool() -> Generator[ConnectionPool, None, None]:
        events.append("pool-open")
        yield ConnectionPool()
        events.append("pool-close")

    container = Container()
    container.register(Session, factory=open_session, lifetime=Lifetime.SCOPED, scope="request")
    container.register(ConnectionPool, factory=open_pool, lifetime=Lifetime.SINGLETON)

    with container.enter_scope("request") as request_scope:
        request_scope.get(Session)
        request_scope.get(ConnectionPool)
        print(f"inside={','.join(events)}")  # => inside=session-open,pool-open
    print(f"after_scope={','.join(events)}")  # => after_scope=session-open,pool-open,session-close

    container.close()
    print(f"after_close={events[-1]}")  # => after_close=pool-close

    try:
        container.get(Session)
    except DIBoxScopeMismatchError as error:
        print(f"outside_scope={type(error).__name__}")  # => outside_scope=DIBoxScopeMismatchError


if __name__ == "__main__":
    main()
