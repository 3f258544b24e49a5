"""Lifetimes: ``TRANSIENT``, ``SINGLETON`` and ``SCOPED``.

See how object identity changes across repeated lookups and scope boundaries.
"""

from __future__ import annotations

from dibox import Container, Lifetime


class TransientService:
    pass


class SingletonService:
    pass


class ScopedService:
    pass


def main() -> None:
    container = Container()

    container.register(TransientService, lifetime=Lifetime.TRANSIENT)
    transient_first = container.get(TransientService)
    transient_second = container.get(TransientService)
    print(f"transient_new={transient_first is not transient_second}")  # => transient_new=True

    container.register(SingletonService, lifetime=Lifetime.SINGLETON)
    singleton_first = container.get(SingletonService)
    singleton_second = container.get(SingletonService)
    print(f"singleton_same={singleton_first is singleton_second}")  # => singleton_same=True

    container.register(ScopedService, lifetime=Lifetime.SCOPED, scope="request")

    with container.enter_scope("request") as request_scope:
        scoped_first = request_scope.get(ScopedService)
        scoped_second = request_scope.get(ScopedService)

    with container.enter_scope("request") as request_scope:
        scoped_third = request_scope.get(ScopedService)

    print(f"scoped_same_within={scoped_first is scoped_second}")  # => scoped_same_within=True
    print(f"scoped_diff_across={scoped_first is not scoped_third}")  # => scoped_diff_across=True


if __name__ == "__main__":
    main()
