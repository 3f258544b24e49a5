"""Function injection with ``Injected[...]``.

Marked parameters are resolved on every call and hidden from the public
signature. Explicit keyword arguments win over injected values.
"""

from __future__ import annotations

import inspect

from dibox import Container, Injected, Lifetime


class Clock:
    def now(self) -> str:
        return "12:00"


class Greeter:
    def greet(self, name: str) -> str:
        return f"Hello, {name}"


class FakeClock(Clock):
    def now(self) -> str:
        return "00:00"


container = Container()
container.register(Clock, lifetime=Lifetime.SINGLETON)


@container.inject
def greet(name: str, greeter: Injected[Greeter], clock: Injected[Clock]) -> str:
    return f"{greeter.greet(name)} at {clock.now()}"


def main() -> None:
    print(greet("Ada"))  # => Hello, Ada at 12:00
    print(greet("Ada", clock=FakeClock()))  # => Hello, Ada at 00:00
    print(f"signature={inspect.signature(greet)}")  # => signature=(name: 'str') -> 'str'


if __name__ == "__main__":
    main()
