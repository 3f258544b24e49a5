"""Named services: register a resolver by name, get it by name.

Each resolver receives the container, so it can fetch its own collaborators.
Typed constructors can point at named services with ``Named``.
"""

from __future__ import annotations

from typing import Annotated

from dibox import Container, DIBoxServiceNotFoundError, Lifetime, Named


class Transport:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn


class Mailer:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport


class Newsletter:
    def __init__(self, mailer: Annotated[Mailer, Named("mailer")]) -> None:
        self.mailer = mailer


def main() -> None:
    container = Container()
    container.set_parameter("mailer.dsn", "smtp://localhost:25")
    container.set("transport", lambda c: Transport(c.get("mailer.dsn")))
    container.set("mailer", lambda c: Mailer(c.get("transport")), lifetime=Lifetime.SINGLETON)

    mailer = container.get("mailer")
    print(f"dsn={mailer.transport.dsn}")  # => dsn=smtp://localhost:25
    print(f"mailer_shared={container.get('mailer') is mailer}")  # => mailer_shared=True

    newsletter = container.get(Newsletter)
    print(f"newsletter_uses_mailer={newsletter.mailer is mailer}")  # => newsletter_uses_mailer=True

    print(f"has_logger={container.has('logger')}")  # => has_logger=False
    try:
        container.get("logger")
    except DIBoxServiceNotFoundError as error:
        print(error)  # => Service 'logger' is not registered


if __name__ == "__main__":
    main()
