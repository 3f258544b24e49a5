"""Service definition files.

Describe services in YAML instead of code: ``%name%`` reads a parameter,
``@id`` refers to another service, and ids written as import paths register
typed services.
"""

from __future__ import annotations

import io

from dibox import Container, load_services

SERVICES_YAML = """
parameters:
  mailer.dsn: smtp://localhost:25
  mailer.retries: 3
services:
  transport:
    class: __main__:Transport
    arguments: ["%mailer.dsn%", "%mailer.retries%"]
    lifetime: singleton
  mailer:
    class: __main__:Mailer
    arguments: {transport: "@transport"}
  mail:
    alias: mailer
  __main__:Newsletter:
    arguments: {mailer: "@mail"}
"""


class Transport:
    def __init__(self, dsn: str, retries: int) -> None:
        self.dsn = dsn
        self.retries = retries


class Mailer:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport


class Newsletter:
    def __init__(self, mailer: Mailer) -> None:
        self.mailer = mailer


def main() -> None:
    container = Container()
    keys = load_services(container, io.StringIO(SERVICES_YAML))
    print(f"services={len(keys)}")  # => services=4

    newsletter = container.get(Newsletter)
    transport = newsletter.mailer.transport
    print(f"dsn={transport.dsn}")  # => dsn=smtp://localhost:25
    print(f"retries={transport.retries} ({type(transport.retries).__name__})")  # => retries=3 (int)
    print(f"transport_shared={container.get('transport') is transport}")  # => transport_shared=True


if __name__ == "__main__":
    main()
