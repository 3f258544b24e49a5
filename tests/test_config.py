"""Tests for loading service definitions from YAML documents."""

import io
from pathlib import Path

import pytest

from dibox.config import ServiceDefinition, import_string, load_services
from dibox.container import Container
from dibox.exceptions import DIBoxConfigurationError, DIBoxMissingDependenciesError
from dibox.registry import Reference
from dibox.service_key import ServiceKey
from dibox.types import Lifetime

MODULE = __name__


class Transport:
    def __init__(self, dsn: str, retries: int = 1) -> None:
        self.dsn = dsn
        self.retries = retries


class FakeTransport(Transport):
    pass


class Mailer:
    def __init__(self, transport: Transport, sender: str = "noreply@example.com") -> None:
        self.transport = transport
        self.sender = sender


class Newsletter:
    def __init__(self, mailer: Mailer) -> None:
        self.mailer = mailer


def build_mailer(transport: Transport) -> Mailer:
    return Mailer(transport, sender="factory@example.com")


def _yaml(text: str) -> io.StringIO:
    return io.StringIO(text.replace("MODULE", MODULE))


class TestLoadServices:
    def test_named_service_with_class(self, container: Container) -> None:
        keys = load_services(
            container,
            _yaml(
                """
services:
  transport:
    class: MODULE:Transport
    arguments: {dsn: "smtp://localhost"}
""",
            ),
        )

        assert keys == [ServiceKey(value="transport")]
        assert container.get("transport").dsn == "smtp://localhost"

    def test_positional_arguments_map_to_parameter_names(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  transport:
    class: MODULE:Transport
    arguments: ["smtp://localhost", 5]
""",
            ),
        )

        transport = container.get("transport")
        assert (transport.dsn, transport.retries) == ("smtp://localhost", 5)

    def test_too_many_positional_arguments(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="positional arguments"):
            load_services(
                container,
                _yaml(
                    """
services:
  transport:
    class: MODULE:Transport
    arguments: [a, 2, c]
""",
                ),
            )

    def test_typed_service_id_is_autowired(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  MODULE:Transport:
    arguments: {dsn: "smtp://localhost"}
    lifetime: singleton
  MODULE:Newsletter: ~
""",
            ),
        )

        newsletter = container.get(Newsletter)
        assert newsletter.mailer.transport is container.get(Transport)

    def test_factory_definition(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  MODULE:Transport:
    arguments: {dsn: "smtp://localhost"}
  mailer:
    factory: MODULE:build_mailer
""",
            ),
        )

        assert container.get("mailer").sender == "factory@example.com"

    def test_class_with_typed_id_registers_implementation(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  MODULE:Transport:
    class: MODULE:FakeTransport
    arguments: {dsn: fake}
""",
            ),
        )

        assert isinstance(container.get(Transport), FakeTransport)

    def test_references_and_aliases(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  transport:
    class: MODULE:Transport
    arguments: {dsn: "smtp://localhost"}
    lifetime: singleton
  mailer:
    class: MODULE:Mailer
    arguments: {transport: "@transport", sender: "@@team"}
  mail:
    alias: mailer
""",
            ),
        )

        mailer = container.get("mail")
        assert mailer.transport is container.get("transport")
        assert mailer.sender == "@team"

    def test_reference_to_typed_service(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  MODULE:Transport:
    arguments: {dsn: "smtp://localhost"}
  newsletter:
    class: MODULE:Newsletter
    arguments: {mailer: "@mailer"}
  mailer:
    class: MODULE:Mailer
""",
            ),
        )

        assert container.get("newsletter").mailer.transport.dsn == "smtp://localhost"

    def test_lifetime_and_scope(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  transport:
    class: MODULE:Transport
    arguments: {dsn: x}
    lifetime: scoped
    scope: request
""",
            ),
        )

        with container.enter_scope("request"):
            assert container.get("transport") is container.get("transport")

    def test_autowire_false(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
services:
  MODULE:Transport:
    arguments: {dsn: x}
  mailer:
    class: MODULE:Mailer
    autowire: false
""",
            ),
        )

        with pytest.raises(DIBoxMissingDependenciesError):
            container.get("mailer")

    def test_mapping_source(self, container: Container) -> None:
        load_services(
            container,
            {
                "parameters": {"dsn": "smtp://localhost"},
                "services": {
                    "transport": {"class": f"{MODULE}:Transport", "arguments": ["%dsn%"]},
                },
            },
        )

        assert container.get("transport").dsn == "smtp://localhost"

    def test_file_source(self, container: Container, tmp_path: Path) -> None:
        services_file = tmp_path / "services.yaml"
        services_file.write_text(
            f"services:\n  transport:\n    class: {MODULE}:Transport\n    arguments: [x]\n",
            encoding="utf-8",
        )

        load_services(container, services_file)

        assert container.get("transport").dsn == "x"

    def test_empty_document(self, container: Container) -> None:
        assert load_services(container, io.StringIO("")) == []


class TestParameters:
    def test_parameters_are_registered(self, container: Container) -> None:
        load_services(container, io.StringIO("parameters:\n  retries: 3\n  debug: true\n"))

        assert container.parameters["retries"] == 3
        assert container.get("debug") is True

    def test_whole_placeholder_keeps_type(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
parameters:
  retries: 3
services:
  transport:
    class: MODULE:Transport
    arguments: {dsn: x, retries: "%retries%"}
""",
            ),
        )

        assert container.get("transport").retries == 3

    def test_embedded_placeholders_and_escape(self, container: Container) -> None:
        load_services(
            container,
            _yaml(
                """
parameters:
  host: localhost
  port: 25
services:
  transport:
    class: MODULE:Transport
    arguments: ["smtp://%host%:%port%/100%%"]
""",
            ),
        )

        assert container.get("transport").dsn == "smtp://localhost:25/100%"

    def test_parameters_set_in_code_are_visible(self, container: Container) -> None:
        container.set_parameter("dsn", "smtp://code")

        load_services(
            container,
            _yaml(
                "services:\n  transport:\n    class: MODULE:Transport\n"
                "    arguments: ['%dsn%']\n",
            ),
        )

        assert container.get("transport").dsn == "smtp://code"

    def test_undefined_parameter(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="undefined parameter 'dsn'"):
            load_services(
                container,
                _yaml(
                    "services:\n  transport:\n    class: MODULE:Transport\n"
                    "    arguments: ['%dsn%']\n",
                ),
            )


class TestInvalidDocuments:
    def test_invalid_yaml(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="Invalid YAML"):
            load_services(container, io.StringIO("services: [unclosed"))

    def test_unknown_field(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="Invalid service definitions"):
            load_services(container, io.StringIO("services:\n  a:\n    klass: x\n"))

    def test_unknown_top_level_section(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError):
            load_services(container, io.StringIO("imports: []\n"))

    def test_multiple_sources(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="only one of"):
            load_services(container, io.StringIO("services:\n  a:\n    class: x:Y\n    alias: b\n"))

    def test_alias_with_arguments(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="alias cannot declare arguments"):
            load_services(
                container,
                io.StringIO("services:\n  a:\n    alias: b\n    arguments: [1]\n"),
            )

    def test_named_service_without_target(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="needs one of"):
            load_services(container, io.StringIO("services:\n  mailer: {}\n"))

    def test_unknown_lifetime(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError):
            load_services(
                container,
                _yaml("services:\n  t:\n    class: MODULE:Transport\n    lifetime: forever\n"),
            )

    def test_registration_error_names_the_service(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="Service 't'"):
            load_services(
                container,
                _yaml(
                    "services:\n  t:\n    class: MODULE:Transport\n"
                    "    lifetime: transient\n    scope: request\n",
                ),
            )

    def test_missing_file(self, container: Container, tmp_path: Path) -> None:
        with pytest.raises(DIBoxConfigurationError, match="Cannot read"):
            load_services(container, tmp_path / "missing.yaml")

    @pytest.mark.parametrize(
        "definition",
        [
            "    class: no_such_module_xyz:Mailer\n",
            "    factory: MODULE:no_such_factory\n",
            "    class: MODULE:Mailer\n"
            "    arguments: {transport: '@no_such_module_xyz:Transport'}\n",
        ],
        ids=["class", "factory", "reference"],
    )
    def test_import_errors_name_the_service(self, container: Container, definition: str) -> None:
        with pytest.raises(DIBoxConfigurationError, match="^Service 'mailer' in <stream>: "):
            load_services(container, _yaml(f"services:\n  mailer:\n{definition}"))

    def test_unimportable_typed_id_names_the_service(self, container: Container) -> None:
        with pytest.raises(
            DIBoxConfigurationError,
            match="Service 'no_such_module_xyz:Mailer' .*Cannot import module",
        ):
            load_services(container, io.StringIO("services:\n  no_such_module_xyz:Mailer: {}\n"))

    def test_undefined_parameter_names_the_service(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError) as exc_info:
            load_services(
                container,
                _yaml(
                    "services:\n  transport:\n    class: MODULE:Transport\n"
                    "    arguments: ['%dsn%']\n",
                ),
            )

        assert str(exc_info.value) == (
            "Service 'transport' in <stream>: refers to undefined parameter 'dsn'"
        )


class TestFailedLoadLeavesContainerUnchanged:
    def test_earlier_parameters_and_services_are_not_registered(
        self,
        container: Container,
    ) -> None:
        document = _yaml(
            "parameters:\n  dsn: smtp://localhost\n"
            "services:\n"
            "  transport:\n    class: MODULE:Transport\n    arguments: ['%dsn%']\n"
            "  mailer:\n    class: no_such_module_xyz:Mailer\n",
        )

        with pytest.raises(DIBoxConfigurationError, match="Service 'mailer'"):
            load_services(container, document)

        assert "dsn" not in container.parameters
        assert not container.has("dsn")
        assert not container.has("transport")

    def test_registration_error_keeps_existing_services(self, container: Container) -> None:
        container.set("transport", lambda c: FakeTransport("memory://"))
        document = _yaml(
            "services:\n"
            "  transport:\n    class: MODULE:Transport\n    arguments: ['smtp://']\n"
            "  t:\n    class: MODULE:Transport\n    lifetime: transient\n    scope: request\n",
        )

        with pytest.raises(DIBoxConfigurationError, match="Service 't'"):
            load_services(container, document)

        assert isinstance(container.get("transport"), FakeTransport)
        assert not container.has("t")

    def test_self_alias_is_rejected_before_registering(self, container: Container) -> None:
        with pytest.raises(DIBoxConfigurationError, match="alias of itself"):
            load_services(
                container,
                io.StringIO("services:\n  a:\n    class: pathlib:Path\n  b:\n    alias: b\n"),
            )

        assert not container.has("a")


class TestImportString:
    def test_colon_path(self) -> None:
        assert import_string("pathlib:Path") is Path

    def test_dotted_path(self) -> None:
        assert import_string("pathlib.Path") is Path

    def test_nested_attribute(self) -> None:
        assert import_string("pathlib:Path.cwd") == Path.cwd

    @pytest.mark.parametrize("path", ["Path", "no_such_module_xyz:Thing", "pathlib:NoSuchThing"])
    def test_invalid_paths(self, path: str) -> None:
        with pytest.raises(DIBoxConfigurationError):
            import_string(path)


class TestServiceDefinition:
    def test_class_alias(self) -> None:
        definition = ServiceDefinition.model_validate({"class": "a:B", "lifetime": "singleton"})

        assert definition.class_ == "a:B"
        assert definition.lifetime is Lifetime.SINGLETON

    def test_reference_values_are_converted(self, container: Container) -> None:
        container.set_parameter("dsn", "x")
        container.register(Transport, arguments={"dsn": Reference("dsn")})

        assert container.get(Transport).dsn == "x"
