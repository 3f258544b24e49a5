from typing import TYPE_CHECKING, Annotated, Any, NamedTuple, TypeVar, Union, get_args, get_origin

T = TypeVar("T")
_ANNOTATED_MARKER_MIN_ARGS = 2


class Component(NamedTuple):
    """Differentiate multiple registrations for the same base type.

    Attach ``Component`` metadata to ``typing.Annotated`` so dibox treats each
    annotated key as distinct.

    Examples:
        .. code-block:: python

            ReplicaDb: TypeAlias = Annotated[Database, Component("replica")]
            PrimaryDb: TypeAlias = Annotated[Database, Component("primary")]

    """

    value: Any


class Named(NamedTuple):
    """Point a typed parameter at a string-named service.

    ``Annotated[Mailer, Named("mailer")]`` resolves the service registered with
    ``container.set("mailer", ...)`` while keeping the parameter typed.
    """

    name: str


class InjectedMarker:
    """A marker used to indicate a parameter should be injected from the container.

    Used to identify parameters that need to be removed from callable signatures
    when wrapping functions with ``Container.inject``.
    """


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a parameter for container-driven injection.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``.
    """

else:

    class Injected:
        """Mark a parameter for container-driven injection.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.

        Examples:
            .. code-block:: python

                @container.inject
                def run(service: Injected[Service], value: int) -> str:
                    return service.handle(value)

        """

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                inner = args[0]
                metadata = args[1:]
                return build_annotated((inner, *metadata, InjectedMarker()))
            return build_annotated((item, InjectedMarker()))


def annotated_metadata(annotation: Any) -> tuple[Any, tuple[Any, ...]] | None:
    """Split ``Annotated[T, *meta]`` into ``(T, meta)``; return None for other hints."""
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None  # pragma: no cover - Annotated requires at least 2 args
    return annotation_args[0], annotation_args[1:]


def build_annotated(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]
