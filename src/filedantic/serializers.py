from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

import orjson
import yaml
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import DecodeError, EncodeError, UnknownFormatError

T = TypeVar("T")


class Serializer(Protocol[T]):
    """Capability for converting records of type ``T`` to and from text.

    Implementations are pure: they never touch the filesystem. ``deserialize``
    must return an empty list for zero-length input and raise
    :class:`~filedantic.exceptions.DecodeError` for anything it cannot parse.
    """

    def serialize(self, value: T) -> str: ...

    def serialize_many(self, values: Iterable[T]) -> str: ...

    def deserialize(self, text: str) -> list[T]: ...


class JsonSerializer(Generic[T]):
    """Encode records as a JSON array of objects.

    Parameters
    ----------
    model:
        Record type. Anything ``pydantic.TypeAdapter`` accepts works: a
        ``BaseModel`` subclass, a dataclass, a ``TypedDict`` or a builtin.
    indent:
        ``None`` for compact output or ``2`` for pretty-printed output.

    Field aliases are honoured on both sides, so ``Field(alias="Name")`` is
    written and read as ``"Name"``. ``deserialize`` reads a lone value, as
    written by ``serialize``, as a one-element list. That does not work when
    ``model`` is itself a list type, and a lone ``null`` is an empty list.
    """

    extension = ".json"
    extensions = (".json",)

    def __init__(self, model: Any, *, indent: int | None = None) -> None:
        if indent not in (None, 2):
            raise ValueError("JSON output supports indent=None or indent=2 only")
        self.model = model
        self.indent = indent
        self._item = TypeAdapter(model)
        self._many = TypeAdapter(list[model])

    def serialize(self, value: T) -> str:
        return self._encode(_dump(self._item, value))

    def serialize_many(self, values: Iterable[T]) -> str:
        return self._encode(_dump(self._many, list(values)))

    def deserialize(self, text: str) -> list[T]:
        if len(text) == 0:
            return []
        try:
            payload = orjson.loads(text)
        except orjson.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON content: {exc}") from exc
        return _validate(self._many, payload)

    def _encode(self, payload: Any) -> str:
        option = orjson.OPT_INDENT_2 if self.indent else 0
        try:
            return orjson.dumps(payload, option=option).decode("utf-8")
        except orjson.JSONEncodeError as exc:
            raise EncodeError(f"Cannot encode value as JSON: {exc}") from exc


class YamlSerializer(Generic[T]):
    """Encode records as a YAML sequence of mappings."""

    extension = ".yaml"
    extensions = (".yaml", ".yml")

    def __init__(self, model: Any, *, indent: int | None = None) -> None:
        if indent is not None and not 2 <= indent <= 9:
            raise ValueError("YAML indent must be between 2 and 9")
        self.model = model
        self.indent = indent
        self._item = TypeAdapter(model)
        self._many = TypeAdapter(list[model])

    def serialize(self, value: T) -> str:
        return self._encode(_dump(self._item, value))

    def serialize_many(self, values: Iterable[T]) -> str:
        return self._encode(_dump(self._many, list(values)))

    def deserialize(self, text: str) -> list[T]:
        if len(text) == 0:
            return []
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DecodeError(f"Invalid YAML content: {exc}") from exc
        # Comment-only or blank documents parse to None, read as an empty collection
        return _validate(self._many, payload)

    def _encode(self, payload: Any) -> str:
        try:
            return yaml.safe_dump(
                payload, allow_unicode=True, sort_keys=False, indent=self.indent
            )
        except yaml.YAMLError as exc:
            raise EncodeError(f"Cannot encode value as YAML: {exc}") from exc


def _dump(adapter: TypeAdapter[Any], value: Any) -> Any:
    try:
        _reject_non_finite(adapter.dump_python(value, by_alias=True, warnings="error"))
        return adapter.dump_python(value, mode="json", by_alias=True, warnings="error")
    except PydanticSerializationError as exc:
        raise EncodeError(f"Cannot serialize value: {exc}") from exc


def _reject_non_finite(payload: Any) -> None:
    # JSON mode turns inf and nan into null, which no longer validates as a float.
    if isinstance(payload, float):
        if not math.isfinite(payload):
            raise EncodeError(f"Cannot encode non-finite float {payload!r}")
    elif isinstance(payload, Mapping):
        for item in payload.values():
            _reject_non_finite(item)
    elif isinstance(payload, (list, tuple, set, frozenset)):
        for item in payload:
            _reject_non_finite(item)


def _validate(adapter: TypeAdapter[list[Any]], payload: Any) -> list[Any]:
    # ``null`` is an empty collection; any other lone value is what ``serialize``
    # emits, read back as a one-element list.
    if payload is None:
        return []
    if not isinstance(payload, list):
        payload = [payload]
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise DecodeError(f"Content does not match the record type: {exc}") from exc


FORMAT_REGISTRY: Mapping[str, type[JsonSerializer[Any]] | type[YamlSerializer[Any]]] = {
    "json": JsonSerializer,
    ".json": JsonSerializer,
    "yaml": YamlSerializer,
    "yml": YamlSerializer,
    ".yaml": YamlSerializer,
    ".yml": YamlSerializer,
}

EXTENSION_REGISTRY: Mapping[str, type[JsonSerializer[Any]] | type[YamlSerializer[Any]]] = {
    ".json": JsonSerializer,
    ".yaml": YamlSerializer,
    ".yml": YamlSerializer,
}


def resolve_serializer(name: str, model: Any, **options: Any) -> Serializer[Any]:
    """Build the serializer registered under ``name`` for ``model``."""
    try:
        serializer_cls = FORMAT_REGISTRY[name.lower()]
    except KeyError as exc:
        raise UnknownFormatError(f"Unsupported format '{name}'") from exc
    return serializer_cls(model, **options)


def infer_serializer(path: Path | str, model: Any, **options: Any) -> Serializer[Any]:
    """Build a serializer for ``model`` based on the extension of ``path``."""
    target = Path(path)
    suffix = target.suffix.lower()
    serializer_cls = EXTENSION_REGISTRY.get(suffix)
    if serializer_cls is None:
        raise UnknownFormatError(
            f"Cannot infer format: file '{target.name}' has unsupported extension '{suffix}'. "
            "Pass format=... explicitly."
        )
    return serializer_cls(model, **options)
