from __future__ import annotations

import codecs
import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Generic, Literal, TypeVar

from .exceptions import DecodeError, EncodeError, StoreIOError
from .serializers import Serializer, infer_serializer, resolve_serializer

T = TypeVar("T")
OpenMode = Literal["strict", "create-if-missing"]

# ``a+b`` creates the file when absent; writes always land at the end, which
# is offset zero once the file has been truncated.
FILE_MODES: Mapping[str, str] = {
    "strict": "r+b",
    "create-if-missing": "a+b",
}

logger = logging.getLogger(__name__)


class FileStore(Generic[T]):
    """Ordered collection of records persisted to a single file.

    Parameters
    ----------
    path:
        File holding the serialized collection. Nothing is touched on disk
        until the first operation.
    serializer:
        Any object implementing :class:`~filedantic.serializers.Serializer`.
    mode:
        ``"strict"`` fails with :class:`StoreIOError` when the file is missing;
        ``"create-if-missing"`` creates an empty file instead.
    encoding:
        Text encoding used between the serializer and the raw bytes.

    Every operation opens the file, acts on it and closes it again. Mutations
    rewrite the whole file. There is no locking: two stores appending to the
    same path at the same time can lose one of the values.
    """

    def __init__(
        self,
        path: Path | str,
        serializer: Serializer[T],
        *,
        mode: OpenMode = "create-if-missing",
        encoding: str = "utf-8",
    ) -> None:
        if mode not in FILE_MODES:
            raise ValueError(
                f"Unsupported open mode '{mode}'; expected one of {', '.join(FILE_MODES)}"
            )
        try:
            codecs.lookup(encoding)
        except LookupError as exc:
            raise ValueError(f"Unknown text encoding '{encoding}'") from exc
        self.path = Path(path).expanduser()
        self.serializer = serializer
        self.mode = mode
        self.encoding = encoding

    @classmethod
    def for_model(
        cls,
        model: Any,
        path: Path | str,
        *,
        format: str | None = None,
        mode: OpenMode = "create-if-missing",
        encoding: str = "utf-8",
        **options: Any,
    ) -> FileStore[Any]:
        """Build a store for ``model``, picking the serializer by name or extension."""
        serializer = (
            resolve_serializer(format, model, **options)
            if format is not None
            else infer_serializer(path, model, **options)
        )
        return cls(path, serializer, mode=mode, encoding=encoding)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r}, mode={self.mode!r})"

    # Whole-file operations ---------------------------------------------
    def read(self) -> list[T]:
        with self._open() as fh:
            try:
                content = fh.read()
            except OSError as exc:
                raise self._io_error("read", exc) from exc
        try:
            records = self.serializer.deserialize(content.decode(self.encoding))
        except UnicodeDecodeError as exc:
            logger.warning("Store file %s is not valid %s text", self.path, self.encoding)
            raise DecodeError(f"'{self.path}' is not valid {self.encoding} text") from exc
        except DecodeError:
            logger.warning("Could not decode store file %s", self.path)
            raise
        logger.debug("Read %d record(s) from %s", len(records), self.path)
        return records

    def write_one(self, value: T) -> None:
        """Append ``value`` by rewriting the file with the extended collection."""
        records = self.read()
        records.append(value)
        self.replace_all(records)

    def replace_all(self, values: Iterable[T]) -> None:
        """Replace the file content with ``values``.

        The text is fully encoded before the file is opened, so an
        :class:`EncodeError` leaves the previous content in place.
        """
        records = list(values)
        text = self.serializer.serialize_many(records)
        try:
            payload = text.encode(self.encoding)
        except UnicodeEncodeError as exc:
            raise EncodeError(f"Serialized records are not representable as {self.encoding}") from exc
        with self._open() as fh:
            try:
                fh.truncate(0)
                fh.write(payload)
                fh.flush()
            except OSError as exc:
                raise self._io_error("write", exc) from exc
        logger.debug("Wrote %d record(s) to %s", len(records), self.path)

    def delete_all(self) -> None:
        with self._open() as fh:
            try:
                fh.truncate(0)
            except OSError as exc:
                raise self._io_error("truncate", exc) from exc
        logger.debug("Cleared %s", self.path)

    # Conveniences ------------------------------------------------------
    def count(self) -> int:
        return len(self.read())

    def exists(self) -> bool:
        return self.path.is_file()

    def __iter__(self) -> Iterator[T]:
        return iter(self.read())

    # Internal helpers --------------------------------------------------
    @contextmanager
    def _open(self) -> Iterator[IO[bytes]]:
        try:
            fh = self.path.open(FILE_MODES[self.mode])
        except OSError as exc:
            raise self._io_error("open", exc) from exc
        with fh:
            fh.seek(0)
            yield fh

    def _io_error(self, action: str, exc: OSError) -> StoreIOError:
        logger.warning("Failed to %s store file %s: %s", action, self.path, exc)
        return StoreIOError(
            exc.errno,
            f"Cannot {action} store file: {exc.strerror or exc}",
            str(self.path),
        )
