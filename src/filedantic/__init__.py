"""
Single-file record stores powered by Pydantic.

The public API centers around :class:`FileStore`, which keeps an ordered
collection of typed records in one file, and the :class:`Serializer`
capability that turns those records into text (JSON or YAML out of the box).
"""

from .exceptions import DecodeError, EncodeError, FiledanticError, StoreIOError, UnknownFormatError
from .serializers import JsonSerializer, Serializer, YamlSerializer
from .store import FileStore, OpenMode

__all__ = (
    "DecodeError",
    "EncodeError",
    "FileStore",
    "FiledanticError",
    "JsonSerializer",
    "OpenMode",
    "Serializer",
    "StoreIOError",
    "UnknownFormatError",
    "YamlSerializer",
)
