"""Packing and validation of fixed-layout binary structures."""

from __future__ import annotations

import codecs
import struct
from dataclasses import InitVar
from typing import Any, ClassVar, Literal, NamedTuple, TypeVar
from uuid import UUID

from typing_extensions import Annotated, get_args, get_origin, get_type_hints

from .base import TruncatedInputError, ValidationError
from .typing import NoneType

__all__ = ["ByteStruct"]


INT_CONVERSION = {1: "B", 2: "H", 4: "I", 8: "Q"}
SIGNED_SPECIFIERS = ("signed", "unsigned")
GUID_SIZE = 16
TEXT_ERRORS = "surrogatepass"  # keep unpaired UTF-16 surrogates byte-exact
INTERNAL_NAMES = (
    "__bytestruct_fields__",
    "__bytestruct_format__",
    "__bytestruct_size__",
    "__bytestruct_offsets__",
    "__bytestruct_cached__",
)

_Bs = TypeVar("_Bs", bound="ByteStruct")


class _FieldDescriptor(NamedTuple):
    """Metadata about a field of a `ByteStruct`.

    - `type_origin`: Origin of an `Annotated` type (e.g. `bytes` for
        `Annotated[bytes, 4]`) or the according `ByteStruct` subclass if the
        field represents an embedded `ByteStruct`.
    - `type_args`: Tuple of the metadata added to `Annotated` (e.g. `(4,)` for
        `Annotated[bytes, 4]`) if the field has an `Annotated` type, () otherwise.
    - `is_bytestruct`: True if the field represents an embedded `ByteStruct`.
    """

    type_origin: Any
    type_args: tuple[Any, ...] = ()
    is_bytestruct: bool = False


def _int_format(name: str, size: int, args: tuple[Any, ...]) -> str:
    signed = False
    if len(args) > 2:
        if args[2] not in SIGNED_SPECIFIERS:
            raise ValueError(
                f"Invalid specifier {args[2]} on field {name!r}, must be one of "
                f"{SIGNED_SPECIFIERS}"
            )
        signed = args[2] == "signed"
    if size not in INT_CONVERSION:
        raise ValueError(
            f"Invalid int field size {size}, must be one of "
            f"{tuple(INT_CONVERSION.keys())}"
        )
    specifier = INT_CONVERSION[size]
    return specifier.lower() if signed else specifier


def _text_encoding(name: str, args: tuple[Any, ...]) -> str:
    if len(args) < 3 or not isinstance(args[2], str):
        raise ValueError(f"Text field {name!r} must specify an encoding")
    try:
        codecs.lookup(args[2])
    except LookupError as e:
        raise ValueError(f"Unknown encoding {args[2]!r} of field {name!r}") from e
    return args[2]


class _ByteStructMeta(type):
    """Metaclass of `ByteStruct`.

    Analyzes the type annotations found in a `ByteStruct` subclass and sets
    `__bytestruct_fields__`, `__bytestruct_format__`, `__bytestruct_size__` and
    `__bytestruct_offsets__` accordingly.

    - `__bytestruct_fields__` maps field names to `_FieldDescriptor` values.
    - `__bytestruct_format__` is the format string passed to `struct.pack()` and
        `struct.unpack()`.
    - `__bytestruct_size__` is the size of the `bytes` form in bytes.
    - `__bytestruct_offsets__` maps field names to their byte offset.
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> _ByteStructMeta:
        return super().__new__(mcs, name, bases, namespace)

    def __init__(
        cls,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        byteorder: Literal["<", ">", "!", "="] = "<",
    ):
        super().__init__(name, bases, namespace)
        if not bases:
            return  # cls is ByteStruct

        type_hints = get_type_hints(cls, include_extras=True)
        format_ = byteorder
        fields = {}
        offsets = {}

        for name, type_ in type_hints.items():
            if name in INTERNAL_NAMES or type(type_) is InitVar:
                continue

            origin = get_origin(type_)
            if origin is ClassVar:
                continue

            # offsets are exact because byteorder disables native alignment
            offsets[name] = struct.calcsize(format_)

            # Embedded ByteStruct, treat as bytes
            if isinstance(type_, cls.__class__) and type_ is not ByteStruct:
                format_ += f"{len(type_)}s"
                fields[name] = _FieldDescriptor(type_, is_bytestruct=True)
                continue

            if origin is not Annotated:
                raise TypeError(
                    f"Unannotated type {type_} of field {name!r} is not allowed for "
                    f"ByteStruct"
                )

            args = get_args(type_)
            annotated_type = args[0]
            size = args[1]
            if not isinstance(size, int):
                raise TypeError("Field size must be specified as int")
            if size < 1:
                raise ValueError("Field size must be greater than or equal to 1")

            if annotated_type is int:
                format_ += _int_format(name, size, args)
            elif annotated_type is UUID:
                if size != GUID_SIZE:
                    raise ValueError(
                        f"Invalid GUID field size {size}, must be {GUID_SIZE}"
                    )
                format_ += f"{size}s"
            elif annotated_type is str:
                _text_encoding(name, args)
                format_ += f"{size}s"
            elif annotated_type is bytes:
                format_ += f"{size}s"
            elif annotated_type is NoneType:
                format_ += f"{size}x"  # pad bytes
            else:
                raise TypeError(
                    f"Annotated type {annotated_type} of field {name!r} is not "
                    f"allowed for ByteStruct"
                )

            fields[name] = _FieldDescriptor(annotated_type, args[1:])

        cls.__bytestruct_fields__ = fields
        cls.__bytestruct_format__ = format_
        cls.__bytestruct_size__ = struct.calcsize(format_)
        cls.__bytestruct_offsets__ = offsets

    def __len__(cls) -> int:
        """Size of the `bytes` form of the `ByteStruct` in bytes."""
        return cls.__bytestruct_size__


class ByteStruct(metaclass=_ByteStructMeta):
    """Packed binary data with a fixed layout.

    A user-friendly wrapper of a struct according to the `struct` module. Every
    `ByteStruct` subclass must be a frozen `dataclass`.

    Example::

        @dataclasses.dataclass(frozen=True)
        class MyStruct(ByteStruct, byteorder='<'):

            field_1: Annotated[int, 2]                 # unsigned int, 2 bytes
            field_2: Annotated[int, 4, 'signed']       # signed int, 4 bytes
            field_3: Annotated[bytes, 4]               # bytes of size 4
            field_4: Annotated[UUID, 16]               # GUID, mixed endian
            field_5: Annotated[str, 72, 'utf-16le']    # NUL padded text
            field_6: Annotated[None, 8]                # 8 pad bytes

            field_7: MySecondStruct                    # embedded ByteStruct

    GUIDs are stored in the mixed-endian form used by UEFI and Microsoft, which is
    `UUID.bytes_le`. Text fields are encoded with the given encoding and padded with
    NUL bytes; trailing NUL characters are stripped when parsing.

    Custom validation logic can be added by overriding the `validate()` method.
    """

    # Populated per class
    __bytestruct_fields__: "dict[str, _FieldDescriptor]"
    __bytestruct_format__: str
    __bytestruct_size__: int
    __bytestruct_offsets__: "dict[str, int]"

    # Populated per instance
    __bytestruct_cached__: bytes

    @classmethod
    def _check_direct_instantiation(cls) -> None:
        if cls.__bases__ == (object,):
            raise TypeError(f"Cannot directly instantiate {cls.__name__}")

    @classmethod
    def _check_frozen_dataclass(cls) -> None:
        params: Any = getattr(cls, "__dataclass_params__", None)
        if params is None or not params.frozen:
            raise TypeError("ByteStruct subclass must be a frozen dataclass")

    # noinspection PyUnusedLocal
    def __init__(self, *args: Any, **kwargs: Any):
        self._check_direct_instantiation()
        self._check_frozen_dataclass()

    def __post_init__(self) -> None:
        """Triggers the internal and the user-defined validation logic."""
        self._check_frozen_dataclass()
        if not hasattr(self, "__bytestruct_cached__"):
            self._validate_and_cache()
        self.validate()

    def _validate_and_cache(self) -> None:
        """Validate field values against the defined formats and cache the packed
        `bytes` form of the instance.
        """
        values = []

        for name, descriptor in self.__bytestruct_fields__.items():
            type_ = descriptor.type_origin

            # struct.pack() does not expect a value for pad bytes, so skip
            if type_ is NoneType:
                continue

            value = getattr(self, name)

            if descriptor.is_bytestruct:
                values.append(bytes(value))
                continue

            if type_ is UUID:
                values.append(value.bytes_le)
                continue

            if type_ is str:
                size, encoding = descriptor.type_args[0], descriptor.type_args[1]
                try:
                    encoded = value.encode(encoding, TEXT_ERRORS)
                except UnicodeEncodeError as e:
                    raise ValidationError(
                        f"Value of field {name!r} cannot be encoded as {encoding}"
                    ) from e
                if len(encoded) > size:
                    raise ValidationError(
                        f"Value of field {name!r} must be at most {size} bytes long "
                        f"when encoded as {encoding}, got {len(encoded)} bytes"
                    )
                values.append(encoded)  # struct.pack() pads with NUL bytes
                continue

            if type_ is bytes:
                size = descriptor.type_args[0]
                if len(value) != size:
                    raise ValidationError(
                        f"Value of field {name!r} must be of length {size} bytes, "
                        f"got {len(value)} bytes"
                    )

            values.append(value)

        # int values are validated via struct.pack()
        try:
            bytes_ = struct.pack(self.__bytestruct_format__, *values)
        except (struct.error, OverflowError) as e:
            raise ValidationError(
                f"Value out of range (format is {self.__bytestruct_format__!r})"
            ) from e

        # Avoid __setattr__() here because this is a frozen dataclass.
        self.__dict__["__bytestruct_cached__"] = bytes_

    def validate(self) -> None:
        """Custom validation logic.

        Automatically executed after object creation, after validation of the field
        values against their corresponding formats.
        """

    @classmethod
    def from_bytes(cls: type[_Bs], b: bytes) -> _Bs:
        """Parse structure from `bytes`.

        Raises `TruncatedInputError` if `b` is shorter than the structure.
        """
        cls._check_direct_instantiation()

        fields = cls.__bytestruct_fields__
        size = cls.__bytestruct_size__
        b = bytes(b)

        if len(b) < size:
            raise TruncatedInputError(
                f"{cls.__name__} is {size} bytes long, got {len(b)} bytes"
            )
        if len(b) != size:
            raise ValueError(
                f"{cls.__name__} is {size} bytes long, got {len(b)} bytes"
            )

        unpacked_values = struct.unpack(cls.__bytestruct_format__, b)
        values: list[Any] = []
        padding_count = 0

        for index, descriptor in enumerate(fields.values()):
            type_ = descriptor.type_origin
            if type_ is NoneType:
                values.append(None)
                padding_count += 1
                continue

            value = unpacked_values[index - padding_count]
            if descriptor.is_bytestruct:
                value = type_.from_bytes(value)
            elif type_ is UUID:
                value = UUID(bytes_le=value)
            elif type_ is str:
                encoding = descriptor.type_args[1]
                value = value.decode(encoding, TEXT_ERRORS).rstrip("\x00")
            values.append(value)

        self = cls(*values)

        # Keep the original bytes so that parsing and packing is byte-exact.
        self.__dict__["__bytestruct_cached__"] = b
        return self

    @classmethod
    def offset_of(cls, name: str) -> int:
        """Byte offset of field `name` within the `bytes` form of the structure."""
        return cls.__bytestruct_offsets__[name]

    def __bytes__(self) -> bytes:
        """`bytes` form of the `ByteStruct` instance."""
        return self.__bytestruct_cached__

    def __len__(self) -> int:
        """Size of the `bytes` form of the `ByteStruct` in bytes."""
        return self.__bytestruct_size__
