"""
A Field is "fundamental" datatype from the template point of view, something
directly decodable/encodable without sub-components.

Fields are descriptors: they are shared by every record decoded with the same
template and never change after creation, the data lives in the Node instances
they produce.
"""
import logging
import struct
from enum import Enum

from bitstring import BitArray

from .enum import Compliant
from .meta import FieldBase, TypeTag, BYTE_ORDER
from .nodes import Node
from .properties import NodePhase
from .exceptions import (
    ResstructException,
    TemplateMismatch,
    TruncatedData,
    TypeConstraintViolation,
    ValueTooLong,
)


# the character set of the classic Mac OS resources
TEXT_ENCODING = 'mac_roman'


class Field(FieldBase):
    """Base class to subclass from"""
    tag = None
    is_leaf = True

    def __init__(self, default=None, description=None, compliant=Compliant.INHERIT):
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self.default = default
        self.description = description
        self.compliant = compliant

    def __repr__(self):
        return '<%s()>' % self.__class__.__name__

    def value_from_default(self):
        return self.default

    @property
    def min_size(self) -> int:
        '''The least number of bytes a valid instance of this field takes.'''
        raise NotImplementedError(f"method {self.__class__.__name__}.min_size not implemented")

    def size_of(self, node) -> int:
        return len(node.raw)

    def create(self, father=None, name=None) -> Node:
        '''Build a node holding the default value.'''
        node = Node(self, name=name, father=father)
        node.raw = self.encode(self.value_from_default())
        node._phase = NodePhase.DONE

        return node

    def read(self, stream) -> bytes:
        '''Consume from the stream the bytes belonging to this field.'''
        raise NotImplementedError(f"method {self.__class__.__name__}.read() not implemented")

    def check(self, node):
        '''Hook to validate a freshly decoded node.'''
        pass

    def unpack(self, stream, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node._phase = NodePhase.DECODING
        node.offset = stream.tell()

        try:
            node.raw = self.read(stream)
            self.check(node)
        except ResstructException as e:
            # we want to point to the start of the field
            e.offset = node.offset
            raise

        node._phase = NodePhase.DONE

        return node

    def get_value(self, node):
        return self._unpack(node.raw)

    def get_label(self, node):
        return None

    def _unpack(self, raw: bytes):
        raise NotImplementedError(f"method {self.__class__.__name__}._unpack() not implemented")

    def _pack(self, value) -> bytes:
        raise NotImplementedError(f"method {self.__class__.__name__}._pack() not implemented")

    def validate(self, value):
        '''Check the value is acceptable for this field and return it normalized.'''
        return value

    def encode(self, value) -> bytes:
        return self._pack(self.validate(value))

    def pack(self, node) -> bytes:
        return node.raw

    def relayout(self, node, offset):
        node.offset = offset

        return node.size

    def update(self, node):
        '''This is used to update the binary value before encoding'''
        pass

    def dependency_changed(self, node, source):
        '''Called when the value of a node this one depends on has been set.'''
        pass


class StructField(Field):
    """
    Simplest of the fields: mimic the behaviour of the struct module packing/unpacking
    integers to/from bytes, always big-endian.
    """
    FORMAT = None

    def __init__(self, format=None, default=0, **kw):
        self.format = format or self.FORMAT
        if self.format is None:
            raise ValueError(f"{self.__class__.__name__} needs a format")
        super().__init__(default=default, **kw)

    def __repr__(self):
        return "<%s('%s')>" % (self.__class__.__name__, self.format)

    def get_format(self):
        return '%s%s' % (BYTE_ORDER, self.format)

    @property
    def width(self) -> int:
        return struct.calcsize(self.get_format())

    @property
    def signed(self) -> bool:
        return self.format.islower()

    @property
    def bounds(self):
        bits = self.width * 8
        if self.signed:
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1

        return 0, (1 << bits) - 1

    @property
    def min_size(self) -> int:
        return self.width

    def read(self, stream) -> bytes:
        return stream.read_exactly(self.width)

    def _unpack(self, raw: bytes) -> int:
        return struct.unpack(self.get_format(), raw)[0]

    def _pack(self, value) -> bytes:
        return struct.pack(self.get_format(), value)

    def validate(self, value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeConstraintViolation(
                message='%s expects an integer, not %s' % (self.__class__.__name__, type(value).__name__))

        low, high = self.bounds
        if not low <= value <= high:
            raise TypeConstraintViolation(
                message='%d is out of the range [%d, %d] of %s' % (value, low, high, self.__class__.__name__))

        return value


class Int8(StructField):
    tag = TypeTag.INT8
    FORMAT = 'b'


class UInt8(StructField):
    tag = TypeTag.UINT8
    FORMAT = 'B'


class Int16(StructField):
    tag = TypeTag.INT16
    FORMAT = 'h'


class UInt16(StructField):
    tag = TypeTag.UINT16
    FORMAT = 'H'


class Int32(StructField):
    tag = TypeTag.INT32
    FORMAT = 'i'


class UInt32(StructField):
    tag = TypeTag.UINT32
    FORMAT = 'I'


class Int64(StructField):
    tag = TypeTag.INT64
    FORMAT = 'q'


class UInt64(StructField):
    tag = TypeTag.UINT64
    FORMAT = 'Q'


class EnumField(StructField):
    """An integer with a symbolic name attached to some of its values.

    The names can be passed as a dictionary or via the "enum" argument as
    some subclass of enum.Enum. A value without a name is accepted anyway
    unless the field (or one of its fathers) is compliant with Compliant.ENUM.
    """
    tag = TypeTag.ENUM

    def __init__(self, format='B', names=None, enum=None, default=None, **kw):
        if enum is not None:
            names = {_.value: _.name for _ in enum}
        self.names = dict(names or {})
        self._values = {label: value for value, label in self.names.items()}

        if default is None:
            default = next(iter(self.names), 0)
        elif isinstance(default, Enum):
            default = default.value

        super().__init__(format, default=default, **kw)

    def __repr__(self):
        return "<%s('%s', %d names)>" % (self.__class__.__name__, self.format, len(self.names))

    def get_label(self, node):
        return self.names.get(node.value)

    def check(self, node):
        value = node.value
        if value in self.names:
            return

        if node.is_compliant(Compliant.ENUM):
            raise TemplateMismatch(chain=[], message='value 0x%x has no name' % value)

        self.logger.warning(f'enum {self.__class__.__name__} doesn\'t have element with value 0x{value:x} in it')

    def validate(self, value):
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, str):
            if value not in self._values:
                raise TypeConstraintViolation(message='\'%s\' is not a known name' % value)
            value = self._values[value]

        return super().validate(value)


class BitmaskField(StructField):
    """An integer where each bit (or group of bits) is a flag on its own.

    The flags are given as a dictionary from the mask to its name; the
    label of a node lists the names of the bits set, starting from the
    least significant one.
    """
    tag = TypeTag.BITMASK

    def __init__(self, format='B', flags=None, **kw):
        self.flags = dict(flags or {})
        self._masks = {label: mask for mask, label in self.flags.items()}
        super().__init__(format, **kw)

    def get_label(self, node):
        bits = BitArray(node.raw)
        labels = []
        for position in reversed(list(bits.findall('0b1'))):
            mask = 1 << (len(bits) - 1 - position)
            labels.append(self.flags.get(mask, '0x%x' % mask))

        return labels

    def validate(self, value):
        if isinstance(value, (list, tuple, set, frozenset)):
            mask = 0
            for label in value:
                if label not in self._masks:
                    raise TypeConstraintViolation(message='\'%s\' is not a known flag' % label)
                mask |= self._masks[label]
            value = mask

        return super().validate(value)


class Boolean(StructField):
    """A boolean stored in one or two bytes.

    The classic two-bytes BOOL keeps the flag in the high byte, so
    it's true when the stored integer is at least 0x100.
    """
    tag = TypeTag.BOOLEAN

    def __init__(self, width=1, true_value=None, default=False, **kw):
        formats = {1: 'B', 2: 'H'}
        if width not in formats:
            raise ValueError('Boolean must be one or two bytes wide')

        self.true_value = true_value if true_value is not None else (1 if width == 1 else 0x100)
        super().__init__(formats[width], default=default, **kw)

    def _unpack(self, raw: bytes) -> bool:
        return super()._unpack(raw) >= self.true_value

    def _pack(self, value) -> bytes:
        return super()._pack(self.true_value if value else 0)

    def validate(self, value):
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)

        raise TypeConstraintViolation(message='%r is not a boolean' % (value,))


class Padding(Enum):
    '''How many bytes are appended to a string to align it'''
    NONE = 'none'
    ODD  = 'odd'
    EVEN = 'even'

    def length(self, current):
        if self == Padding.ODD:
            return (current + 1) % 2
        if self == Padding.EVEN:
            return current % 2

        return 0


class StringField(Field):
    '''Base class for the text fields, the value is a str.'''

    def __init__(self, default='', **kw):
        super().__init__(default=default, **kw)

    def __repr__(self):
        return '<%s()>' % self.__class__.__name__

    def to_bytes(self, value) -> bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if not isinstance(value, str):
            raise TypeConstraintViolation(message='%s expects a string, not %s' % (
                self.__class__.__name__, type(value).__name__))

        try:
            return value.encode(TEXT_ENCODING)
        except UnicodeEncodeError as e:
            raise TypeConstraintViolation(message='%r cannot be encoded as %s' % (value, TEXT_ENCODING)) from e

    def validate(self, value):
        return self.to_bytes(value)


class FixedString(StringField):
    """Contains exactly length characters: the unused bytes are part of the value
    so that they are written back as they were."""
    tag = TypeTag.FIXED_STRING

    def __init__(self, length, **kw):
        if length <= 0:
            raise ValueError("FixedString must have a positive length")
        self.length = length
        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%d)>' % (self.__class__.__name__, self.length)

    def __len__(self):
        return self.length

    @property
    def min_size(self) -> int:
        return self.length

    def read(self, stream) -> bytes:
        return stream.read_exactly(self.length)

    def _unpack(self, raw: bytes) -> str:
        return raw.decode(TEXT_ENCODING)

    def _pack(self, value: bytes) -> bytes:
        if len(value) > self.length:
            raise ValueTooLong(message='%d characters don\'t fit in %d' % (len(value), self.length))

        return value.ljust(self.length, b'\x00')


class PString(StringField):
    """Pascal string: one byte with the length followed by the characters."""
    tag = TypeTag.PSTRING
    MAX_LENGTH = 0xff

    def __init__(self, padding=Padding.NONE, **kw):
        self.padding = padding
        super().__init__(**kw)

    @property
    def min_size(self) -> int:
        return 1 + self.padding.length(1)

    def read(self, stream) -> bytes:
        prefix = stream.read_exactly(1)
        length = prefix[0]
        data = stream.read_exactly(length)

        return prefix + data + stream.read_exactly(self.padding.length(1 + length))

    def _unpack(self, raw: bytes) -> str:
        return raw[1:1 + raw[0]].decode(TEXT_ENCODING)

    def _pack(self, value: bytes) -> bytes:
        length = len(value)
        if length > self.MAX_LENGTH:
            raise ValueTooLong(message='%d characters don\'t fit in a pascal string' % length)

        return bytes([length]) + value + b'\x00' * self.padding.length(1 + length)


class CString(StringField):
    """Null terminated string.

    The padding can be a Padding or an integer, in the latter case the field
    takes always that many bytes and the string is at most one less.
    """
    tag = TypeTag.CSTRING

    def __init__(self, padding=Padding.NONE, **kw):
        if isinstance(padding, int) and padding <= 0:
            raise ValueError("CString fixed size must be positive")
        self.padding = padding
        super().__init__(**kw)

    def __repr__(self):
        if self.fixed:
            return '<%s(%d)>' % (self.__class__.__name__, self.padding)

        return '<%s(%s)>' % (self.__class__.__name__, self.padding.value)

    @property
    def fixed(self) -> bool:
        return not isinstance(self.padding, Padding)

    @property
    def min_size(self) -> int:
        if self.fixed:
            return self.padding

        return 1 + self.padding.length(1)

    def read(self, stream) -> bytes:
        if self.fixed:
            return stream.read_exactly(self.padding)

        end = stream.peek_all().find(b'\x00')
        if end < 0:
            raise TruncatedData(chain=[], message='the string is not terminated', offset=stream.tell())

        return stream.read_exactly(end + 1 + self.padding.length(end + 1))

    def _end(self, raw: bytes) -> int:
        if self.fixed:
            end = raw.find(b'\x00', 0, self.padding - 1)
            return end if end >= 0 else self.padding - 1

        return raw.find(b'\x00')

    def _unpack(self, raw: bytes) -> str:
        return raw[:self._end(raw)].decode(TEXT_ENCODING)

    def _pack(self, value: bytes) -> bytes:
        if b'\x00' in value:
            raise TypeConstraintViolation(message='a C string cannot contain a null character')

        if self.fixed:
            if len(value) > self.padding - 1:
                raise ValueTooLong(message='%d characters don\'t fit in %d' % (len(value), self.padding - 1))
            return value.ljust(self.padding, b'\x00')

        return value + b'\x00' + b'\x00' * self.padding.length(len(value) + 1)


class Bytes(Field):
    '''Opaque data: n bytes or, if not indicated, takes as much stream as possible'''
    tag = TypeTag.BYTES

    def __init__(self, n=None, **kw):
        self.n = n
        kw.setdefault('default', b'\x00' * (n or 0))
        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, self.n if self.n is not None else '*')

    @property
    def min_size(self) -> int:
        return self.n or 0

    def read(self, stream) -> bytes:
        if self.n is None:
            return stream.read_all()

        return stream.read_exactly(self.n)

    def _unpack(self, raw: bytes) -> bytes:
        return raw

    def _pack(self, value: bytes) -> bytes:
        return value

    def validate(self, value):
        if not isinstance(value, (bytes, bytearray)):
            raise TypeConstraintViolation(message='%s expects bytes, not %s' % (
                self.__class__.__name__, type(value).__name__))

        if self.n is not None and len(value) != self.n:
            raise TypeConstraintViolation(message='expected exactly %d bytes' % self.n)

        return bytes(value)
