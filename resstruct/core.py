"""
Core module for the abstraction of a template
"""
import logging
from typing import Dict, List, Tuple

from .fields import Field
from .meta import MetaTemplate, TypeTag
from .nodes import Node
from .properties import NodePhase
from .exceptions import ResstructException


logger = logging.getLogger(__name__)


class Structure(Field):
    '''Base class for the fields made of sub-fields: their bytes are the
    concatenation of the ones of the children, their size the sum of the sizes.'''
    is_leaf = False
    prefix_size = 0

    def get_value(self, node) -> Dict[str, object]:
        return {child.name: child.value for child in node.children}

    def size_of(self, node) -> int:
        '''the size MUST not be set but MUST be derived from the children'''
        size = self.prefix_size
        for child in node.children:
            size += child.size

        return size + len(node.trailing)

    def pack(self, node) -> bytes:
        value = b''
        for child in node.children:
            child_raw = child.raw
            self.logger.debug("field '%s' raw=%s", child.path, child_raw)
            value += child_raw

        return value + node.trailing

    def relayout(self, node, offset):
        '''This method resets the offsets of the children, it's like encoding
        but it's only interested in the sizes of the nodes.'''
        node.offset = offset

        size = self.prefix_size
        for child in node.children:
            size += child.relayout(offset=offset + size)

        return size + len(node.trailing)

    def update(self, node):
        for child in node.children:
            child.field.update(child)

    def encode(self, value):
        raise TypeError(f'{self.__class__.__name__} has no scalar value to encode')


class Template(Structure, metaclass=MetaTemplate):
    """
    Together with Field is the main class that defines a layout: it's an ordered
    sequence of named fields, decoded one after the other from the same cursor.

    A Template can be used as a field of another Template (a composite), in that
    case its node contains a child for each field.

    Fields can be declared in the body of a subclass

        class Rect(Template):
            top    = fields.Int16()
            left   = fields.Int16()
            bottom = fields.Int16()
            right  = fields.Int16()

    or passed to the constructor as a list of couples (name, field).

    Templates are never modified after creation so the same instance can be
    shared by any number of records.
    """
    tag = TypeTag.COMPOSITE

    def __init__(self, fields=None, **kwargs):
        super().__init__(**kwargs)

        self.fields: List[Tuple[str, Field]] = list(self._meta.fields.items())

        if isinstance(fields, dict):
            fields = fields.items()

        for name, field in fields or []:
            if not isinstance(field, Field):
                raise ValueError(f"'{name}' must be a Field, not {field.__class__.__name__}")
            if name in self.names:
                raise ValueError(f"field '{name}' is already present in {self!r}")
            self.fields.append((name, field))

    def __repr__(self):
        msg = []
        for field_name, field in self.fields:
            msg.append('%s=%s' % (field_name, repr(field)))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __len__(self):
        return len(self.fields)

    @property
    def names(self) -> List[str]:
        return [_ for _, __ in self.fields]

    def field(self, name) -> Field:
        for field_name, field in self.fields:
            if field_name == name:
                return field

        raise KeyError(name)

    @property
    def min_size(self) -> int:
        return sum(field.min_size for _, field in self.fields)

    def create(self, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        self.create_into(node)

        return node

    def create_into(self, node):
        '''Append to node a child with the default value for each field.'''
        for field_name, field in self.fields:
            node.children.append(field.create(father=node, name=field_name))

        node._phase = NodePhase.DONE

    def unpack(self, stream, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node.offset = stream.tell()
        self.unpack_into(node, stream)

        return node

    def unpack_into(self, node, stream):
        '''Decode each field in order, appending the children to node.

        The children are appended as soon as they are decoded so that the
        following ones can refer to them. When a field fails its name is
        added to the chain of the exception, that continues up to the caller.'''
        node._phase = NodePhase.DECODING
        for field_name, field in self.fields:
            self.logger.debug('unpacking %s.%s at offset 0x%x' % (self.__class__.__name__, field_name, stream.tell()))

            try:
                child = field.unpack(stream, father=node, name=field_name)
            except ResstructException as e:
                e.chain.insert(0, field_name)
                raise

            node.children.append(child)

        node._phase = NodePhase.DONE
