"""
The interpreter of templates: decode() applies a template to the bytes of a
resource obtaining a Record, the editable tree of its fields, and encode()
flattens it back.

Decoding doesn't need to consume all the data: the bytes the template doesn't
describe are kept as they are and appended when encoding, so that without
modifications

    encode(decode(template, data)) == data
"""
import logging
from typing import Iterator, List

from .core import Template
from .enum import Compliant
from .events import ChangeEvent, Observable
from .groups import Group
from .nodes import Node
from .streams import Stream
from .properties import NodePhase
from .exceptions import (
    ResstructException,
    TemplateMismatch,
    TypeConstraintViolation,
)


logger = logging.getLogger(__name__)


class Record(Observable):
    '''The decoded instance of a resource.

    It must be modified only via set_value(), insert() and remove() so that
    the values are validated and the observers notified.'''

    def __init__(self, template: Template, root: Node, trailing=b''):
        super().__init__()
        self.template = template
        self.root = root
        self.trailing = trailing

    def __repr__(self):
        msg = []
        for child in self.root.children:
            msg.append('%s=%r' % (child.name, child.value))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __getitem__(self, path):
        return self.get_value(path)

    @property
    def value(self):
        return self.root.value

    @property
    def size(self) -> int:
        return self.root.size + len(self.trailing)

    def node(self, path) -> Node:
        '''Find a node from its path, a dotted string or a list of components.'''
        if isinstance(path, str):
            components = path.split('.') if path else []
        else:
            components = [str(_) for _ in path]

        node = self.root
        for component in components:
            node = node.child(component)

        return node

    def get_value(self, path):
        return self.node(path).value

    def walk(self) -> Iterator[Node]:
        return self.root.walk()

    def bindings(self) -> List[dict]:
        return [node.binding() for node in self.walk() if node is not self.root]

    def relayout(self):
        return self.root.relayout(offset=0)

    def set_value(self, path, value):
        '''Validate and set the value of a single field.

        If the value is not acceptable an exception is raised and the
        record is left untouched.'''
        node = self.node(path)

        if not node.is_leaf:
            raise TypeConstraintViolation(
                chain=node.chain,
                message='only scalar fields can be set',
                offset=node.offset)

        groups = [_ for _ in node.derived_by if _.attached]
        if groups:
            raise TypeConstraintViolation(
                chain=node.chain,
                message='the value is the number of elements of \'%s\'' % groups[0].path,
                offset=node.offset)

        try:
            raw = node.field.encode(value)
        except ResstructException as e:
            e.chain = node.chain
            e.offset = node.offset
            raise

        old = node.value
        # a different encoding of the same value (a non canonical boolean) is kept
        if raw == node.raw or node.field._unpack(raw) == old:
            return

        node.raw = raw
        logger.debug('set \'%s\' from %r to %r' % (node.path, old, node.value))

        for dependent in list(node.dependents):
            if dependent.attached:
                dependent.field.dependency_changed(dependent, node)

        self.relayout()
        self.emit(ChangeEvent(node.path, old, node.value))

    def _group(self, path) -> Node:
        node = self.node(path)
        if not isinstance(node.field, Group):
            raise TypeConstraintViolation(chain=node.chain, message='not a group')

        return node

    def insert(self, path, index=None) -> Node:
        '''Add an element with default values to the group at path.'''
        node = self._group(path)
        element = node.field.insert(node, index)

        self.relayout()
        self.emit(ChangeEvent(element.path, None, element.value, kind=ChangeEvent.INSERT))

        return element

    def remove(self, path, index):
        node = self._group(path)
        element = node.field.remove(node, index)

        self.relayout()
        self.emit(ChangeEvent('%s.%d' % (node.path, index), element.value, None, kind=ChangeEvent.REMOVE))

    def encode(self) -> bytes:
        self.root._phase = NodePhase.ENCODING
        self.template.update(self.root)
        self.relayout()

        data = self.root.raw + self.trailing

        self.root._phase = NodePhase.DONE

        return data


def decode(template: Template, buffer, compliant=Compliant.NONE) -> Record:
    '''This is one of the main APIs: its aim is to take binary data and
    transform it into the tree of nodes described by the template.

    It fails at the first field that doesn't match, the exception indicates
    the path of the field and its offset.'''
    stream = buffer if isinstance(buffer, Stream) else Stream(buffer)

    root = Node(template)
    root.compliant = compliant
    root.offset = stream.tell()

    logger.debug('decoding %r from %s' % (template, stream))

    template.unpack_into(root, stream)

    trailing = stream.read_all()
    if trailing:
        if root.is_compliant(Compliant.TRAILING):
            raise TemplateMismatch(
                chain=[],
                message='%d bytes are not described by the template' % len(trailing),
                offset=stream.tell() - len(trailing))

        logger.debug('keeping %d trailing bytes' % len(trailing))

    return Record(template, root, trailing)


def encode(record: Record) -> bytes:
    return record.encode()


def create(template: Template) -> Record:
    '''Build a new record with the default values of the template.'''
    root = Node(template)
    template.create_into(root)

    record = Record(template, root)
    record.relayout()

    return record
