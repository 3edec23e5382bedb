"""
A Node is an element of the decoded tree: each node refers to the field of the
template that produced it and carries the data and the position of a portion
of the resource.

Leaf nodes keep the raw bytes they were decoded from and derive their value
from them, so that an untouched field always encodes back to the same bytes;
structural nodes (composites, groups, sections) have children instead and
their bytes are the concatenation of the children's ones.
"""
import logging
from typing import Dict, Iterator, List, Tuple

from .enum import Compliant
from .exceptions import UnknownFieldPath
from .properties import NodePhase, get_root_from_node


class Node(object):

    def __init__(self, field, name=None, father=None):
        self.logger = logging.getLogger(__name__)
        self._phase = NodePhase.INIT
        self.field = field
        self.name = name
        self.father = father
        self.offset = None
        self.compliant = field.compliant
        self.children: List["Node"] = []
        self.trailing = b''
        self._raw = None
        # nodes whose shape depends on the value of this one
        self.dependents: List["Node"] = []
        # the groups that store their number of repetitions here
        self.derived_by: List["Node"] = []
        # the nodes this one is registered on, as dependent or as deriving group
        self.sources: List["Node"] = []
        # the key a Select node has chosen its section with
        self.selected = None

    def __repr__(self):
        if self.is_leaf:
            return '<%s(%s=%r)>' % (self.__class__.__name__, self.name, self.value)

        return '<%s(%s, %d children)>' % (self.__class__.__name__, self.name, len(self.children))

    def __str__(self):
        return str(self.value)

    def __len__(self):
        return len(self.children)

    def __iter__(self):
        return iter(self.children)

    def __getitem__(self, key):
        return self.child(key)

    @property
    def tag(self):
        return self.field.tag

    @property
    def is_leaf(self) -> bool:
        return self.field.is_leaf

    @property
    def root(self):
        '''Obtain the final father of this node'''
        return get_root_from_node(self)

    @property
    def chain(self) -> List[str]:
        chain = []
        instance = self
        while instance.father is not None:
            chain.insert(0, instance.name)
            instance = instance.father

        return chain

    @property
    def path(self) -> str:
        return '.'.join(self.chain)

    def child(self, key):
        '''Return the child with the given name; repetitions are
        addressed by their index.'''
        key = str(key)
        for child in self.children:
            if child.name == key:
                return child

        raise UnknownFieldPath(chain=self.chain + [key], message='no such field')

    def is_compliant(self, level):
        '''Returns the compliant'''
        instance = self
        while instance is not None:
            if instance.compliant & level:
                return True
            if not instance.compliant & Compliant.INHERIT:
                break

            instance = instance.father

        return False

    def _get_value(self):
        return self.field.get_value(self)

    value = property(fget=lambda self: self._get_value())

    @property
    def label(self):
        return self.field.get_label(self)

    def _get_raw(self) -> bytes:
        if self.is_leaf:
            return self._raw

        return self.field.pack(self)

    def _set_raw(self, raw: bytes) -> None:
        if not self.is_leaf:
            raise AttributeError('raw data of \'%s\' is derived from its children' % self.path)

        self._raw = raw

    raw = property(
        fget=lambda self: self._get_raw(),
        fset=lambda self, value: self._set_raw(value),
    )

    @property
    def size(self) -> int:
        return self.field.size_of(self)

    def relayout(self, offset=0):
        '''Reset the offsets of this node and of its descendants, returning the size'''
        phase_old = self._phase
        self._phase = NodePhase.RELAYOUTING

        size = self.field.relayout(self, offset)

        self._phase = phase_old

        return size

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        result = {}
        for child in self.children:
            result[child.name] = (child.offset, child.size)

        return result

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def attached(self) -> bool:
        '''False once this node, or one of its fathers, is not a child of its father anymore.'''
        instance = self
        while instance.father is not None:
            if not any(_ is instance for _ in instance.father.children):
                return False
            instance = instance.father

        return True

    def depend_on(self, source, derived=False):
        '''Register this node on source: as a dependent, or as one of the
        groups whose count source stores.'''
        registry = source.derived_by if derived else source.dependents
        if self not in registry:
            registry.append(self)
        if source not in self.sources:
            self.sources.append(source)

    def release(self):
        '''Unregister this node and its descendants from the nodes they
        depend on; it must be called when the subtree leaves the record.'''
        for node in self.walk():
            for source in node.sources:
                if node in source.dependents:
                    source.dependents.remove(node)
                if node in source.derived_by:
                    source.derived_by.remove(node)
            node.sources = []

    def binding(self) -> dict:
        '''What the presentation layer needs to know to display this node.'''
        return {
            'path': self.path,
            'type_tag': self.tag,
            'value': self.value,
            'offset': self.offset,
            'size': self.size,
        }
