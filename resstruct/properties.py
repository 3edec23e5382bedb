import logging
from enum import Enum, auto
from typing import List, Tuple

from .exceptions import UnknownFieldPath


class NodePhase(Enum):
    '''Enum to state the actual phase of a node'''
    INIT        = 0
    DECODING    = auto()
    RELAYOUTING = auto()
    ENCODING    = auto()
    DONE        = auto()


def get_root_from_node(instance):
    return get_instance_from_node(instance, condition=lambda x: x.father is None)


def get_instance_from_node(instance, condition):
    is_root = condition(instance)
    father = instance

    while not is_root:
        father = instance.father

        is_root = condition(father)
        instance = father

    return father


class Dependency:
    '''This makes the relation between fields possible.

    The relation is defined in one direction (for decoding) and
    must be reversed during the encoding phase: a group reads its
    number of repetitions from another field and writes it back
    when the record is encoded.

    In practice this class allows to write something like

        class StringList(Template):
            count = fields.UInt16()
            strings = groups.Group(Item(), count=Dependency('.count'))

    and have the number of repetitions of 'strings' strictly connected
    to the field named 'count'.

    The syntax for defining the expression is inspired from module resolution:

     - '.' indicates we refer to a field at the same level
     - each additional leading '.' climbs up one level
     - no leading '.' means the path starts from the root of the record

    Components can be names of fields or indexes of repetitions.
    '''
    def __init__(self, expression):
        self.expression = expression
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression})>'

    def _split(self) -> Tuple[int, List[str]]:
        components = self.expression.split('.')
        # '.miao'.split(".") -> ['', 'miao']
        # 'miao'.split(".") -> ['miao']
        levels = 0
        while levels < len(components) - 1 and components[levels] == '':
            levels += 1

        return levels, components[levels:]

    def resolve_node(self, instance):
        '''Find the node this dependency refers to, with respect to the node
        passed as argument.'''
        self.logger.debug('trying to resolve \'%s\' from \'%s\'' % (self.expression, instance.path))

        levels, components = self._split()

        if levels == 0:
            node = get_root_from_node(instance)
        else:
            node = instance
            for _ in range(levels):
                node = node.father
                if node is None:
                    raise UnknownFieldPath(
                        chain=[],
                        message='expression \'%s\' climbs over the root' % self.expression)

        for component in components:
            node = node.child(component)

        self.logger.debug(' resolved as node \'%s\'' % node.path)

        return node

    def evaluate(self, node):
        return node.value

    def resolve(self, instance):
        '''With this method we resolve the value with respect to the node
        passed as argument.'''
        return self.evaluate(self.resolve_node(instance))

    def inverse(self, value):
        """Returns the value to be stored back into the referenced field"""
        return value


class OffsetDependency(Dependency):
    '''The referenced field stores the value shifted by a constant, like
    the zero-based counters that store the number of elements minus one.'''

    def __init__(self, bias, expression):
        super().__init__(expression)
        self._bias = bias

    def __repr__(self):
        return f'<{self.__class__.__name__}({self._bias:+d}, {self.expression})>'

    def evaluate(self, node):
        return super().evaluate(node) + self._bias

    def inverse(self, value):
        return value - self._bias


class Condition(Dependency):
    '''Evaluates to a boolean the value of the referenced field.

    You can pass the value it must be equal to, a collection of
    acceptable values or a callable.'''

    def __init__(self, expression, equals=None, values=None, test=None):
        super().__init__(expression)

        if sum(_ is not None for _ in (equals, values, test)) != 1:
            raise ValueError('Condition needs exactly one of equals, values or test')

        if equals is not None:
            values = (equals,)

        self.values = tuple(values) if values is not None else None
        self.test = test

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression} in {self.values!r})>'

    def evaluate(self, node):
        value = node.value
        if self.test is not None:
            return bool(self.test(value))

        return value in self.values
