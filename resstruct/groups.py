"""
Fields made of a variable number of sub-templates: the data decides how many
times (or if at all) a template is repeated, which template is used, or how
many bytes a block of fields takes.
"""
import struct
from enum import Enum, Flag, auto

from .core import Structure, Template
from .meta import TypeTag, BYTE_ORDER
from .nodes import Node
from .streams import Stream
from .properties import Dependency, Condition, NodePhase
from .exceptions import (
    ResstructException,
    TemplateMismatch,
    InvalidRepeatCount,
    TypeConstraintViolation,
    UnknownFieldPath,
    ValueTooLong,
)


def as_template(template) -> Template:
    if isinstance(template, Template):
        return template

    return Template(template)


def as_dependency(expression, cls=Dependency):
    if expression is None or isinstance(expression, Dependency):
        return expression

    return cls(expression)


class RepeatPolicy(Enum):
    '''How a Group decides the number of its repetitions'''
    FIXED       = auto()
    COUNTED     = auto()
    UNTIL_END   = auto()
    CONDITIONAL = auto()


class Group(Structure):
    '''Un/Pack a template repeated a number of times.

    You can indicate an explicit number of elements via the parameter named "n",
    the field containing the number of elements via the parameter named "count",
    ask to repeat until the data ends with "until_end" or include the template
    zero or one time depending on a Condition via the parameter named "when".

        class StringList(Template):
            count   = fields.UInt16()
            strings = Group(Item(), count='.count')

    Each repetition is a child node named after its index. When the number of
    elements comes from another field, that field is rewritten each time
    the elements change, so the two never disagree.
    '''
    tag = TypeTag.GROUP

    def __init__(self, template, n=None, count=None, until_end=False, when=None, **kw):
        super().__init__(**kw)
        self.template = as_template(template)
        self.n = n
        self.count = as_dependency(count)
        self.until_end = until_end
        self.when = when

        policies = [
            (RepeatPolicy.FIXED, n is not None),
            (RepeatPolicy.COUNTED, count is not None),
            (RepeatPolicy.UNTIL_END, until_end),
            (RepeatPolicy.CONDITIONAL, when is not None),
        ]
        chosen = [policy for policy, given in policies if given]
        if len(chosen) != 1:
            raise ValueError('Group needs exactly one of n, count, until_end or when')
        self.policy = chosen[0]

        if self.policy == RepeatPolicy.FIXED and (not isinstance(n, int) or n < 0):
            raise ValueError('n is \'%s\' must be a non negative integer' % (n,))
        if self.policy == RepeatPolicy.CONDITIONAL and not isinstance(when, Condition):
            raise ValueError('when must be a Condition, not %s' % when.__class__.__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.policy.name}, {self.template!r})>'

    @property
    def min_size(self) -> int:
        if self.policy == RepeatPolicy.FIXED:
            return self.n * self.template.min_size

        return 0

    def get_value(self, node):
        return [child.value for child in node.children]

    def _resolve(self, node, dependency):
        try:
            return dependency.resolve_node(node)
        except UnknownFieldPath as e:
            raise TemplateMismatch(
                chain=[],
                message='cannot resolve \'%s\' (%s)' % (dependency.expression, e),
                offset=node.offset) from e

    def get_count(self, node, stream) -> int:
        if self.policy == RepeatPolicy.FIXED:
            return self.n

        if self.policy == RepeatPolicy.CONDITIONAL:
            source = self._resolve(node, self.when)
            node.depend_on(source)
            return 1 if self.when.evaluate(source) else 0

        source = self._resolve(node, self.count)
        node.depend_on(source, derived=True)
        count = self.count.evaluate(source)

        self.logger.debug('resolved count for \'%s\' as %d' % (node.name, count))

        if count < 0 or count * max(self.template.min_size, 1) > stream.remaining():
            raise InvalidRepeatCount(
                chain=[],
                message='cannot repeat %d times with %d bytes left' % (count, stream.remaining()),
                offset=stream.tell())

        return count

    def unpack_element(self, node, stream):
        index = str(len(node.children))
        try:
            element = self.template.unpack(stream, father=node, name=index)
        except ResstructException as e:
            e.chain.insert(0, index)
            raise

        node.children.append(element)

    def unpack(self, stream, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node._phase = NodePhase.DECODING
        node.offset = stream.tell()

        if self.policy == RepeatPolicy.UNTIL_END:
            while stream.remaining() > 0:
                start = stream.tell()
                self.unpack_element(node, stream)
                if stream.tell() == start:
                    raise TemplateMismatch(
                        chain=[str(len(node.children) - 1)],
                        message='the element doesn\'t consume any data',
                        offset=start)
        else:
            for _ in range(self.get_count(node, stream)):
                self.unpack_element(node, stream)

        node._phase = NodePhase.DONE

        return node

    def create(self, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)

        if self.policy == RepeatPolicy.FIXED:
            for index in range(self.n):
                node.children.append(self.template.create(father=node, name=str(index)))
        elif self.policy == RepeatPolicy.COUNTED:
            node.depend_on(self._resolve(node, self.count), derived=True)
            self.sync_count(node)
        elif self.policy == RepeatPolicy.CONDITIONAL:
            source = self._resolve(node, self.when)
            node.depend_on(source)
            self.dependency_changed(node, source)

        node._phase = NodePhase.DONE

        return node

    def _count_raw(self, node, n) -> bytes:
        source = self._resolve(node, self.count)
        try:
            return source.field.encode(self.count.inverse(n))
        except TypeConstraintViolation as e:
            raise ValueTooLong(
                chain=source.chain,
                message='%d elements cannot be stored in the count field' % n,
                offset=source.offset) from e

    def _check_count(self, node, n):
        '''Fail before touching anything if the group cannot have n elements:
        all the groups sharing the count field must have the same length.'''
        source = self._resolve(node, self.count)
        for other in source.derived_by:
            if other is not node and other.attached and len(other.children) != n:
                raise TypeConstraintViolation(
                    chain=node.chain,
                    message='the count \'%s\' is shared with \'%s\' that has %d elements' % (
                        source.path, other.path, len(other.children)),
                    offset=node.offset)

        self._count_raw(node, n)

    def sync_count(self, node):
        '''Write back the number of elements into the count field.'''
        source = self._resolve(node, self.count)
        raw = self._count_raw(node, len(node.children))
        if raw != source.raw:
            self.logger.debug('updating count \'%s\' to %d' % (source.path, len(node.children)))
            source.raw = raw

    def update(self, node):
        super().update(node)

        if self.policy == RepeatPolicy.COUNTED:
            self.sync_count(node)

    def _renumber(self, node):
        for index, element in enumerate(node.children):
            element.name = str(index)

    def insert(self, node, index=None) -> Node:
        '''Add a new element with default values, at the end if index is not indicated.'''
        if self.policy not in (RepeatPolicy.COUNTED, RepeatPolicy.UNTIL_END):
            raise TypeConstraintViolation(
                chain=node.chain,
                message='the number of elements is fixed by the template')

        length = len(node.children)
        index = length if index is None else index
        if not 0 <= index <= length:
            raise TypeConstraintViolation(chain=node.chain, message='index %d out of range' % index)

        if self.policy == RepeatPolicy.COUNTED:
            self._check_count(node, length + 1)

        element = self.template.create(father=node, name=str(index))
        node.children.insert(index, element)
        self._renumber(node)

        if self.policy == RepeatPolicy.COUNTED:
            self.sync_count(node)

        return element

    def remove(self, node, index) -> Node:
        if self.policy not in (RepeatPolicy.COUNTED, RepeatPolicy.UNTIL_END):
            raise TypeConstraintViolation(
                chain=node.chain,
                message='the number of elements is fixed by the template')

        if not 0 <= index < len(node.children):
            raise TypeConstraintViolation(chain=node.chain, message='index %d out of range' % index)

        if self.policy == RepeatPolicy.COUNTED:
            self._check_count(node, len(node.children) - 1)

        element = node.children.pop(index)
        element.release()
        self._renumber(node)

        if self.policy == RepeatPolicy.COUNTED:
            self.sync_count(node)

        return element

    def dependency_changed(self, node, source):
        if self.policy != RepeatPolicy.CONDITIONAL:
            return

        included = self.when.evaluate(source)
        if included and not node.children:
            node.children.append(self.template.create(father=node, name='0'))
        elif not included:
            for element in node.children:
                element.release()
            node.children.clear()


class Section(Structure):
    '''A block of fields preceded by its length.

    If "inclusive" the length counts also the bytes of the length itself.
    The fields cannot read past the end of the block and the bytes they
    don't describe are kept as they are; the length is computed again
    when encoding.'''
    tag = TypeTag.SECTION

    def __init__(self, template, format='H', inclusive=True, **kw):
        super().__init__(**kw)
        self.template = as_template(template)
        self.format = format
        self.inclusive = inclusive

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.format}, {self.template!r})>'

    def get_format(self):
        return '%s%s' % (BYTE_ORDER, self.format)

    @property
    def prefix_size(self) -> int:
        return struct.calcsize(self.get_format())

    @property
    def min_size(self) -> int:
        return self.prefix_size + self.template.min_size

    def unpack(self, stream, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node._phase = NodePhase.DECODING
        node.offset = stream.tell()

        length = struct.unpack(self.get_format(), stream.read_exactly(self.prefix_size))[0]
        if self.inclusive:
            if length < self.prefix_size:
                raise TemplateMismatch(
                    chain=[],
                    message='length %d is shorter than the length itself' % length,
                    offset=node.offset)
            length -= self.prefix_size

        body = stream.substream(length)
        self.template.unpack_into(node, body)

        node.trailing = body.read_all()
        if node.trailing:
            self.logger.warning('%d bytes at the end of the section are not described by the template' % len(node.trailing))

        node._phase = NodePhase.DONE

        return node

    def create(self, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        self.template.create_into(node)

        return node

    def pack(self, node) -> bytes:
        body = super().pack(node)
        length = len(body) + (self.prefix_size if self.inclusive else 0)

        if length >= 1 << (self.prefix_size * 8):
            raise ValueTooLong(
                chain=node.chain,
                message='a section of %d bytes doesn\'t fit its length field' % length,
                offset=node.offset)

        return struct.pack(self.get_format(), length) + body


class Select(Structure):
    """Allow to select the template based on the value of another field.
    You need to pass the expression of the field to use as key and a dictionary with the
    mapping between value and template. You can use Select.Type.DEFAULT as a default.

    Like in the following example we have a format that uses the first byte to indicate what
    follows: for value zero you have another 4 bytes, otherwise you have a ten bytes string

        class Dummy(Template):
            kind = fields.UInt8()
            data = Select('.kind', {
                0: Template([('number', fields.UInt32())]),
                Select.Type.DEFAULT: Template([('text', fields.FixedString(10))]),
            })

    The fields of the chosen template are the children of the node. A key without
    a template (and no default) selects nothing.
    """
    tag = TypeTag.SELECT

    class Type(Flag):
        DEFAULT = auto()

    def __init__(self, key, mapping, **kwargs):
        super().__init__(**kwargs)
        self.key = as_dependency(key)
        self.mapping = {value: as_template(template) for value, template in mapping.items()}

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.key.expression}, {len(self.mapping)} cases)>'

    @property
    def min_size(self) -> int:
        if Select.Type.DEFAULT not in self.mapping:
            return 0

        return min(template.min_size for template in self.mapping.values())

    def choose(self, key):
        return self.mapping.get(key, self.mapping.get(Select.Type.DEFAULT))

    def _resolve(self, node):
        try:
            source = self.key.resolve_node(node)
        except UnknownFieldPath as e:
            raise TemplateMismatch(
                chain=[],
                message='cannot resolve \'%s\' (%s)' % (self.key.expression, e),
                offset=node.offset) from e

        node.depend_on(source)

        return source

    def unpack(self, stream, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node._phase = NodePhase.DECODING
        node.offset = stream.tell()

        node.selected = self._resolve(node).value
        template = self.choose(node.selected)

        self.logger.debug('using key \'%s\' for \'%s\'' % (node.selected, name))

        if template is None:
            self.logger.warning('no template for key \'%s\'' % (node.selected,))
        else:
            template.unpack_into(node, stream)

        node._phase = NodePhase.DONE

        return node

    def create(self, father=None, name=None) -> Node:
        node = Node(self, name=name, father=father)
        node.selected = self._resolve(node).value
        template = self.choose(node.selected)
        if template is not None:
            template.create_into(node)

        return node

    def _clear(self, node):
        for child in node.children:
            child.release()
        node.children = []

    def dependency_changed(self, node, source):
        old = self.choose(node.selected)
        node.selected = source.value
        new = self.choose(node.selected)

        if new is old:
            return

        data = super().pack(node)
        self._clear(node)
        node.trailing = b''

        if new is None:
            return

        # reuse the data when it fits exactly the new layout
        if data:
            try:
                stream = Stream(data, base=node.offset or 0)
                new.unpack_into(node, stream)
                if stream.remaining() == 0:
                    return
            except ResstructException:
                self.logger.debug('the data of \'%s\' doesn\'t fit the new template' % node.path)

            self._clear(node)

        new.create_into(node)
