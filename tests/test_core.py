import pytest

from resstruct import fields
from resstruct.core import Template
from resstruct.exceptions import TruncatedData
from resstruct.macos import Rect, DialogTemplate
from resstruct.meta import TypeTag
from resstruct.properties import Dependency
from resstruct.record import decode, create
from resstruct.streams import Stream


RECT_DATA = b'\x00\x0a\x00\x05\x00\x64\x00\x32'


def test_template():
    """Check that building a Template from fields behaves correctly."""
    class Dummy(Template):
        a = fields.UInt32(default=0xbad)
        b = fields.FixedString(0x10)
        c = fields.UInt32(default=0xdeadbeef)

    dummy = Dummy()

    assert dummy.names == ['a', 'b', 'c']
    assert dummy.tag == TypeTag.COMPOSITE
    assert dummy.min_size == 0x18

    record = create(dummy)

    assert record.node('a').size == 4
    assert record.node('a').raw == b'\x00\x00\x0b\xad'
    assert record.node('a').value == 0xbad
    assert record.node('a').offset == 0x00
    assert record.node('a').father is record.root

    assert record.node('b').size == 0x10
    assert record.node('b').offset == 0x04

    assert record.node('c').offset == 0x14

    assert record.size == 0x18
    assert record.encode() == (
        b'\x00\x00\x0b\xad' +
        b'\x00' * 0x10 +
        b'\xde\xad\xbe\xef'
    )


def test_template_from_list():
    template = Template([
        ('kind', fields.UInt8()),
        ('name', fields.PString()),
    ])

    assert template.names == ['kind', 'name']
    assert isinstance(template.field('name'), fields.PString)

    with pytest.raises(KeyError):
        template.field('missing')


def test_template_invalid_fields():
    with pytest.raises(ValueError):
        Template([('a', fields.UInt8()), ('a', fields.UInt16())])

    with pytest.raises(ValueError):
        Template([('a', 42)])


def test_template_inheritance():
    class Base(Template):
        a = fields.UInt8()

    class Derived(Base):
        b = fields.UInt8()

    assert Base().names == ['a']
    assert Derived().names == ['a', 'b']


def test_template_field_redefined():
    class Base(Template):
        a = fields.UInt8()

    with pytest.raises(AttributeError):
        class Derived(Base):
            a = fields.UInt16()


def test_templates_are_shared():
    """The same template decodes any number of records without interference."""
    template = Rect()

    first = decode(template, RECT_DATA)
    second = decode(template, b'\x00\x01\x00\x02\x00\x03\x00\x04')

    first.set_value('top', 99)

    assert first['top'] == 99
    assert second['top'] == 1
    assert template.field('top').default == 0


def test_rect():
    record = decode(Rect(), RECT_DATA)

    assert record.value == {'top': 10, 'left': 5, 'bottom': 100, 'right': 50}
    assert record.encode() == RECT_DATA


def test_rect_truncated():
    with pytest.raises(TruncatedData) as e:
        decode(Rect(), RECT_DATA[:7])

    assert e.value.chain == ['right']
    assert e.value.path == 'right'
    assert e.value.offset == 6
    assert "field 'right'" in str(e.value)


def test_layout():
    record = decode(Rect(), RECT_DATA)

    assert record.root.layout == {
        'top': (0, 2),
        'left': (2, 2),
        'bottom': (4, 2),
        'right': (6, 2),
    }


def test_nested_template():
    data = (
        b'\x00\x28\x00\x28\x00\xf0\x01\xb8'  # bounds
        b'\x00\x01'                          # proc_id
        b'\x01\x00'                          # visible
        b'\x00\x00'                          # go_away
        b'\x00\x00\x00\x00'                  # ref_con
        b'\x00\x80'                          # items_id
        b'\x05Hello'                         # title
    )
    record = decode(DialogTemplate(), data)

    assert record['bounds'] == {'top': 40, 'left': 40, 'bottom': 240, 'right': 440}
    assert record['bounds.right'] == 440
    assert record.node('bounds.right').offset == 6
    assert record['visible'] is True
    assert record['go_away'] is False
    assert record['title'] == 'Hello'
    assert record.encode() == data


def test_nested_template_truncated():
    with pytest.raises(TruncatedData) as e:
        decode(DialogTemplate(), b'\x00\x28\x00\x28\x00')

    assert e.value.chain == ['bounds', 'bottom']
    assert e.value.offset == 4


def test_unpack_from_offset():
    """Offsets are relative to the start of the buffer."""
    stream = Stream(b'\xff\xff' + RECT_DATA)
    stream.read(2)

    node = Rect().unpack(stream)

    assert node.offset == 2
    assert node.child('left').offset == 4
    assert node.value['right'] == 50


def test_dependency_resolution():
    class Inner(Template):
        value = fields.UInt8()

    class Outer(Template):
        kind = fields.UInt8()
        inner = Inner()

    record = decode(Outer(), b'\x01\x02')
    node = record.node('inner.value')

    assert Dependency('.value').resolve(node.father.child('value')) == 2
    assert Dependency('..kind').resolve(node) == 1
    assert Dependency('inner.value').resolve(record.root) == 2
    assert Dependency('kind').resolve(node) == 1
