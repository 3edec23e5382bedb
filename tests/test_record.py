import pytest

from resstruct import fields
from resstruct.core import Template
from resstruct.enum import Compliant
from resstruct.events import ChangeEvent
from resstruct.exceptions import (
    TemplateMismatch,
    TypeConstraintViolation,
    UnknownFieldPath,
    ValueTooLong,
)
from resstruct.groups import Group
from resstruct.macos import Rect, StringList, Vers, DialogTemplate
from resstruct.meta import TypeTag
from resstruct.record import decode, encode, create


RECT_DATA = b'\x00\x0a\x00\x05\x00\x64\x00\x32'
STRING_LIST_DATA = b'\x00\x02\x05hello\x05world'


@pytest.mark.parametrize('template,data', [
    (Rect(), RECT_DATA),
    (StringList(), STRING_LIST_DATA),
    (StringList(), b'\x00\x00'),
    (Vers(), b'\x01\x12\x80\x00\x00\x00\x031.2\x0b1.2 \xa9 Apple'),
    (DialogTemplate(), RECT_DATA + b'\x00\x04\x01\x00\x00\x00\x00\x00\x00\x00\x00\x80\x00\x28\x0a'),
])
def test_round_trip(template, data):
    assert encode(decode(template, data)) == data


def test_trailing_data():
    """The bytes the template doesn't describe are preserved."""
    data = RECT_DATA + b'\xca\xfe'

    record = decode(Rect(), data)

    assert record.trailing == b'\xca\xfe'
    assert record.size == 10
    assert record.encode() == data

    record.set_value('left', 6)

    assert record.encode() == b'\x00\x0a\x00\x06\x00\x64\x00\x32\xca\xfe'


def test_trailing_data_compliant():
    with pytest.raises(TemplateMismatch):
        decode(Rect(), RECT_DATA + b'\x00', compliant=Compliant.TRAILING)


def test_enum_compliant():
    template = Template([
        ('kind', fields.EnumField('B', names={1: 'one'})),
    ])

    assert decode(template, b'\x02')['kind'] == 2

    with pytest.raises(TemplateMismatch) as e:
        decode(template, b'\x02', compliant=Compliant.ENUM)

    assert e.value.chain == ['kind']


def test_set_value():
    record = decode(Rect(), RECT_DATA)

    record.set_value('top', 20)

    assert record['top'] == 20
    assert record.encode() == b'\x00\x14\x00\x05\x00\x64\x00\x32'


def test_set_value_out_of_range():
    record = decode(Rect(), RECT_DATA)

    with pytest.raises(TypeConstraintViolation) as e:
        record.set_value('top', 40000)

    assert e.value.chain == ['top']
    assert e.value.offset == 0
    assert record['top'] == 10
    assert record.encode() == RECT_DATA


def test_set_value_idempotent():
    record = decode(StringList(), STRING_LIST_DATA)
    events = []
    record.subscribe(events.append)

    record.set_value('strings.1.string', 'there')
    data = record.encode()

    record.set_value('strings.1.string', 'there')

    assert record.encode() == data
    assert len(events) == 1


def test_set_value_changes_layout():
    template = Template([
        ('name', fields.PString()),
        ('n', fields.UInt16()),
    ])
    record = decode(template, b'\x02ab\x00\x07')

    assert record.node('n').offset == 3

    record.set_value('name', 'abcd')

    assert record.node('n').offset == 5
    assert record.size == 7
    assert record.encode() == b'\x04abcd\x00\x07'


def test_set_value_too_long():
    record = decode(StringList(), STRING_LIST_DATA)

    with pytest.raises(ValueTooLong) as e:
        record.set_value('strings.0.string', 'x' * 256)

    assert e.value.chain == ['strings', '0', 'string']
    assert e.value.offset == 2
    assert record['strings.0.string'] == 'hello'


def test_set_value_composite():
    record = decode(Rect(), RECT_DATA)

    with pytest.raises(TypeConstraintViolation):
        record.set_value('', 1)

    record = decode(DialogTemplate(), RECT_DATA + b'\x00' * 12 + b'\x00')

    with pytest.raises(TypeConstraintViolation):
        record.set_value('bounds', 1)


def test_set_value_count():
    """The count is derived from the number of elements."""
    record = decode(StringList(), STRING_LIST_DATA)

    with pytest.raises(TypeConstraintViolation):
        record.set_value('count', 5)

    assert record['count'] == 2


def test_unknown_path():
    record = decode(Rect(), RECT_DATA)

    with pytest.raises(UnknownFieldPath) as e:
        record.node('middle')

    assert e.value.chain == ['middle']

    with pytest.raises(UnknownFieldPath):
        record.set_value('top.x', 1)

    record = decode(StringList(), STRING_LIST_DATA)

    with pytest.raises(UnknownFieldPath):
        record['strings.2.string']


def test_path_as_list():
    record = decode(StringList(), STRING_LIST_DATA)

    assert record.get_value(['strings', 1, 'string']) == 'world'
    assert record.node([]) is record.root


def test_events():
    record = decode(Rect(), RECT_DATA)
    events = []

    @record.subscribe
    def on_change(event):
        events.append(event)

    record.set_value('bottom', 101)

    assert events == [ChangeEvent('bottom', 100, 101)]

    record.unsubscribe(on_change)
    record.set_value('bottom', 102)

    assert len(events) == 1


def test_events_not_emitted_on_error():
    record = decode(Rect(), RECT_DATA)
    events = []
    record.subscribe(events.append)

    with pytest.raises(TypeConstraintViolation):
        record.set_value('top', 'ten')

    assert events == []


def test_insert():
    record = decode(StringList(), STRING_LIST_DATA)
    events = []
    record.subscribe(events.append)

    element = record.insert('strings')
    record.set_value('strings.2.string', 'again')

    assert element.name == '2'
    assert record['count'] == 3
    assert record.encode() == b'\x00\x03\x05hello\x05world\x05again'
    assert events[0] == ChangeEvent('strings.2', None, {'string': ''}, kind=ChangeEvent.INSERT)


def test_insert_at_index():
    record = decode(StringList(), STRING_LIST_DATA)

    record.insert('strings', 0)

    assert [_['string'] for _ in record['strings']] == ['', 'hello', 'world']
    assert record.node('strings.1.string').offset == 3
    assert record.encode() == b'\x00\x03\x00\x05hello\x05world'


def test_remove():
    record = decode(StringList(), STRING_LIST_DATA)
    events = []
    record.subscribe(events.append)

    record.remove('strings', 0)

    assert record['count'] == 1
    assert record['strings'] == [{'string': 'world'}]
    assert record.node('strings.0').offset == 2
    assert record.encode() == b'\x00\x01\x05world'
    assert events == [ChangeEvent('strings.0', {'string': 'hello'}, None, kind=ChangeEvent.REMOVE)]

    with pytest.raises(TypeConstraintViolation):
        record.remove('strings', 3)


def test_count_consistency():
    """After any sequence of edits the count matches the elements."""
    record = decode(StringList(), STRING_LIST_DATA)

    record.insert('strings')
    record.insert('strings', 1)
    record.remove('strings', 0)
    record.insert('strings')

    assert record['count'] == len(record['strings']) == 4

    data = record.encode()

    assert decode(StringList(), data)['count'] == 4


def test_count_overflow():
    template = Template([
        ('count', fields.UInt8()),
        ('items', Group(Template([('b', fields.UInt8())]), count='.count')),
    ])
    data = b'\xff' + b'\x00' * 0xff
    record = decode(template, data)

    with pytest.raises(ValueTooLong):
        record.insert('items')

    assert len(record['items']) == 0xff
    assert record.encode() == data


def test_insert_fixed_group():
    template = Template([
        ('items', Group(Template([('b', fields.UInt8())]), n=2)),
    ])
    record = decode(template, b'\x01\x02')

    with pytest.raises(TypeConstraintViolation):
        record.insert('items')

    with pytest.raises(TypeConstraintViolation):
        record.insert('items.0')


def test_create():
    record = create(StringList())

    assert record.encode() == b'\x00\x00'

    record.insert('strings')
    record.set_value('strings.0.string', 'hi')

    assert record.encode() == b'\x00\x01\x02hi'


def test_create_defaults():
    record = create(Vers())

    assert record['major'] == 1
    assert record['stage'] == 0x80
    assert record.node('stage').label == 'RELEASE'
    assert record.encode() == b'\x01\x00\x80\x00\x00\x00\x00\x00'


def test_bindings():
    record = decode(Rect(), RECT_DATA)

    bindings = record.bindings()

    assert len(bindings) == 4
    assert bindings[0] == {
        'path': 'top',
        'type_tag': TypeTag.INT16,
        'value': 10,
        'offset': 0,
        'size': 2,
    }
    assert bindings[3]['offset'] == 6


def test_bindings_nested():
    record = decode(StringList(), STRING_LIST_DATA)

    paths = [_['path'] for _ in record.bindings()]

    assert paths == [
        'count',
        'strings',
        'strings.0',
        'strings.0.string',
        'strings.1',
        'strings.1.string',
    ]
    assert record.bindings()[1]['type_tag'] == TypeTag.GROUP


def test_set_value_same_boolean():
    """A true value stored as 0x02 is kept when set to True again."""
    record = decode(Template([('flag', fields.Boolean())]), b'\x02')
    events = []
    record.subscribe(events.append)

    record.set_value('flag', True)

    assert record.encode() == b'\x02'
    assert events == []

    record.set_value('flag', False)

    assert record.encode() == b'\x00'
    assert events == [ChangeEvent('flag', True, False)]


def test_shared_count():
    """Two groups using the same count must keep the same number of elements."""
    item = Template([('v', fields.UInt8())])
    template = Template([
        ('n', fields.UInt8()),
        ('xs', Group(item, count='.n')),
        ('ys', Group(item, count='.n')),
    ])
    data = b'\x01\x0a\x0b'
    record = decode(template, data)

    assert len(record.node('n').derived_by) == 2

    with pytest.raises(TypeConstraintViolation):
        record.insert('xs')

    with pytest.raises(TypeConstraintViolation):
        record.remove('ys', 0)

    with pytest.raises(TypeConstraintViolation):
        record.set_value('n', 2)

    assert record['xs'] == [{'v': 10}]
    assert record['ys'] == [{'v': 11}]
    assert record.encode() == data
