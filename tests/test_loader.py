import json

import pytest

from resstruct import fields
from resstruct.groups import Group, RepeatPolicy, Section, Select
from resstruct.loader import load_descriptors, load_field, load_json
from resstruct.record import decode


STRING_LIST = [
    {'name': 'count', 'type': 'UInt16'},
    {'name': 'strings', 'type': 'Group', 'params': {
        'count': '.count',
        'template': [{'name': 'string', 'type': 'PString'}],
    }},
]


def test_load_descriptors():
    template = load_descriptors(STRING_LIST)

    assert template.names == ['count', 'strings']
    assert isinstance(template.field('count'), fields.UInt16)
    assert template.field('strings').policy == RepeatPolicy.COUNTED

    data = b'\x00\x02\x01a\x02bc'
    record = decode(template, data)

    assert record['strings'] == [{'string': 'a'}, {'string': 'bc'}]
    assert record.encode() == data


def test_load_json(tmp_path):
    path = tmp_path / 'str.json'
    path.write_text(json.dumps(STRING_LIST))

    template = load_json(str(path))

    assert decode(template, b'\x00\x01\x02hi')['strings.0.string'] == 'hi'


@pytest.mark.parametrize('descriptor,cls', [
    ({'name': 'a', 'type': 'Int8'}, fields.Int8),
    ({'name': 'a', 'type': 'UInt64'}, fields.UInt64),
    ({'name': 'a', 'type': 'FixedString', 'params': {'length': 4}}, fields.FixedString),
    ({'name': 'a', 'type': 'CString', 'params': {'padding': 'even'}}, fields.CString),
    ({'name': 'a', 'type': 'CString', 'params': {'padding': 32}}, fields.CString),
    ({'name': 'a', 'type': 'Boolean', 'params': {'width': 2}}, fields.Boolean),
    ({'name': 'a', 'type': 'Bytes'}, fields.Bytes),
    ({'name': 'a', 'type': 'Section', 'params': {'template': []}}, Section),
])
def test_load_field(descriptor, cls):
    assert isinstance(load_field(descriptor), cls)


def test_load_params():
    field = load_field({'name': 'a', 'type': 'UInt16', 'params': {'default': 7, 'description': 'seven'}})

    assert field.default == 7
    assert field.description == 'seven'

    field = load_field({'name': 'a', 'type': 'PString', 'params': {'padding': 'odd'}})

    assert field.padding == fields.Padding.ODD


def test_load_enum():
    template = load_descriptors([
        {'name': 'kind', 'type': 'Enum', 'params': {
            'base': 'UInt16',
            'names': {'1': 'one', '0x10': 'sixteen'},
        }},
        {'name': 'flags', 'type': 'Bitmask', 'params': {
            'flags': {'1': 'locked', '2': 'purgeable'},
        }},
    ])

    record = decode(template, b'\x00\x10\x03')

    assert record.node('kind').label == 'sixteen'
    assert record.node('flags').label == ['locked', 'purgeable']


def test_load_enum_not_integer():
    with pytest.raises(ValueError):
        load_field({'name': 'kind', 'type': 'Enum', 'params': {'base': 'PString'}})


def test_load_conditional_group():
    template = load_descriptors([
        {'name': 'flag', 'type': 'UInt8'},
        {'name': 'extra', 'type': 'Group', 'params': {
            'when': {'field': '.flag', 'equals': 1},
            'template': [{'name': 'v', 'type': 'UInt8'}],
        }},
    ])

    assert decode(template, b'\x01\x05')['extra'] == [{'v': 5}]
    assert decode(template, b'\x00')['extra'] == []


def test_load_count_bias():
    template = load_descriptors([
        {'name': 'count', 'type': 'Int16'},
        {'name': 'items', 'type': 'Group', 'params': {
            'count': '.count',
            'count_bias': 1,
            'template': [{'name': 'v', 'type': 'UInt8'}],
        }},
    ])

    assert decode(template, b'\x00\x01\x05\x06')['items'] == [{'v': 5}, {'v': 6}]


def test_load_select():
    template = load_descriptors([
        {'name': 'kind', 'type': 'UInt8'},
        {'name': 'data', 'type': 'Select', 'params': {
            'key': '.kind',
            'cases': {'1': [{'name': 'number', 'type': 'UInt16'}]},
            'default': [{'name': 'raw', 'type': 'Bytes'}],
        }},
    ])

    assert isinstance(template.field('data'), Select)
    assert template.field('data').default is None
    assert decode(template, b'\x01\x00\x02')['data'] == {'number': 2}
    assert decode(template, b'\x02\x00\x02')['data'] == {'raw': b'\x00\x02'}


def test_load_section():
    template = load_descriptors([
        {'name': 'block', 'type': 'Section', 'params': {
            'base': 'UInt8',
            'inclusive': False,
            'template': [{'name': 'v', 'type': 'UInt8'}],
        }},
    ])

    record = decode(template, b'\x02\x07\x08')

    assert record['block.v'] == 7
    assert record.node('block').trailing == b'\x08'


def test_load_composite():
    template = load_descriptors([
        {'name': 'origin', 'type': 'Composite', 'params': {
            'template': [{'name': 'v', 'type': 'Int16'}, {'name': 'h', 'type': 'Int16'}],
        }},
    ])

    assert decode(template, b'\x00\x01\x00\x02')['origin'] == {'v': 1, 'h': 2}


def test_load_fixed_group():
    template = load_descriptors([
        {'name': 'items', 'type': 'Group', 'params': {
            'n': 2,
            'template': [{'name': 'v', 'type': 'UInt8'}],
        }},
    ])

    assert isinstance(template.field('items'), Group)
    assert decode(template, b'\x01\x02')['items'] == [{'v': 1}, {'v': 2}]


def test_load_errors():
    with pytest.raises(ValueError):
        load_descriptors([{'type': 'UInt8'}])

    with pytest.raises(ValueError):
        load_descriptors([{'name': 'a', 'type': 'Float'}])

    with pytest.raises(ValueError):
        load_descriptors([{'name': 'a', 'type': 'FixedString'}])
