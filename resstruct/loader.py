"""
Build templates from plain descriptors, the form a template has when it comes
from outside of Python code (a JSON file for example):

    [
        {"name": "count", "type": "UInt16"},
        {"name": "strings", "type": "Group", "params": {
            "count": ".count",
            "template": [{"name": "string", "type": "PString"}]
        }}
    ]

Each descriptor has a name, a type (one of the values of TypeTag) and
optionally the parameters specific of the type.
"""
import json
import logging

from . import fields
from .core import Template
from .groups import Group, Section, Select
from .meta import TypeTag
from .properties import Condition, Dependency, OffsetDependency


logger = logging.getLogger(__name__)


INTEGER_CLASSES = {
    TypeTag.INT8: fields.Int8,
    TypeTag.UINT8: fields.UInt8,
    TypeTag.INT16: fields.Int16,
    TypeTag.UINT16: fields.UInt16,
    TypeTag.INT32: fields.Int32,
    TypeTag.UINT32: fields.UInt32,
    TypeTag.INT64: fields.Int64,
    TypeTag.UINT64: fields.UInt64,
}


def _tag(name) -> TypeTag:
    try:
        return TypeTag(name)
    except ValueError:
        raise ValueError(f"unknown type '{name}'") from None


def _integer_format(params) -> str:
    tag = _tag(params.get('base', 'UInt8'))
    if tag not in INTEGER_CLASSES:
        raise ValueError(f"'{tag.value}' is not an integer type")

    return INTEGER_CLASSES[tag].FORMAT


def _int_keys(mapping):
    '''JSON has only string keys'''
    return {int(key, 0) if isinstance(key, str) else key: value for key, value in mapping.items()}


def _padding(value):
    if isinstance(value, int):
        return value

    return fields.Padding(value or 'none')


def _common(params):
    return {key: params[key] for key in ('default', 'description') if key in params}


def _load_group(params, common):
    template = load_descriptors(params['template'])

    if 'count' in params:
        bias = params.get('count_bias', 0)
        count = OffsetDependency(bias, params['count']) if bias else Dependency(params['count'])
        return Group(template, count=count, **common)

    if 'when' in params:
        when = dict(params['when'])
        expression = when.pop('field')
        return Group(template, when=Condition(expression, **when), **common)

    return Group(template, n=params.get('n'), until_end=params.get('until_end', False), **common)


def _load_select(params, common):
    # here default is the template of the unknown keys
    common.pop('default', None)

    mapping = {
        key: load_descriptors(descriptors)
        for key, descriptors in _int_keys(params.get('cases', {})).items()
    }
    if 'default' in params:
        mapping[Select.Type.DEFAULT] = load_descriptors(params['default'])

    return Select(params['key'], mapping, **common)


def load_field(descriptor) -> fields.Field:
    '''Build the field for a single descriptor.'''
    tag = _tag(descriptor['type'])
    params = descriptor.get('params') or {}
    common = _common(params)

    if tag in INTEGER_CLASSES:
        return INTEGER_CLASSES[tag](**common)
    if tag == TypeTag.FIXED_STRING:
        return fields.FixedString(params['length'], **common)
    if tag == TypeTag.PSTRING:
        return fields.PString(padding=fields.Padding(params.get('padding', 'none')), **common)
    if tag == TypeTag.CSTRING:
        return fields.CString(padding=_padding(params.get('padding')), **common)
    if tag == TypeTag.BOOLEAN:
        return fields.Boolean(width=params.get('width', 1), true_value=params.get('true_value'), **common)
    if tag == TypeTag.ENUM:
        return fields.EnumField(_integer_format(params), names=_int_keys(params.get('names', {})), **common)
    if tag == TypeTag.BITMASK:
        return fields.BitmaskField(_integer_format(params), flags=_int_keys(params.get('flags', {})), **common)
    if tag == TypeTag.BYTES:
        return fields.Bytes(params.get('length'), **common)
    if tag == TypeTag.COMPOSITE:
        return load_descriptors(params['template'])
    if tag == TypeTag.GROUP:
        return _load_group(params, common)
    if tag == TypeTag.SELECT:
        return _load_select(params, common)
    if tag == TypeTag.SECTION:
        return Section(
            load_descriptors(params['template']),
            format=_integer_format({'base': params.get('base', 'UInt16')}),
            inclusive=params.get('inclusive', True),
            **common)

    raise ValueError(f"type '{tag.value}' cannot be loaded")


def load_descriptors(descriptors) -> Template:
    '''Build a template from a list of descriptors.'''
    result = []
    for descriptor in descriptors:
        try:
            name = descriptor['name']
        except KeyError:
            raise ValueError(f'descriptor without a name: {descriptor!r}') from None

        logger.debug('loading field \'%s\' of type \'%s\'' % (name, descriptor.get('type')))
        try:
            result.append((name, load_field(descriptor)))
        except KeyError as e:
            raise ValueError(f"field '{name}' is missing the parameter {e}") from None

    return Template(result)


def load_json(path) -> Template:
    with open(path, 'r') as f:
        return load_descriptors(json.load(f))
