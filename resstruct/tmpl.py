'''
# TMPL resources

The resource editors of the classic Mac OS describe the layout of a resource
type with a 'TMPL' resource: a list of couples (label, type code) where the
type code is a four characters code like DWRD (signed word) or PSTR (pascal
string). Lists and sections are delimited by pairs of codes (LSTB ... LSTE,
BSKP ... SKPE) and the CASE items attach symbolic names to the preceding
numeric field.

The TMPL resource is itself decoded with resstruct, then its items are
compiled into a Template.
'''
import logging
import re

from . import fields
from .core import Template
from .groups import Group, Section, Select
from .macos import Rect, Point, TemplateResource
from .properties import Dependency, OffsetDependency
from .record import decode
from .exceptions import TemplateMismatch


logger = logging.getLogger(__name__)


SIMPLE_TYPES = {
    'DBYT': lambda: fields.Int8(),
    'DWRD': lambda: fields.Int16(),
    'DLNG': lambda: fields.Int32(),
    'DQWD': lambda: fields.Int64(),
    'UBYT': lambda: fields.UInt8(),
    'UWRD': lambda: fields.UInt16(),
    'ULNG': lambda: fields.UInt32(),
    'UQWD': lambda: fields.UInt64(),
    'HBYT': lambda: fields.UInt8(),
    'HWRD': lambda: fields.UInt16(),
    'HLNG': lambda: fields.UInt32(),
    'HQWD': lambda: fields.UInt64(),
    'CHAR': lambda: fields.FixedString(1),
    'TNAM': lambda: fields.FixedString(4),
    'PSTR': lambda: fields.PString(),
    'OSTR': lambda: fields.PString(padding=fields.Padding.ODD),
    'ESTR': lambda: fields.PString(padding=fields.Padding.EVEN),
    'CSTR': lambda: fields.CString(),
    'OCST': lambda: fields.CString(padding=fields.Padding.ODD),
    'ECST': lambda: fields.CString(padding=fields.Padding.EVEN),
    'HEXD': lambda: fields.Bytes(),
    'BOOL': lambda: fields.Boolean(width=2),
    'BFLG': lambda: fields.Boolean(width=1),
    'RECT': lambda: Rect(),
    'PNT ': lambda: Point(),
}

# class of the counter and how much to add to the stored value
COUNTERS = {
    'OCNT': (fields.UInt16, 0),
    'ZCNT': (fields.Int16, 1),
    'BCNT': (fields.UInt8, 0),
    'LCNT': (fields.UInt32, 0),
}

# format of the length and if it counts itself
SECTIONS = {
    'BSKP': ('B', True),
    'WSKP': ('H', True),
    'SKIP': ('H', True),
    'LSKP': ('I', True),
    'BSIZ': ('B', False),
    'WSIZ': ('H', False),
    'LSIZ': ('I', False),
}

KEYS = {
    'KBYT': 'b',
    'KWRD': 'h',
    'KLNG': 'i',
    'KUBT': 'B',
    'KUWD': 'H',
    'KULG': 'I',
}

SIZED_TYPE = re.compile(r'^([CH])([0-9A-F]{3})$')


def parse_number(text) -> int:
    '''Numbers in templates are decimal or hexadecimal with a leading $'''
    text = text.strip()
    if text.startswith('$'):
        return int(text[1:], 16)

    return int(text, 0)


def field_name(label, code) -> str:
    name = re.sub(r'[^0-9a-z]+', '_', label.lower()).strip('_')
    if not name:
        name = code.strip().lower()
    if name[0].isdigit():
        name = 'f_' + name

    return name


class TemplateCompiler(object):
    '''Turns the (label, type code) items of a TMPL into a Template.'''

    def __init__(self, items):
        self.items = [(label, code) for label, code in items]
        self.position = 0

    def compile(self) -> Template:
        return Template(self._compile_list(()))

    def _peek(self):
        if self.position < len(self.items):
            return self.items[self.position]

        return None, None

    def _next(self, expected=None):
        label, code = self._peek()
        if code is None or (expected is not None and code != expected):
            raise TemplateMismatch(
                chain=[],
                message='expected %s at item %d, found %s' % (expected or 'an item', self.position, code))
        self.position += 1

        return label, code

    def _compile_list(self, terminators):
        result = []
        names = set()

        def add(label, code, field):
            name = field_name(label, code)
            unique, index = name, 2
            while unique in names:
                unique = '%s_%d' % (name, index)
                index += 1
            names.add(unique)
            field.description = label
            result.append((unique, field))

            return unique

        while True:
            label, code = self._peek()
            if code is None:
                if terminators:
                    raise TemplateMismatch(chain=[], message='missing %s' % ' or '.join(terminators))
                return result

            if code in terminators:
                return result

            self.position += 1
            logger.debug('compiling %s \'%s\'' % (code, label))

            if code in SIMPLE_TYPES:
                add(label, code, SIMPLE_TYPES[code]())
            elif SIZED_TYPE.match(code):
                kind, size = SIZED_TYPE.match(code).groups()
                size = int(size, 16)
                add(label, code, fields.CString(padding=size) if kind == 'C' else fields.Bytes(size))
            elif code == 'CASE':
                self._add_case(result, label)
            elif code in COUNTERS:
                counter_cls, bias = COUNTERS[code]
                counter = add(label, code, counter_cls())
                list_label, _ = self._next('LSTC')
                elements = self._compile_list(('LSTE',))
                self._next('LSTE')
                count = OffsetDependency(bias, '.' + counter) if bias else Dependency('.' + counter)
                add(list_label, 'list', Group(Template(elements), count=count))
            elif code == 'FCNT':
                list_label, _ = self._next('LSTC')
                elements = self._compile_list(('LSTE',))
                self._next('LSTE')
                add(list_label, 'list', Group(Template(elements), n=parse_number(label.split()[0])))
            elif code == 'LSTB':
                elements = self._compile_list(('LSTE',))
                self._next('LSTE')
                add(label, 'list', Group(Template(elements), until_end=True))
            elif code in SECTIONS:
                format, inclusive = SECTIONS[code]
                elements = self._compile_list(('SKPE',))
                self._next('SKPE')
                add(label, 'section', Section(Template(elements), format=format, inclusive=inclusive))
            elif code in KEYS:
                self._add_keyed(add, label, code)
            else:
                raise TemplateMismatch(chain=[], message='type code \'%s\' is not supported' % code)

    def _add_case(self, result, label):
        if not result or not isinstance(result[-1][1], fields.StructField) \
                or isinstance(result[-1][1], (fields.Boolean, fields.BitmaskField)):
            raise TemplateMismatch(chain=[], message='CASE \'%s\' doesn\'t follow a numeric field' % label)

        name, field = result[-1]
        names = dict(field.names) if isinstance(field, fields.EnumField) else {}

        case_name, _, case_value = label.partition('=')
        names[parse_number(case_value)] = case_name.strip()

        enum = fields.EnumField(field.format, names=names, default=field.default)
        enum.description = field.description
        result[-1] = (name, enum)

    def _add_keyed(self, add, label, code):
        cases = [('key', fields.EnumField(KEYS[code]))]
        while self._peek()[1] == 'CASE':
            case_label, _ = self._next('CASE')
            self._add_case(cases, case_label)

        # the first case is the default
        key = fields.EnumField(KEYS[code], names=cases[0][1].names)
        key_name = add(label, code, key)

        by_name = {name: value for value, name in key.names.items()}
        mapping = {}
        while self._peek()[1] == 'KEYB':
            section_label, _ = self._next('KEYB')
            elements = Template(self._compile_list(('KEYE',)))
            self._next('KEYE')
            for value in section_label.split(','):
                value = value.strip()
                mapping[by_name[value] if value in by_name else parse_number(value)] = elements

        add(key_name + '_section', 'section', Select('.' + key_name, mapping))


def compile_items(items) -> Template:
    return TemplateCompiler(items).compile()


def compile_tmpl(data) -> Template:
    '''Build the Template described by the bytes of a TMPL resource.'''
    record = decode(TemplateResource(), data)

    return compile_items((item['label'], item['type']) for item in record.get_value('items'))


def load_tmpl(path) -> Template:
    with open(path, 'rb') as f:
        return compile_tmpl(f.read())
