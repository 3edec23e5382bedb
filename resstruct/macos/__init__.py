'''
# Classic Mac OS resources

Templates for some of the resource types of the Macintosh Toolbox, as
described in "Inside Macintosh". All the data is big-endian.

'''
from enum import Enum

from resstruct.core import Template
from resstruct import fields
from resstruct.groups import Group


class Rect(Template):
    '''QuickDraw rectangle, the coordinates of its top-left and bottom-right corners.'''
    top    = fields.Int16()
    left   = fields.Int16()
    bottom = fields.Int16()
    right  = fields.Int16()


class Point(Template):
    v = fields.Int16()
    h = fields.Int16()


class VersionStage(Enum):
    DEVELOPMENT = 0x20
    ALPHA       = 0x40
    BETA        = 0x60
    RELEASE     = 0x80


class Vers(Template):
    '''The 'vers' resource: the minor version is in BCD (0x12 means 1.2).'''
    major         = fields.UInt8(default=1)
    minor         = fields.UInt8()
    stage         = fields.EnumField('B', enum=VersionStage, default=VersionStage.RELEASE)
    release       = fields.UInt8()
    region        = fields.Int16()
    short_version = fields.PString()
    long_version  = fields.PString()


class StringListItem(Template):
    string = fields.PString()


class StringList(Template):
    '''The 'STR#' resource'''
    count   = fields.UInt16()
    strings = Group(StringListItem(), count='.count')


class DialogTemplate(Template):
    '''The 'DLOG' resource; System 7 appends a positioning word, that is kept
    as trailing data.'''
    bounds   = Rect()
    proc_id  = fields.Int16()
    visible  = fields.Boolean(width=2)
    go_away  = fields.Boolean(width=2)
    ref_con  = fields.Int32()
    items_id = fields.Int16()
    title    = fields.PString()


class AlertTemplate(Template):
    '''The 'ALRT' resource, each nibble of stages describes one of the four alert stages.'''
    bounds   = Rect()
    items_id = fields.Int16()
    stages   = fields.UInt16()


class TemplateItem(Template):
    label = fields.PString()
    type  = fields.FixedString(4)


class TemplateResource(Template):
    '''The 'TMPL' resource, a template describing the layout of other resources.'''
    items = Group(TemplateItem(), until_end=True)


TEMPLATES = {
    'RECT': Rect(),
    'vers': Vers(),
    'STR#': StringList(),
    'DLOG': DialogTemplate(),
    'ALRT': AlertTemplate(),
    'TMPL': TemplateResource(),
}


def get_template(resource_type) -> Template:
    try:
        return TEMPLATES[resource_type]
    except KeyError:
        raise ValueError(f"no template for resource type '{resource_type}'") from None
