import logging
from enum import Enum


# all the integers in a resource are big-endian, it's not configurable
BYTE_ORDER = '>'


class TypeTag(Enum):
    '''The closed set of kinds of field a template can be built from.'''
    INT8         = 'Int8'
    UINT8        = 'UInt8'
    INT16        = 'Int16'
    UINT16       = 'UInt16'
    INT32        = 'Int32'
    UINT32       = 'UInt32'
    INT64        = 'Int64'
    UINT64       = 'UInt64'
    FIXED_STRING = 'FixedString'
    PSTRING      = 'PString'
    CSTRING      = 'CString'
    BOOLEAN      = 'Boolean'
    ENUM         = 'Enum'
    BITMASK      = 'Bitmask'
    BYTES        = 'Bytes'
    COMPOSITE    = 'Composite'
    GROUP        = 'Group'
    SELECT       = 'Select'
    SECTION      = 'Section'


class FieldBase(object):

    def contribute_to_template(self, cls, name):
        if name in cls._meta.fields:
            raise AttributeError(f'field {name} is already present in class {cls.__name__}')
        if hasattr(cls, name):
            raise AttributeError(f'field {name} would shadow an attribute of class {cls.__name__}')

        cls._meta.fields[name] = self
        setattr(cls, name, self)


class Meta(object):
    """Class containing metadata about the template"""

    def __init__(self):
        self.fields = {}


class MetaTemplate(type):
    logger = logging.getLogger(__name__)

    def __new__(cls, names, bases, attrs):
        '''Collect the fields declared in the class body, in order, the way Django does for models.'''
        module = attrs.pop('__module__')
        classcell = attrs.pop('__classcell__', None)

        new_attrs = {
            '__module__': module,
        }
        if classcell is not None:
            new_attrs['__classcell__'] = classcell
        new_cls = super(MetaTemplate, cls).__new__(cls, names, bases, new_attrs)

        new_cls._meta = Meta()

        # handle inheritance
        parents = [_ for _ in bases if isinstance(_, MetaTemplate)]
        for parent in parents:
            for obj_name, obj in parent._meta.fields.items():
                new_cls._meta.fields[obj_name] = obj

        for obj_name, obj in attrs.items():
            new_cls.add_to_class(obj_name, obj)

        return new_cls

    def add_to_class(cls, name, value):
        if hasattr(value, 'contribute_to_template') and not isinstance(value, type):
            cls.logger.debug('contribute_to_template() found for field \'%s\'' % name)
            value.contribute_to_template(cls, name)
        else:
            setattr(cls, name, value)
