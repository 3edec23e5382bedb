import io
import logging

from .exceptions import TruncatedData


logger = logging.getLogger(__name__)


class Stream(object):
    '''This is a simple wrapper around bytes/file objects to
    uniform their properties: it acts as the read cursor of a decode.

    The offsets are always absolute with respect to the original buffer,
    also for the streams obtained via substream().'''
    def __init__(self, obj, base=0):
        '''Here we normalize the object in order to be accessed as a normal file object'''
        self._type = type(obj)
        self.obj = obj
        self.base = base
        self.history = []

        init_method_name = 'init_%s' % self.obj.__class__.__name__

        init_method = getattr(self, init_method_name, None)
        if init_method is None:
            raise ValueError('\'%s\' is the wrong kind of object to stream' % self.obj.__class__.__name__)

        init_method()

        self.size = self.obj.seek(0, io.SEEK_END)
        self.obj.seek(0)

    def __repr__(self):
        return '<%s(offset=0x%x, remaining=%d)>' % (self.__class__.__name__, self.tell(), self.remaining())

    def __getattr__(self, name):
        return getattr(self.obj, name)

    def __del__(self):
        obj = self.__dict__.get('obj')
        if obj is not None and hasattr(obj, 'close'):
            obj.close()

    def init_str(self):
        '''We think this is a path'''
        logger.debug('opening path \'%s\'' % self.obj)
        with open(self.obj, 'rb') as f:
            self.obj = io.BytesIO(f.read())

    def init_bytes(self):
        '''We think these are raw bytes'''
        self.obj = io.BytesIO(self.obj)

    def init_bytearray(self):
        self.obj = io.BytesIO(bytes(self.obj))

    def init_memoryview(self):
        self.obj = io.BytesIO(self.obj.tobytes())

    def tell(self) -> int:
        return self.base + self.obj.tell()

    def seek(self, offset):
        if not isinstance(offset, int):
            raise ValueError('\'%s\' is the wrong kind of offset to use' % offset.__class__.__name__)

        self.obj.seek(offset - self.base)

    def remaining(self) -> int:
        return self.size - self.obj.tell()

    def read_exactly(self, n) -> bytes:
        '''Read n bytes or fail without consuming anything.'''
        if n > self.remaining():
            raise TruncatedData(
                chain=[],
                message='needed %d bytes but only %d remain' % (n, self.remaining()),
                offset=self.tell())

        return self.obj.read(n)

    def read_all(self) -> bytes:
        return self.obj.read()

    def peek_all(self) -> bytes:
        self.save()
        data = self.read_all()
        self.restore()

        return data

    def substream(self, n) -> 'Stream':
        '''Consume n bytes and return a stream bounded to them.'''
        offset = self.tell()
        return Stream(self.read_exactly(n), base=offset)

    # TODO: create contextmanager
    def save(self):
        self.history.append(self.obj.tell())

    def restore(self):
        old_seek = self.history.pop()
        self.obj.seek(old_seek)
