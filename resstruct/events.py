'''
Change notifications for the presentation layer.

Each record keeps its own list of observers: a callback registered with
subscribe() receives a ChangeEvent every time a field is set or an element
is added to (or removed from) a group.
'''
import logging


logger = logging.getLogger(__name__)


class ChangeEvent(object):
    VALUE  = 'value'
    INSERT = 'insert'
    REMOVE = 'remove'

    def __init__(self, path, old, new, kind=VALUE):
        self.path = path
        self.old = old
        self.new = new
        self.kind = kind

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.kind} {self.path}: {self.old!r} -> {self.new!r})>'

    def __eq__(self, other):
        if not isinstance(other, ChangeEvent):
            return NotImplemented

        return (self.path, self.old, self.new, self.kind) == (other.path, other.old, other.new, other.kind)


class Observable(object):

    def __init__(self):
        self._observers = []

    def subscribe(self, callback):
        '''Register the callback, it's returned so it can be used as a decorator.'''
        if callback not in self._observers:
            self._observers.append(callback)

        return callback

    def unsubscribe(self, callback):
        self._observers.remove(callback)

    def emit(self, event):
        logger.debug('emitting %r to %d observers' % (event, len(self._observers)))
        for observer in list(self._observers):
            observer(event)
