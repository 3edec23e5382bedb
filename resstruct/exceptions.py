class ResstructException(Exception):
    '''Base class to extend in order to throw exception in resstruct.

    The chain represents the names of the layers that caused the exception,
    from the outermost to the failing field; each composite prepends the name
    of its child while the exception propagates.
    '''

    def __init__(self, chain=None, message=None, offset=None):
        self.chain = chain if chain is not None else []
        self.message = message
        self.offset = offset
        super().__init__(message)

    @property
    def path(self) -> str:
        return '.'.join(str(_) for _ in self.chain)

    def __str__(self):
        msg = self.message or self.__class__.__name__
        if self.chain:
            msg = "field '%s': %s" % (self.path, msg)
        if self.offset is not None:
            msg = '%s (offset 0x%x)' % (msg, self.offset)

        return msg


class TemplateMismatch(ResstructException):
    '''The data doesn't follow the structure the template describes.'''
    pass


class TruncatedData(TemplateMismatch):
    pass


class InvalidRepeatCount(TemplateMismatch):
    pass


class ValueTooLong(ResstructException):
    '''A value cannot be represented in the space the template gives it.'''
    pass


class TypeConstraintViolation(ResstructException):
    pass


class UnknownFieldPath(ResstructException):
    pass
