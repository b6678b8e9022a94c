import threading


def _quoted(value):
    return "None" if value is None else "'%s'" % value


class StringerMixin:
    """ renders an object as its class name followed by its attributes, sorted by name. """

    def __str__(self):
        items = ", ".join("'%s': %s" % (k, _quoted(v)) for k, v in sorted(vars(self).items()))
        return "%s:{%s}" % (type(self).__name__, items)


class CommonEqualityMixin:
    """
    Value equality for events and other small records: two instances are equal when the other is an
    instance of this class and their attributes are equal.
    """
    _comparing = threading.local()

    def __eq__(self, other):
        if not isinstance(other, self.__class__) or not hasattr(other, '__dict__'):
            return False
        pairs = CommonEqualityMixin._comparing.__dict__.setdefault('pairs', set())
        pair = (id(self), id(other))
        if pair in pairs:
            raise ValueError("recursive comparison of %s and %s" % (type(self).__name__, type(other).__name__))
        pairs.add(pair)
        try:
            return vars(self) == vars(other)
        finally:
            pairs.discard(pair)

    def __ne__(self, other):
        return not self.__eq__(other)
