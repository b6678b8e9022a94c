import logging

logger = logging.getLogger(__name__)


class EventSource(object):
    """
    An ordered list of handlers that are called when an event is fired.

    :param error_handler: when given, handlers are isolated from each other. An exception raised
        by one handler is passed to error_handler(exception, handler) and the remaining handlers
        are still called. Without an error handler, exceptions propagate to the caller of fire().
    """

    def __init__(self, error_handler=None):
        self._handlers = []
        self._error_handler = error_handler

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def clear(self):
        self._handlers = []

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        for e in events:
            self._fire(e)

    def _fire(self, *args, **kwargs):
        # handlers added while firing do not see the event in progress
        for handler in tuple(self._handlers):
            if self._error_handler is None:
                handler(*args, **kwargs)
            else:
                try:
                    handler(*args, **kwargs)
                except Exception as e:
                    self._error_handler(e, handler)


def log_handler_error(e, handler):
    """ error handler for isolated event sources that logs the failure and carries on. """
    logger.exception("event handler %s failed: %s" % (handler, e))


class IsolatedEventSource(EventSource):
    """ An event source where a failing handler does not prevent delivery to the others. """

    def __init__(self, error_handler=log_handler_error):
        super().__init__(error_handler)
