import logging
from abc import abstractmethod

from groundlink.support.events import IsolatedEventSource

logger = logging.getLogger(__name__)

# the events a connection publishes
CONNECT = 'connect'
CLOSE = 'close'
TIMEOUT = 'timeout'
DATA = 'data'
WRITE = 'write'

CONNECTION_EVENTS = (CONNECT, CLOSE, TIMEOUT, DATA, WRITE)


class TransportError(Exception):
    """ Indicates an error condition with a connection. """


class ConnectionNotConnectedError(TransportError):
    """ Indicates a connection is in the disconnected state when a connection is required. """


class Connection:
    """
    A named, bidirectional byte stream to an endpoint. Changes in the connection and received data
    are published as events. Callbacks are registered with on():

    - connect()         the connection is established
    - close(had_error)  the connection was closed, or could not be opened
    - timeout()         nothing was received within the idle timeout. The connection stays open.
    - data(frame)       a frame was received
    - write(data)       data was written to the connection
    """

    def __init__(self, name):
        self.name = name
        self._events = {event: IsolatedEventSource() for event in CONNECTION_EVENTS}

    def on(self, event, callback):
        """
        registers a callback for the named event.
        :raises ValueError: if the event is not one of CONNECTION_EVENTS
        """
        if event not in self._events:
            raise ValueError("unknown connection event '%s'" % event)
        self._events[event].add(callback)
        return self

    def remove_listener(self, event, callback):
        if event in self._events:
            self._events[event].remove(callback)
        return self

    def listeners(self, event):
        return self._events[event].handlers()

    def _emit(self, event, *args):
        self._events[event].fire(*args)

    @property
    @abstractmethod
    def endpoint(self):
        """ the endpoint that this connection reaches out to """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def open(self):
        """ starts connecting. The outcome is published as a connect or close event. """
        raise NotImplementedError

    @abstractmethod
    def set_timeout(self, ms):
        """ sets the idle timeout in milliseconds. 0 or None disables the timeout. """
        raise NotImplementedError

    @abstractmethod
    def write(self, data):
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError
