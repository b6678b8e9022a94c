import logging
import threading

from groundlink.transport.socketconn import StreamConnection

logger = logging.getLogger(__name__)


class TransportRegistry:
    """
    Keeps track of the open connections by name. Several connections can share a name; the most
    recently added one is the one returned by get_connection_by_name().

    :param connection_factory: called with (name, host, port, **kwargs) to create a new, unopened connection.
    """

    def __init__(self, connection_factory=StreamConnection):
        self._connection_factory = connection_factory
        self._connections = {}
        self._lock = threading.Lock()

    def add_connection(self, name, host, port, **kwargs):
        """
        Creates a connection to host:port and registers it under the given name.
        The connection is returned unopened so that callbacks can be registered before calling open().
        """
        connection = self._connection_factory(name, host, port, **kwargs)
        with self._lock:
            self._connections.setdefault(name, []).append(connection)
        logger.debug("added connection %s to %s:%s" % (name, host, port))
        return connection

    def get_connection_by_name(self, name):
        with self._lock:
            connections = self._connections.get(name)
            return connections[-1] if connections else None

    def remove_all_connections(self, name):
        """ closes and forgets every connection registered under the name. """
        with self._lock:
            connections = self._connections.pop(name, [])
        for connection in connections:
            connection.close()
        if connections:
            logger.debug("removed %d connection(s) named %s" % (len(connections), name))
        return len(connections)

    @property
    def connections(self):
        """ a mapping from name to the list of connections registered under that name. """
        with self._lock:
            return {name: list(connections) for name, connections in self._connections.items()}
