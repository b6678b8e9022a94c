import logging
import socket
import threading

from groundlink.support.loop import AsyncLoop
from groundlink.transport.base import Connection, ConnectionNotConnectedError, TransportError, \
    CONNECT, CLOSE, TIMEOUT, DATA, WRITE
from groundlink.transport.framing import FrameBuffer

logger = logging.getLogger(__name__)


class StreamConnection(Connection):
    """
    A TCP client connection. The socket is opened and read on a background thread, and each
    complete frame received is published as a data event.

    :param delimiter: the bytes that end each frame, or None to publish each received chunk as a frame.
    :param socket_factory: called with (address, timeout) to open the socket. Defaults to
        socket.create_connection.
    """

    receive_size = 4096

    def __init__(self, name, host, port, delimiter=b'\n', connect_timeout=5,
                 socket_factory=socket.create_connection, log=logger):
        super().__init__(name)
        self.host = host
        self.port = int(port)
        self.connect_timeout = connect_timeout
        self.logger = log
        self._socket_factory = socket_factory
        self._framer = FrameBuffer(delimiter, log=log)
        self._idle_timeout = None
        self._sock = None
        self._closed = False
        self._lock = threading.Lock()
        self._loop = AsyncLoop(self._pump, name="connection %s" % name, log=log)

    @property
    def endpoint(self):
        return self.host, self.port

    @property
    def connected(self):
        return self._sock is not None and not self._closed

    @property
    def closed(self):
        return self._closed

    def set_timeout(self, ms):
        self._idle_timeout = ms / 1000 if ms else None
        sock = self._sock
        if sock is not None:
            sock.settimeout(self._idle_timeout)

    def open(self):
        if self._closed:
            raise ConnectionNotConnectedError("connection %s is closed" % self.name)
        self._loop.start()

    def _pump(self):
        if self._sock is None:
            self._connect()
        else:
            self._receive()

    def _connect(self):
        try:
            sock = self._socket_factory(self.endpoint, self.connect_timeout)
        except OSError as e:
            self.logger.warning("error opening socket to %s:%s: %s" % (self.host, self.port, e))
            self._shutdown(had_error=True)
            return
        sock.settimeout(self._idle_timeout)
        with self._lock:
            closed = self._closed
            if not closed:
                self._sock = sock
        if closed:      # closed while the socket was connecting
            sock.close()
            return
        self.logger.info("opened socket to %s:%s" % (self.host, self.port))
        self._emit(CONNECT)

    def _receive(self):
        try:
            data = self._sock.recv(self.receive_size)
        except socket.timeout:
            self._emit(TIMEOUT)
            return
        except OSError as e:
            if not self._closed:
                self.logger.warning("error reading from %s:%s: %s" % (self.host, self.port, e))
                self._shutdown(had_error=True)
            return
        if not data:
            self._shutdown(had_error=False)
            return
        for frame in self._framer.feed(data):
            self._emit(DATA, frame)

    def write(self, data):
        """
        Writes bytes, or text encoded as UTF-8, to the connection.
        :raises ConnectionNotConnectedError: if the connection is not open
        """
        if isinstance(data, str):
            data = data.encode('utf-8')
        sock = self._sock
        if sock is None or self._closed:
            raise ConnectionNotConnectedError("connection %s is not connected" % self.name)
        try:
            sock.sendall(data)
        except OSError as e:
            self._shutdown(had_error=True)
            raise TransportError("error writing to %s:%s" % (self.host, self.port)) from e
        self._emit(WRITE, data)

    def close(self):
        self._shutdown(had_error=False)

    def _shutdown(self, had_error):
        """ closes the socket and publishes the close event, once only. """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sock = self._sock
        self._loop.stop(wait=False)
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass    # the peer may have closed the socket
            finally:
                sock.close()
        self._framer.clear()
        self.logger.info("closed connection %s to %s:%s" % (self.name, self.host, self.port))
        self._emit(CLOSE, had_error)
