"""
The data relay link finds the data relay on the local network, keeps a connection to it, and feeds the
frames it sends into the telemetry model.

The link reacts to events from discovery and from its connection; nothing blocks the caller of start().
Progress is reported through the status register and through the telemetry model's events. The link
does not reconnect by itself: after a failed discovery or a closed connection, start() must be called again.
"""
import logging
import threading
from enum import Enum
from functools import partial

from groundlink.config.config import LinkConfig
from groundlink.discovery.broadcast import BroadcastDiscovery
from groundlink.status import INFO
from groundlink.support.events import IsolatedEventSource
from groundlink.support.mixins import CommonEqualityMixin, StringerMixin
from groundlink.telemetry.model import DATA_RECEIVED
from groundlink.transport.base import TransportError, CONNECT, CLOSE, TIMEOUT, DATA, WRITE

logger = logging.getLogger(__name__)

DATA_RELAY = 'data_relay'

CONNECTED_DATA_RELAY = 'CONNECTED_DATA_RELAY'
DISCONNECTED_DATA_RELAY = 'DISCONNECTED_DATA_RELAY'
TIMEOUT_DATA_RELAY = 'TIMEOUT_DATA_RELAY'
TIMEOUT_UDP = 'TIMEOUT_UDP'

headers_status_ttl = 3000
sent_status_ttl = 2000


class LinkState(Enum):
    IDLE = 'idle'
    DISCOVERING = 'discovering'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    TIMED_OUT = 'timed_out'
    CLOSED = 'closed'


class LinkStateChangedEvent(CommonEqualityMixin, StringerMixin):
    def __init__(self, old, new):
        self.old = old
        self.new = new


def format_command(command, value):
    """
    >>> format_command('set_heading', 90)
    'set_heading:90\\r\\n'
    """
    return "%s:%s\r\n" % (command, value)


class DataRelayLink:
    """
    Manages the connection to the data relay.

    The first frame received on a new connection is the header frame, naming the fields. Each later
    frame holds the values of those fields, and is decoded into a flight state that is published
    as packet events by the telemetry model.

    :param telemetry: the TelemetryData that receives the decoded flight states
    :param transports: the TransportRegistry used to open the connection
    :param status: the StatusRegister that reports the state of the link
    :param packet_parser: checks the received headers and slices flight states into packets.
        Defaults to the telemetry model's parser.
    :param config: a LinkConfig
    :param discovery: locates the data relay. Defaults to a BroadcastDiscovery on the configured port.
    :param name: the name of the connection in the transport registry
    """

    def __init__(self, telemetry, transports, status, packet_parser=None, config=None, discovery=None,
                 name=DATA_RELAY, log=logger):
        self.telemetry = telemetry
        self.transports = transports
        self.status = status
        self.packet_parser = packet_parser or telemetry.packet_parser
        self.config = config or LinkConfig()
        self.discovery = discovery or BroadcastDiscovery(self.config.datarelay_port)
        self.name = name
        self.logger = log
        self.state_events = IsolatedEventSource()     # receives LinkStateChangedEvent
        self._state = LinkState.IDLE
        self._connection = None
        self._epoch = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def connection(self):
        """ the connection of the current epoch, or None """
        return self._connection

    def start(self):
        """
        Drops any existing connection and starts a new link epoch: either connects directly to the
        legacy host and port, or broadcasts for the data relay. Returns immediately.
        """
        epoch = self._teardown()
        config = self.config
        if config.datarelay_legacy_mode:
            self.logger.info("connecting to the data relay at %s:%s (legacy mode)"
                             % (config.datarelay_legacy_host, config.datarelay_legacy_port))
            self._connect(epoch, config.datarelay_legacy_host, config.datarelay_legacy_port)
        else:
            self.logger.info("searching for the data relay on port %s" % config.datarelay_port)
            self._change_state(epoch, LinkState.DISCOVERING)
            self.discovery.start(partial(self._discovered, epoch), partial(self._discovery_timed_out, epoch))

    def stop(self):
        """ cancels discovery and closes the connection. """
        epoch = self._teardown()
        self._change_state(epoch, LinkState.IDLE)

    def _teardown(self):
        self.telemetry.new_epoch()
        with self._lock:
            self._epoch += 1
            self._connection = None
            epoch = self._epoch
        self.discovery.cancel()
        self.transports.remove_all_connections(self.name)
        return epoch

    def _change_state(self, epoch, new, connection=None, expected=None):
        """
        moves to a new state if the epoch, and the connection when given, are still current.
        :param expected: the states the change is allowed from, or None for any state
        :return: True if the state changed
        """
        with self._lock:
            if epoch != self._epoch or (connection is not None and connection is not self._connection):
                return False
            old = self._state
            if old is new or (expected is not None and old not in expected):
                return False
            self._state = new
        self.logger.debug("data relay link %s -> %s" % (old.value, new.value))
        self.state_events.fire(LinkStateChangedEvent(old, new))
        return True

    def _current(self, connection):
        with self._lock:
            return connection is self._connection

    def _set_status(self, connection, code, value):
        """ sets a status code on behalf of a connection, unless the link has moved on from it """
        with self._lock:
            if connection is self._connection:
                self.status.set_status_code(code, value)

    # ---------------------------------------- #
    #  Discovery                               #
    # ---------------------------------------- #

    def _discovered(self, epoch, host, port):
        self._connect(epoch, host, port)

    def _discovery_timed_out(self, epoch, event):
        with self._lock:
            if epoch != self._epoch:
                return
            self.status.set_status_code(TIMEOUT_UDP, True)
        self.logger.error("no reply from the data relay on %s" % (event.broadcast or "any network interface"))
        if event.remaining == 0:
            self._change_state(epoch, LinkState.IDLE, expected=(LinkState.DISCOVERING,))

    # ---------------------------------------- #
    #  Connection                              #
    # ---------------------------------------- #

    def _connect(self, epoch, host, port):
        try:
            port = int(port)
        except (TypeError, ValueError):
            self.logger.error("invalid data relay port '%s' for host %s" % (port, host))
            return
        with self._lock:
            if epoch != self._epoch or self._connection is not None:
                return
            connection = self.transports.add_connection(self.name, host, port)
            self._connection = connection
        connection.set_timeout(self.config.datarelay_timeout)
        connection.on(CONNECT, partial(self._on_connect, connection))
        connection.on(CLOSE, partial(self._on_close, connection))
        connection.on(TIMEOUT, partial(self._on_timeout, connection))
        connection.on(WRITE, partial(self._on_write, connection))
        connection.on(DATA, partial(self._on_data, connection))
        self._change_state(epoch, LinkState.CONNECTING, connection)
        connection.open()

    def _on_connect(self, connection):
        if not self._change_state(self._epoch, LinkState.CONNECTED, connection):
            return
        self.logger.info("connected to the data relay at %s:%s" % connection.endpoint)
        self.telemetry.clear_headers()
        self._set_status(connection, CONNECTED_DATA_RELAY, True)

    def _on_close(self, connection, had_error=False):
        if not self._change_state(self._epoch, LinkState.CLOSED, connection):
            return
        if had_error:
            self.logger.warning("the connection to the data relay was lost")
        else:
            self.logger.info("the connection to the data relay closed")
        self._set_status(connection, DISCONNECTED_DATA_RELAY, True)

    def _on_timeout(self, connection):
        if not self._current(connection) or self._state is LinkState.CLOSED:
            return
        self.logger.warning("no data from the data relay in %sms" % self.config.datarelay_timeout)
        self._change_state(self._epoch, LinkState.TIMED_OUT, connection)
        self._set_status(connection, TIMEOUT_DATA_RELAY, True)

    def _on_write(self, connection, data):
        if self._current(connection):
            self.status.add_status('Sent command to %s' % self.name, INFO, sent_status_ttl)

    def _on_data(self, connection, frame):
        if not self._current(connection) or self._state is LinkState.CLOSED:
            return
        if isinstance(frame, bytes):
            try:
                frame = frame.decode('utf-8')
            except UnicodeDecodeError:
                frame = None
        if not isinstance(frame, str) or not frame.strip():
            self.logger.error("discarded invalid frame from the data relay: %r" % (frame,))
            return
        if not self.telemetry.headers:
            self._received_headers(frame)
        else:
            self._received_state(connection, frame)

    def _received_headers(self, frame):
        headers = self.telemetry.set_headers_from_string(frame)
        self.packet_parser.check_for_missing_headers(headers)
        self.logger.info("received headers: %s" % frame)
        self.status.add_status('Received headers from %s' % self.name, INFO, headers_status_ttl)

    def _received_state(self, connection, frame):
        state = self.telemetry.set_current_state_from_string(frame)
        self.telemetry.emit(DATA_RECEIVED, state)
        self.telemetry.emit_packets(self.packet_parser.parse_packets(state))
        self.logger.debug("received data: %s" % frame)
        self._set_status(connection, TIMEOUT_DATA_RELAY, False)
        self._change_state(self._epoch, LinkState.CONNECTED, connection, expected=(LinkState.TIMED_OUT,))

    # ---------------------------------------- #
    #  Sending                                 #
    # ---------------------------------------- #

    def send(self, data):
        """
        Writes data to the data relay and records it in the telemetry model.
        :return: False if there is no connection to write to
        """
        connection = self._connection
        if connection is None or not connection.connected:
            self.logger.warning("not connected to the data relay, %r was not sent" % (data,))
            return False
        try:
            connection.write(data)
        except TransportError as e:
            self.logger.warning("unable to send %r to the data relay: %s" % (data, e))
            return False
        self.telemetry.record_sent(data)
        return True

    def send_command(self, command, value):
        """ sends a command as a 'command:value' line """
        return self.send(format_command(command, value))
