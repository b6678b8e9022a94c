"""
The telemetry data model stores the current and past flight states of the aircraft, decoded from the
frames received from the data relay, and publishes each packet of a flight state as a named event.

Decoding is separate from publishing: decode_state() turns a data frame into a FlightState without
touching the model, set_current_state_from_string() records it, and emit_packets() publishes it.
"""
import logging
import threading
import time
from collections.abc import Mapping
from types import MappingProxyType

from groundlink.support.events import IsolatedEventSource
from groundlink.support.mixins import CommonEqualityMixin, StringerMixin
from groundlink.telemetry.packets import PacketParser

logger = logging.getLogger(__name__)

FIELD_DELIMITER = ','

# fired with a ColumnMismatch when a data frame has a different number of values than there are headers
COLUMN_MISMATCH = 'column_mismatch'

DEFAULT_MAX_LISTENERS = 50

# fired with the whole FlightState decoded from each data frame
DATA_RECEIVED = 'data_received'


def parse_value(text):
    """
    Converts a field value to a number where it looks like one. Anything else is kept as text.
    >>> parse_value(' 120 ')
    120
    >>> parse_value('-80.2')
    -80.2
    >>> parse_value('GPS_LOCK')
    'GPS_LOCK'
    >>> parse_value('1_2')
    '1_2'
    """
    text = text.strip()
    if '_' in text:     # int() and float() would drop digit separators
        return text
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


class FlightState(Mapping):
    """ An immutable mapping from header name to value, decoded from one data frame. """

    def __init__(self, values=None, time=None):
        self._values = MappingProxyType(dict(values or {}))
        self.time = time

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return "FlightState(%r)" % dict(self._values)


class ReceivedFrame(CommonEqualityMixin, StringerMixin):
    """ A frame exchanged with the data relay, and the time it was received or sent. """
    def __init__(self, time, data):
        self.time = time
        self.data = data


class ColumnMismatch(CommonEqualityMixin, StringerMixin):
    """ A data frame whose value count differs from the header count. The extra entries were dropped. """
    def __init__(self, headers, values):
        self.headers = list(headers)
        self.values = list(values)

    @property
    def dropped(self):
        """ the headers that received no value, or the values that had no header """
        n = min(len(self.headers), len(self.values))
        return self.headers[n:] or self.values[n:]


class TelemetryData:
    """
    Stores the received headers and flight states, and publishes packet events.

    Listeners are registered for an event name with on(). A listener that raises is logged and does not
    prevent delivery to the other listeners. Payloads are delivered as read-only mappings.

    :param max_listeners: registering more listeners than this for one event logs a warning.
        0 disables the check.
    :param packet_parser: slices flight states into packets
    :param current_time: returns the time stamped on received frames
    """

    def __init__(self, max_listeners=DEFAULT_MAX_LISTENERS, packet_parser=None, current_time=time.time, log=logger):
        self.max_listeners = max_listeners
        self.packet_parser = packet_parser or PacketParser()
        self.current_time = current_time
        self.logger = log
        self.headers = []           # field names, in the order the data relay sends the values
        self.received = []          # ReceivedFrame for every frame received, headers included, oldest first
        self.current_state = FlightState()
        self.state_history = []     # every FlightState decoded, oldest first
        self.sent = []              # ReceivedFrame for the data sent to the data relay
        self._listeners = {}
        self._lock = threading.RLock()

    # ---------------------------------------- #
    #  Listeners                               #
    # ---------------------------------------- #

    def on(self, event, listener):
        with self._lock:
            source = self._listeners.get(event)
            if source is None:
                source = self._listeners[event] = IsolatedEventSource(self._listener_failed)
            source.add(listener)
            count = len(source)
        if self.max_listeners and count > self.max_listeners:
            self.logger.warning("%d listeners added for event '%s', more than the maximum of %d"
                                % (count, event, self.max_listeners))
        return self

    def remove_listener(self, event, listener):
        with self._lock:
            source = self._listeners.get(event)
            if source is not None:
                source.remove(listener)
        return self

    def listener_count(self, event):
        source = self._listeners.get(event)
        return len(source) if source else 0

    def emit(self, event, payload):
        """ publishes a read-only view of the payload to the listeners registered for the event """
        source = self._listeners.get(event)
        if source is None:
            return False
        if isinstance(payload, Mapping) and not isinstance(payload, FlightState):
            payload = MappingProxyType(dict(payload))
        source.fire(payload)
        return True

    def _listener_failed(self, e, listener):
        self.logger.exception("telemetry listener %s failed: %s" % (listener, e))

    # ---------------------------------------- #
    #  Headers                                 #
    # ---------------------------------------- #

    def set_headers_from_string(self, headers_string):
        """
        Splits a comma separated list of headers, trims each, and sets them as the headers.
        Repeated names are kept; the later column replaces the earlier one when decoding.
        The header frame is recorded in received.
        """
        headers = [h.strip() for h in headers_string.split(FIELD_DELIMITER)]
        with self._lock:
            self.headers = headers
            self.received.append(ReceivedFrame(self.current_time(), headers_string))
        return headers

    def get_headers(self):
        return self.headers

    def clear_headers(self):
        self.headers = []

    def new_epoch(self):
        """ forgets the headers and the flight states received on a previous connection. """
        with self._lock:
            self.headers = []
            self.received = []
            self.current_state = FlightState()
            self.state_history = []
            self.sent = []

    # ---------------------------------------- #
    #  Flight states                           #
    # ---------------------------------------- #

    def decode_state(self, data_string, headers=None, time=None) -> FlightState:
        """
        Decodes a comma separated data frame against the headers. Values are matched to headers by position.
        When the counts differ, the extra headers or values are dropped, a warning is logged and the
        column_mismatch event is published.
        """
        headers = self.headers if headers is None else headers
        values = data_string.split(FIELD_DELIMITER)
        if len(values) != len(headers):
            mismatch = ColumnMismatch(headers, values)
            self.logger.warning("received %d values for %d headers, dropped %s"
                                % (len(values), len(headers), mismatch.dropped))
            self.emit(COLUMN_MISMATCH, mismatch)
        return FlightState({h: parse_value(v) for h, v in zip(headers, values)}, time)

    def set_current_state_from_string(self, data_string) -> FlightState:
        """ decodes a data frame and records it as the current flight state. """
        now = self.current_time()
        state = self.decode_state(data_string, time=now)
        with self._lock:
            self.current_state = state
            self.state_history.append(state)
            self.received.append(ReceivedFrame(now, data_string))
        return state

    def get_current_state(self):
        return self.current_state

    def record_sent(self, data):
        with self._lock:
            self.sent.append(ReceivedFrame(self.current_time(), data))

    # ---------------------------------------- #
    #  Packets                                 #
    # ---------------------------------------- #

    def packets_for(self, state=None):
        """ slices the state, by default the current state, into a mapping of packet name to payload """
        return self.packet_parser.parse_packets(self.current_state if state is None else state)

    def emit_packets(self, packets):
        """
        Publishes each packet as an event named after the packet, in the order given.
        :param packets: a mapping from packet name to its payload
        """
        for packet_name, packet_data in packets.items():
            self.emit(packet_name, packet_data)
