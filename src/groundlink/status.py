"""
The status register holds the connectivity flags reported by the data relay link, and transient
messages that expire after a while. Listeners on `events` are notified of every change.
"""
import logging
import threading
import time

from groundlink.support.events import IsolatedEventSource
from groundlink.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)

# severity levels
ERROR = 1
WARNING = 2
INFO = 3


class StatusCode:
    """ A named flag with the message shown while it is set. """
    def __init__(self, code, message, severity, excludes=()):
        """
        :param excludes: names of the codes that are cleared when this code is set
        """
        self.code = code
        self.message = message
        self.severity = severity
        self.excludes = tuple(excludes)


STATUS_CODES = {c.code: c for c in (
    StatusCode('CONNECTED_DATA_RELAY', 'Connected to the data relay', INFO, ('DISCONNECTED_DATA_RELAY',)),
    StatusCode('DISCONNECTED_DATA_RELAY', 'Disconnected from the data relay', ERROR, ('CONNECTED_DATA_RELAY',)),
    StatusCode('TIMEOUT_DATA_RELAY', 'No data received from the data relay', WARNING),
    StatusCode('TIMEOUT_UDP', 'Timed out searching for the data relay', ERROR),
)}


class StatusEvent(CommonEqualityMixin, StringerMixin):
    """ base class for status register events. """


class StatusChangedEvent(StatusEvent):
    """ A status code was set or cleared. """
    def __init__(self, code, value):
        self.code = code
        self.value = value


class StatusAddedEvent(StatusEvent):
    """ A transient status message was added. """
    def __init__(self, message, severity, ttl_ms):
        self.message = message
        self.severity = severity
        self.ttl_ms = ttl_ms


class Status:
    """ An active status message. expires is None for messages that do not expire. """
    def __init__(self, message, severity, expires=None):
        self.message = message
        self.severity = severity
        self.expires = expires

    def expired(self, now):
        return self.expires is not None and now >= self.expires

    def __repr__(self):
        return "Status(%r, %r)" % (self.message, self.severity)


class StatusRegister:
    """
    Holds the named status codes and transient status messages.
    Safe to update from the background threads that run the link's connections.

    :param codes: the known status codes, by name
    :param current_time: returns the time in seconds, used to expire messages
    """

    def __init__(self, codes=None, current_time=time.time):
        self.codes = dict(STATUS_CODES if codes is None else codes)
        self.current_time = current_time
        self.events = IsolatedEventSource()
        self._values = {code: False for code in self.codes}
        self._statuses = []
        self._lock = threading.RLock()

    def set_status_code(self, code, value):
        """
        Sets or clears a status code. Setting a code clears any codes it excludes.
        :raises KeyError: if the code is not known
        """
        status_code = self.codes[code]
        value = bool(value)
        changed = []
        with self._lock:
            if value:
                for excluded in status_code.excludes:
                    if self._values.get(excluded):
                        self._values[excluded] = False
                        changed.append((excluded, False))
            self._values[code] = value
            changed.append((code, value))
        logger.debug("status %s = %s" % (code, value))
        for c, v in changed:
            self.events.fire(StatusChangedEvent(c, v))

    def get_status_code(self, code):
        return self._values[code]

    def add_status(self, message, severity=INFO, ttl_ms=None):
        """
        Adds a transient status message.
        :param ttl_ms: milliseconds until the message expires, or None to keep it until removed.
        """
        expires = None if ttl_ms is None else self.current_time() + ttl_ms / 1000
        with self._lock:
            self._statuses.append(Status(message, severity, expires))
        self.events.fire(StatusAddedEvent(message, severity, ttl_ms))

    def remove_status(self, message):
        with self._lock:
            self._statuses = [s for s in self._statuses if s.message != message]

    def active_statuses(self, now=None):
        """
        Retrieves the messages for the codes that are set, followed by the unexpired transient messages.
        Expired messages are discarded.
        """
        now = self.current_time() if now is None else now
        with self._lock:
            self._statuses = [s for s in self._statuses if not s.expired(now)]
            codes = [Status(c.message, c.severity) for name, c in self.codes.items() if self._values[name]]
            return codes + list(self._statuses)
