"""
Locates the data relay by broadcasting on each local subnet.

Each DiscoveryAttempt sends "<local-ip>:<local-port>" from an ephemeral UDP socket to the subnet
broadcast address, and waits up to a second for a reply. The reply datagram holds the TCP port to
connect to, and its sender is the host. When several subnets are searched, the attempts race:
the first reply wins and the others are cancelled.
"""
import logging
import socket
import threading
from functools import partial

from groundlink.discovery.network import InterfaceAddress, broadcast_candidates
from groundlink.support.events import IsolatedEventSource
from groundlink.support.loop import AsyncLoop
from groundlink.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)

# seconds to wait for a reply to a discovery broadcast
DISCOVERY_WINDOW = 1.0

reply_size = 1024


class DiscoveryEvent(CommonEqualityMixin, StringerMixin):
    """ Notification about the outcome of a discovery attempt. """
    def __init__(self, source):
        """
        :param source   The BroadcastDiscovery that posted this event
        """
        self.source = source


class DiscoveryReplyEvent(DiscoveryEvent):
    """ The data relay replied to a broadcast. """
    def __init__(self, source, host, port):
        super().__init__(source)
        self.host = host
        self.port = port


class DiscoveryTimeoutEvent(DiscoveryEvent):
    """
    A broadcast went unanswered.
    :param broadcast: the broadcast address of the attempt, or None when there was nothing to broadcast on
    :param remaining: the number of attempts still waiting for a reply
    """
    def __init__(self, source, broadcast, remaining):
        super().__init__(source)
        self.broadcast = broadcast
        self.remaining = remaining


def udp_broadcast_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    return sock


def parse_reply(data):
    """
    Decodes the TCP port number from a reply datagram.
    >>> parse_reply(b'5000')
    5000
    >>> parse_reply(b'data relay') is None
    True
    """
    try:
        port = int(data.decode('utf-8').strip())
    except (UnicodeDecodeError, ValueError):
        return None
    return port if 0 < port < 65536 else None


class DiscoveryAttempt:
    """
    A single broadcast and the wait for its reply. Exactly one outcome is decided: a reply, the window
    expiring, or cancellation. Deciding the outcome closes the socket and cancels the timer.

    :param interface: the InterfaceAddress to broadcast from
    :param port: the UDP port the data relay listens on
    :param on_reply: called with (attempt, host, port) when a reply arrives
    :param on_timeout: called with (attempt) when no reply arrives in time, or the broadcast could not be sent
    """

    def __init__(self, interface: InterfaceAddress, port, on_reply, on_timeout, window=DISCOVERY_WINDOW,
                 socket_factory=udp_broadcast_socket, timer_factory=threading.Timer, log=logger):
        self.interface = interface
        self.port = port
        self.window = window
        self.logger = log
        self._on_reply = on_reply
        self._on_timeout = on_timeout
        self._socket_factory = socket_factory
        self._timer_factory = timer_factory
        self._sock = None
        self._timer = None
        self._done = False
        self._lock = threading.Lock()
        self._loop = AsyncLoop(self._receive, name="discovery %s" % interface.broadcast, log=log)

    @property
    def done(self):
        return self._done

    def message(self):
        """ the broadcast payload, telling the data relay where to reply """
        return ("%s:%d" % (self.interface.address, self._sock.getsockname()[1])).encode('utf-8')

    def start(self):
        with self._lock:
            if self._done:
                return
        target = (self.interface.broadcast, self.port)
        try:
            sock = self._socket_factory()
            with self._lock:
                cancelled = self._done
                if not cancelled:
                    self._sock = sock
            if cancelled:
                sock.close()
                return
            sock.bind(('', 0))
            sock.settimeout(self.window)
            sock.sendto(self.message(), target)
        except OSError as e:
            self.logger.error("unable to broadcast to %s:%s: %s" % (target[0], target[1], e))
            if self._finish():
                self._on_timeout(self)
            return
        self.logger.info("UDP message sent to %s:%s" % target)

        timer = self._timer_factory(self.window, self._expired)
        timer.daemon = True
        with self._lock:
            if self._done:
                return
            self._timer = timer
        timer.start()
        self._loop.start()

    def cancel(self):
        """ abandons the attempt. Neither callback is called after this. """
        return self._finish()

    def _receive(self):
        sock = self._sock
        try:
            data, (host, _) = sock.recvfrom(reply_size)
        except OSError:     # timed out, or closed when the outcome was decided
            if self._done:
                self._loop.stop(wait=False)
            return
        self._reply(data, host)

    def _reply(self, data, host):
        port = parse_reply(data)
        if port is None:
            self.logger.warning("ignoring discovery reply %r from %s" % (data, host))
            return
        if self._finish():
            self._on_reply(self, host, port)

    def _expired(self):
        if self._finish():
            self.logger.error("UDP discovery on %s timed out" % self.interface.broadcast)
            self._on_timeout(self)

    def _finish(self):
        """
        decides the outcome of this attempt.
        :return: True if this call decided the outcome, False if it was already decided.
        """
        with self._lock:
            if self._done:
                return False
            self._done = True
            sock, timer = self._sock, self._timer
        if timer is not None:
            timer.cancel()
        self._loop.stop(wait=False)
        if sock is not None:
            sock.close()
        return True


class BroadcastDiscovery:
    """
    Searches every local subnet in parallel for the data relay.

    The first reply is committed and the remaining attempts are cancelled. Replies that arrive later,
    or that belong to a search that has since been restarted or cancelled, are ignored.
    Discovery is not retried once all attempts have timed out.

    :param port: the UDP port the data relay listens on
    :param candidates: returns the InterfaceAddress instances to broadcast from
    :param attempt_factory: creates a DiscoveryAttempt given (interface, port, on_reply, on_timeout, window=)
    """

    def __init__(self, port, window=DISCOVERY_WINDOW, candidates=broadcast_candidates,
                 attempt_factory=DiscoveryAttempt, log=logger):
        self.port = port
        self.window = window
        self.logger = log
        self.listeners = IsolatedEventSource()     # receives DiscoveryEvent instances
        self.generation = 0
        self._candidates = candidates
        self._attempt_factory = attempt_factory
        self._attempts = []
        self._committed = False
        self._lock = threading.Lock()

    @property
    def searching(self):
        with self._lock:
            return bool(self._attempts)

    @property
    def attempts(self):
        with self._lock:
            return tuple(self._attempts)

    def start(self, on_found, on_timeout):
        """
        Starts a new search, cancelling any search in progress. Returns immediately.
        :param on_found: called with (host, port) for the first reply
        :param on_timeout: called with a DiscoveryTimeoutEvent each time an attempt goes unanswered.
            The event's remaining count is 0 when the search has failed.
        """
        self.cancel()
        with self._lock:
            generation = self.generation
            self._committed = False
        interfaces = self._candidates()
        if not interfaces:
            self.logger.error("no network interfaces to broadcast on")
            self._timed_out(generation, on_timeout, None)
            return
        attempts = [self._attempt_factory(interface, self.port,
                                          partial(self._replied, generation, on_found),
                                          partial(self._timed_out, generation, on_timeout),
                                          window=self.window)
                    for interface in interfaces]
        with self._lock:
            if generation != self.generation:
                return
            self._attempts = list(attempts)
        for attempt in attempts:
            attempt.start()

    def cancel(self):
        """ stops the search in progress. Outstanding attempts are closed without reporting. """
        with self._lock:
            attempts = self._attempts
            self._attempts = []
            self.generation += 1
        for attempt in attempts:
            attempt.cancel()

    def _replied(self, generation, on_found, attempt, host, port):
        with self._lock:
            if generation != self.generation or self._committed:
                return
            self._committed = True
            others = [a for a in self._attempts if a is not attempt]
            self._attempts = []
        for other in others:
            other.cancel()
        self.logger.info("data relay at %s:%s" % (host, port))
        self.listeners.fire(DiscoveryReplyEvent(self, host, port))
        on_found(host, port)

    def _timed_out(self, generation, on_timeout, attempt):
        with self._lock:
            if generation != self.generation or self._committed:
                return
            if attempt in self._attempts:
                self._attempts.remove(attempt)
            remaining = len(self._attempts)
        event = DiscoveryTimeoutEvent(self, attempt.interface.broadcast if attempt else None, remaining)
        self.listeners.fire(event)
        on_timeout(event)
