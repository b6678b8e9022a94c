"""


Ground station link to the data relay

- Data relay: the process on the ground station network that forwards aircraft telemetry over TCP.
  It sends a header line naming the fields, then one line of comma separated values per update.
- Discovery: a UDP broadcast on each local subnet carrying "<local-ip>:<local-port>". The data relay
  replies with the TCP port to connect to. The first reply wins. In legacy mode discovery is skipped
  and a configured host/port is used.
- Transport registry: keeps the named connections. A StreamConnection reads the socket on a
  background thread and publishes connect, close, timeout, data and write events.
- Link: DataRelayLink runs the connection lifecycle
  (IDLE -> DISCOVERING -> CONNECTING -> CONNECTED -> TIMED_OUT | CLOSED) and feeds frames to
  the telemetry model.
- Telemetry model: TelemetryData decodes data frames into flight states, keeps their history, and
  publishes each packet category (aircraft_position, aircraft_orientation, ...) as an event.
- Status register: connectivity flags and short lived messages for display.


## Threading

Each connection and each discovery attempt runs on its own daemon thread. Callbacks registered
on the link, the telemetry model or the status register are called on those threads, so
listeners should hand work off to their own thread if they touch a UI.

A failed discovery or a closed connection is not retried. Call start() again to reconnect.
"""
