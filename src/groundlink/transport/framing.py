import logging

logger = logging.getLogger(__name__)

# the most bytes held while waiting for a frame delimiter
max_frame_size = 65536


class FrameBuffer:
    """
    Accumulates bytes received from a stream and splits them into frames.

    :param delimiter: the bytes that terminate a frame. When None, every chunk of received data
        is a frame by itself.
    :param max_pending: when more bytes than this arrive without a delimiter, they are discarded
        and logged as an invalid frame.
    """

    def __init__(self, delimiter=b'\n', max_pending=max_frame_size, log=logger):
        self.delimiter = delimiter
        self.max_pending = max_pending
        self.logger = log
        self._buffer = bytearray()
        self._discarding = False    # dropping the rest of an oversized frame

    def feed(self, data: bytes) -> list:
        """
        Adds data to the buffer and returns the complete frames now available, in order.
        A trailing carriage return is removed from each frame. Empty frames are returned as b''.
        """
        if self.delimiter is None:
            return [bytes(data)] if data else []
        self._buffer.extend(data)
        frames = []
        while True:
            index = self._buffer.find(self.delimiter)
            if index < 0:
                break
            if self._discarding:
                del self._buffer[:index + len(self.delimiter)]
                self._discarding = False
                continue
            frame = bytes(self._buffer[:index])
            del self._buffer[:index + len(self.delimiter)]
            if frame.endswith(b'\r'):
                frame = frame[:-1]
            frames.append(frame)
        if len(self._buffer) > self.max_pending:
            self.logger.error("discarded an invalid frame: %d bytes without a frame delimiter" % len(self._buffer))
            self._buffer.clear()
            self._discarding = True
        elif self._discarding:
            # keep what could be the start of a split delimiter
            del self._buffer[:len(self._buffer) - len(self.delimiter) + 1]
        return frames

    @property
    def pending(self) -> bytes:
        """ the bytes received since the last complete frame """
        return bytes(self._buffer)

    def clear(self):
        self._buffer.clear()
        self._discarding = False
