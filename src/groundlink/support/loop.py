import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class AsyncLoop:
    """
    Calls a function over and over on a daemon thread until stopped. Connections use it to read their
    socket, and discovery attempts to wait for a reply.

    Subclasses can override startup(), loop() and shutdown() instead of passing a function.
    An exception raised by any of these is passed to exception_handler() and the loop carries on.

    :param fn: the function to call each time around the loop
    :param args: positional arguments for fn
    :param name: the name of the background thread
    """

    def __init__(self, fn: Callable=None, args=(), name=None, log=logger):
        self.fn = fn
        self.args = args
        self.name = name
        self.logger = log
        self.stop_event = threading.Event()
        self.background_thread = None

    def start(self):
        """ starts the background thread, if not already started """
        if self.background_thread is not None:
            return
        self.background_thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self.background_thread.start()

    def running(self):
        return not self.stop_event.is_set()

    def stop(self, wait=True):
        """
        Asks the background thread to finish after the current pass around the loop.
        :param wait: wait for the thread to finish. Never waits when called on the loop's own thread.
        """
        self.stop_event.set()
        thread, self.background_thread = self.background_thread, None
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def exception_handler(self, e):
        self.logger.exception(e)

    def startup(self):
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        pass

    def _run(self):
        self._guarded(self.startup)
        while self.running():
            self._guarded(self.loop)
        self._guarded(self.shutdown)
        self.logger.debug("thread %s finished" % self.name)

    def _guarded(self, step):
        try:
            step()
        except Exception as e:
            self.exception_handler(e)
        # let other threads run between passes
        time.sleep(0)
