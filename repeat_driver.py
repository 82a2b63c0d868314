"""The send / wait loop that drives one repeat-print run."""
from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional

from receipt_counter import next_payload
from repeat_errors import TransportError
from repeat_settings import UNBOUNDED

logger = logging.getLogger("thermalrepeat.driver")

# granularity of the default wait, so a stop request is seen promptly
STOP_POLL_SECONDS = 0.2


class RunState(enum.Enum):
    SENDING = "sending"
    WAITING = "waiting"
    DONE = "done"
    FAILED = "failed"


class RepeatDriver:
    """Send the receipt, sleep, repeat until the budget runs out.

    The driver owns the transport for the length of the run, the print
    counter and the remaining repeat budget. A budget of -1 never runs out;
    any other budget still gets at least one send, because the
    decrement-and-test only happens after the first wait.

    ``sleep`` is called with the delay in seconds. The default sleeps in
    short slices and returns early once ``stop()`` has been called.
    ``stop()`` only sets a plain flag, so it is safe to call from a signal
    handler.
    """

    def __init__(self, config, transport, sleep: Optional[Callable[[float], object]] = None):
        self.config = config
        self.transport = transport
        self._stop_requested = False
        self._sleep = sleep or self._wait
        self.state = RunState.SENDING
        self.counter = 0
        self.sends = 0
        self.remaining = config.repeat_count
        self.error: Optional[TransportError] = None

    @property
    def stopped(self) -> bool:
        return self._stop_requested

    def stop(self):
        """Ask the loop to finish at the next iteration boundary."""
        self._stop_requested = True

    def _wait(self, seconds: float):
        deadline = time.monotonic() + seconds
        while not self._stop_requested:
            left = deadline - time.monotonic()
            if left <= 0:
                break
            time.sleep(min(STOP_POLL_SECONDS, left))

    def _budget_left(self) -> bool:
        if self.remaining == UNBOUNDED:
            return True
        self.remaining -= 1
        return self.remaining > 0

    def _send_once(self):
        if self.config.injects_counter:
            self.counter += 1
        payload = next_payload(self.config, self.counter)
        self.transport.send(payload, self.config.device_id)
        self.sends += 1
        if self.config.injects_counter:
            logger.info(f"[SEND] #{self.sends} {len(payload)} bytes to {self.config.device_id} (counter {self.counter})")
        else:
            logger.info(f"[SEND] #{self.sends} {len(payload)} bytes to {self.config.device_id}")

    def _fail(self, e: Exception):
        if not isinstance(e, TransportError):
            e = TransportError(str(e), self.config.device_id)
        self.error = e
        self.state = RunState.FAILED
        logger.error(f"Failed to write data: {e}")
        logger.error(f"Opts: {self.config.describe(self.remaining)}")

    def run(self) -> RunState:
        while self.state not in (RunState.DONE, RunState.FAILED):
            if self.state is RunState.SENDING:
                if self.stopped:
                    logger.info("[STOP] Stop requested, not sending")
                    self.state = RunState.DONE
                    continue
                try:
                    self._send_once()
                # serial.SerialException derives from OSError
                except (TransportError, OSError) as e:
                    self._fail(e)
                    continue
                self.state = RunState.WAITING
            else:
                logger.debug(f"[WAIT] {self.config.delay_seconds}s")
                self._sleep(self.config.delay_seconds)
                if self.stopped:
                    logger.info(f"[STOP] Stopped after {self.sends} send(s)")
                    self.state = RunState.DONE
                elif self._budget_left():
                    self.state = RunState.SENDING
                else:
                    logger.info(f"[DONE] {self.sends} send(s) completed")
                    self.state = RunState.DONE
        return self.state
