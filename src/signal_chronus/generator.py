"""
SignalGenerator - Cosine sample engine with a rolling history

Responsibilities:
1. Hold the five signal parameters (phase, amplitude, frequency,
   sample_frequency, duration)
2. Run the generation loop: one cosine sample per tick
3. Keep the most recent samples in a bounded HistoryBuffer
4. Deliver the full history to every subscriber on each tick
5. Apply parameter changes only while the loop is parked

Pause/resume protocol (one Condition guards all of it):

    RUNNING --stop()--> PAUSE_REQUESTED --tick done--> PAUSED
    PAUSED  --start()/reconfigure()--> RUNNING
    any     --close()--> CLOSED

stop() returns only once the loop has reached PAUSED (or is not running),
so a mutation that follows can never race a half-delivered notification.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np
import psutil

from .config import get_config, is_verbose
from .history import HistoryBuffer
from .param_spec import SignalParameters

TWO_PI = 2.0 * np.pi

Subscriber = Callable[['SignalGenerator', np.ndarray], None]


class EngineState(Enum):
    IDLE = "IDLE"                        # no loop active
    RUNNING = "RUNNING"
    PAUSE_REQUESTED = "PAUSE_REQUESTED"  # stop() called, tick still in flight
    PAUSED = "PAUSED"                    # quiesced
    CLOSED = "CLOSED"


@dataclass
class GeneratorStatus:
    """Snapshot of generator state for display"""
    state: EngineState
    uptime_seconds: float
    ticks: int
    subscriber_errors: int
    history_length: int
    capacity: int
    time_cursor: float
    params: Dict[str, float]
    cpu_percent: float

    def __str__(self):
        lines = [f"State: {self.state.value}"]
        if self.state in (EngineState.RUNNING, EngineState.PAUSED, EngineState.PAUSE_REQUESTED):
            lines.append(f"Uptime: {self.uptime_seconds:.1f}s")
        lines.extend([
            "Params: " + ", ".join(f"{k}={v:g}" for k, v in self.params.items()),
            f"History: {self.history_length}/{self.capacity} samples",
            f"Time cursor: {self.time_cursor:.4f}s",
            f"Ticks: {self.ticks} "
            f"({'no subscriber errors' if self.subscriber_errors == 0 else f'{self.subscriber_errors} subscriber errors'})",
            f"CPU: {self.cpu_percent:.1f}%",
        ])
        return "\n".join(lines)


class SignalGenerator:
    """
    Continuous cosine generator with a bounded sample history.

    start() occupies the calling thread until close(); use
    start_in_background() to run it on a daemon thread.
    """

    def __init__(self, phase: float, amplitude: float, frequency: float,
                 sample_frequency: float, duration: float,
                 tick_delay: Optional[float] = None):
        """
        Args:
            phase: Phase offset in radians
            amplitude: Cosine multiplier
            frequency: Oscillator frequency in Hz
            sample_frequency: Samples per second of simulated time (> 0)
            duration: Seconds of history to retain (>= 0)
            tick_delay: Wall-clock pause between ticks in seconds
                (defaults to SIGNAL_CHRONUS_TICK_DELAY_MS)

        Raises:
            InvalidConfigurationError: a parameter is out of range
        """
        self._params = SignalParameters(phase, amplitude, frequency, sample_frequency, duration)

        if tick_delay is None:
            tick_delay = get_config()['tick_delay_ms'] / 1000.0
        if tick_delay < 0:
            raise ValueError(f"tick_delay must be >= 0, got {tick_delay}")
        self.tick_delay = tick_delay

        # Cursor is kept as a step count so it lands exactly on k / sample_frequency
        self._cursor_steps = 0
        self._interval = self._params.interval
        self._history: Optional[HistoryBuffer] = HistoryBuffer(self._params.capacity)

        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()

        # Pause/resume handshake
        self._cond = threading.Condition()
        self._state = EngineState.IDLE
        self._armed = True  # pre-armed: first start() runs immediately
        self._closed = False
        self._pause_held = False  # a stop()/reconfigure() is waiting or mutating
        self._loop_thread: Optional[threading.Thread] = None
        self._worker: Optional[threading.Thread] = None
        self._mutation_lock = threading.Lock()

        # Statistics
        self.ticks = 0
        self.subscriber_errors = 0
        self.start_time: Optional[float] = None
        self.process = psutil.Process()

        self.verbose = is_verbose()

    # ------------------------------------------------------------------
    # Duplication

    @classmethod
    def from_generator(cls, source: 'SignalGenerator') -> 'SignalGenerator':
        """New idle generator with the same five parameters as `source`."""
        p = source.params
        return cls(p.phase, p.amplitude, p.frequency, p.sample_frequency, p.duration)

    def copy(self) -> 'SignalGenerator':
        return type(self).from_generator(self)

    __copy__ = copy

    # ------------------------------------------------------------------
    # Read-only parameter access (last committed values)

    @property
    def params(self) -> SignalParameters:
        return self._params.with_changes()

    @property
    def phase(self) -> float:
        return self._params.phase

    @property
    def amplitude(self) -> float:
        return self._params.amplitude

    @property
    def frequency(self) -> float:
        return self._params.frequency

    @property
    def sample_frequency(self) -> float:
        return self._params.sample_frequency

    @property
    def duration(self) -> float:
        return self._params.duration

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def capacity(self) -> int:
        return self._history.capacity if self._history is not None else 0

    @property
    def time_cursor(self) -> float:
        return self._cursor_steps / self._params.sample_frequency

    @property
    def history(self) -> np.ndarray:
        if self._history is None:
            return np.empty(0, dtype=np.float64)
        return self._history.snapshot()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    # ------------------------------------------------------------------
    # Subscription

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """
        Register callback(generator, samples) to run on every tick.

        Returns the callback, so this also works as a decorator.
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> bool:
        with self._subscribers_lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                return False
        return True

    # ------------------------------------------------------------------
    # Engine

    def start(self) -> None:
        """
        Run the generation loop on the calling thread until close().

        If a loop is already active elsewhere this re-arms it and returns.
        Re-arming waits for any stop() or reconfigure() in progress.
        """
        if self._history is None:
            return

        if self._loop_thread is threading.current_thread():
            # From a subscriber: never override a pause another thread holds
            with self._cond:
                if not self._pause_held:
                    self._resume()
            return

        with self._mutation_lock, self._cond:
            if self._state is EngineState.CLOSED:
                if self.verbose:
                    print("[GEN] Cannot start: generator is closed")
                return

            if self._loop_thread is not None:
                if self._state is EngineState.PAUSED:
                    self._history.clear()
                self._resume()
                return

            self._loop_thread = threading.current_thread()
            self._history.clear()
            self.start_time = time.time()

        if self.verbose:
            print(f"[GEN] Generation loop started on {threading.current_thread().name}: "
                  f"{self._params.frequency:g}Hz, {self._params.sample_frequency:g} samples/s, "
                  f"history={self.capacity}")

        try:
            while self._wait_until_armed():
                self._tick()
                self._pace()
        finally:
            with self._cond:
                self._loop_thread = None
                if self._state is not EngineState.CLOSED:
                    self._state = EngineState.IDLE
                self._cond.notify_all()
            if self.verbose:
                print(f"[GEN] Generation loop exited after {self.ticks} ticks")

    def start_in_background(self, name: Optional[str] = None) -> threading.Thread:
        """
        Start the loop on a daemon thread and return the thread.

        If a loop is already active it is re-armed instead and the
        existing worker (None if the loop was started elsewhere) is returned.
        """
        with self._cond:
            active = self._loop_thread is not None
        if active:
            self.start()
            return self._worker

        thread = threading.Thread(target=self.start, name=name or "signal-generator", daemon=True)
        self._worker = thread
        thread.start()
        return thread

    def stop(self) -> None:
        """
        Pause after the in-flight tick and wait until the loop is parked.

        Called from a subscriber (the loop thread itself) this only
        requests the pause.
        """
        if self._loop_thread is threading.current_thread():
            with self._cond:
                self._request_pause()
            return

        with self._mutation_lock, self._cond:
            self._pause_held = True
            try:
                self._quiesce()
            finally:
                self._pause_held = False

        if self.verbose:
            print(f"[GEN] Stopped at tick {self.ticks}")

    def close(self, timeout: Optional[float] = None) -> None:
        """End the loop permanently and wait for it to exit."""
        with self._cond:
            self._closed = True
            self._armed = False
            self._state = EngineState.CLOSED
            self._cond.notify_all()

            loop_thread = self._loop_thread
            if loop_thread is not None and loop_thread is not threading.current_thread():
                self._cond.wait_for(lambda: self._loop_thread is None, timeout=timeout)

        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=timeout)

    def _is_quiesced(self) -> bool:
        return self._loop_thread is None or self._state is EngineState.PAUSED

    def _request_pause(self) -> None:
        # Caller holds self._cond
        self._armed = False
        if self._state is EngineState.RUNNING:
            self._state = EngineState.PAUSE_REQUESTED
        self._cond.notify_all()

    def _quiesce(self) -> None:
        """Disarm and block until the loop is parked. Caller holds self._cond."""
        self._request_pause()
        if self._loop_thread is None:
            return
        self._cond.wait_for(self._is_quiesced)

    def _resume(self) -> None:
        # Caller holds self._cond
        if self._closed:
            return
        self._armed = True
        self._cond.notify_all()

    def _wait_until_armed(self) -> bool:
        """Park while paused. Returns False once the generator is closed."""
        with self._cond:
            while not self._armed and not self._closed:
                if self._state is not EngineState.PAUSED:
                    self._state = EngineState.PAUSED
                    self._cond.notify_all()
                self._cond.wait()
            if self._closed:
                return False
            self._state = EngineState.RUNNING
            return True

    def _pace(self) -> None:
        """Fixed cadence between ticks; a pause request cuts it short."""
        with self._cond:
            self._cond.wait_for(lambda: not self._armed or self._closed, timeout=self.tick_delay)

    def _tick(self) -> None:
        params = self._params

        cursor = self._cursor_steps / params.sample_frequency
        if cursor > params.duration:
            self._cursor_steps = 0
            cursor = 0.0

        sample = params.amplitude * np.cos(TWO_PI * params.frequency * cursor + params.phase)
        self._history.push(float(sample))

        samples = self._history.snapshot()
        samples.flags.writeable = False
        self._notify(samples)

        self._cursor_steps += 1
        self.ticks += 1

    def _notify(self, samples: np.ndarray) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(self, samples)
            except Exception as e:
                self.subscriber_errors += 1
                print(f"[GEN] Subscriber {getattr(callback, '__name__', callback)!s} failed: {e}")

    # ------------------------------------------------------------------
    # Parameter store

    def reconfigure(self, **changes) -> SignalParameters:
        """
        Pause, apply `changes`, reset history and cursor, then resume.

        Values are validated before the loop is touched, so a rejected
        change leaves the generator exactly as it was.

        Returns:
            The committed parameters

        Raises:
            InvalidConfigurationError: unknown name or out-of-range value
            RuntimeError: called from inside a subscriber
        """
        if self._loop_thread is threading.current_thread():
            raise RuntimeError("Cannot reconfigure from the generation thread")

        with self._mutation_lock:
            new_params = self._params.with_changes(**changes)

            # Quiesce and mutate under one hold of _cond; only _resume() re-arms
            with self._cond:
                self._pause_held = True
                try:
                    self._quiesce()
                    if self._params.affects_history(new_params):
                        self._history.resize(new_params.capacity)
                    else:
                        self._history.clear()
                    self._params = new_params
                    self._interval = new_params.interval
                    self._cursor_steps = 0
                finally:
                    self._pause_held = False
                self._resume()

        if self.verbose:
            print("[GEN] Reconfigured: " +
                  ", ".join(f"{k}={v:g}" for k, v in changes.items()) +
                  f" (history={self.capacity})")
        return self.params

    def set_param(self, name: str, value: float) -> SignalParameters:
        """Change one parameter by name (see reconfigure)."""
        return self.reconfigure(**{name: value})

    # ------------------------------------------------------------------

    def get_status(self) -> GeneratorStatus:
        uptime = 0.0
        if self.start_time and self._loop_thread is not None:
            uptime = time.time() - self.start_time

        try:
            cpu_percent = self.process.cpu_percent(interval=None)
        except psutil.Error:
            cpu_percent = 0.0

        return GeneratorStatus(
            state=self._state,
            uptime_seconds=uptime,
            ticks=self.ticks,
            subscriber_errors=self.subscriber_errors,
            history_length=len(self._history) if self._history is not None else 0,
            capacity=self.capacity,
            time_cursor=self.time_cursor,
            params=self._params.to_dict(),
            cpu_percent=cpu_percent
        )

    def __repr__(self) -> str:
        param_str = ', '.join(f"{k}={v:.2f}" for k, v in self._params.to_dict().items())
        return f"SignalGenerator({param_str}, state={self._state.value})"
