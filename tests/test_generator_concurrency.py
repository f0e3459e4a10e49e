"""
Concurrency tests for the pause/resume handshake

A setter thread hammers reconfigure() while the loop runs. With
frequency=0 every sample equals the amplitude, so any history mixing
old and new parameters is directly visible.
"""

import sys
import os
import threading
import time
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import numpy as np
import pytest
from signal_chronus.generator import SignalGenerator, EngineState

TIMEOUT = 10.0


def test_mutations_never_mix_parameters():
    """Every notified history holds samples from one parameter set only."""
    gen = SignalGenerator(0.0, 1.0, 0.0, 100.0, 0.2, tick_delay=0.0005)
    records = []
    lock = threading.Lock()

    def record(g, samples):
        with lock:
            records.append((g.amplitude, g.time_cursor, samples.copy()))

    gen.subscribe(record)
    gen.start_in_background()

    try:
        amplitudes = [float(a) for a in range(2, 42)]
        for amplitude in amplitudes:
            gen.reconfigure(amplitude=amplitude)
            time.sleep(0.002)
        gen.stop()
    finally:
        gen.close(timeout=TIMEOUT)

    assert records, "no ticks were generated"

    seen_first = set()
    for amplitude, cursor, samples in records:
        np.testing.assert_array_equal(samples, np.full(len(samples), amplitude))
        if amplitude not in seen_first:
            seen_first.add(amplitude)
            # first tick after a change: empty history, time 0
            assert len(samples) == 1
            assert cursor == 0.0


def test_resize_during_generation_keeps_capacity_invariant():
    gen = SignalGenerator(0.0, 1.0, 5.0, 50.0, 0.1, tick_delay=0.0005)
    violations = []

    def check(g, samples):
        if len(samples) > g.capacity:
            violations.append((len(samples), g.capacity))

    gen.subscribe(check)
    gen.start_in_background()

    try:
        for duration, rate in [(0.5, 50.0), (0.02, 100.0), (0.0, 10.0), (1.0, 7.0), (0.3, 30.0)]:
            gen.reconfigure(duration=duration, sample_frequency=rate)
            assert gen.capacity == int(np.floor(duration * rate))
            time.sleep(0.01)
        gen.stop()
    finally:
        gen.close(timeout=TIMEOUT)

    assert violations == []


def test_stop_waits_for_in_flight_notification():
    """stop() does not return while a subscriber is still running."""
    gen = SignalGenerator(0.0, 1.0, 1.0, 10.0, 1.0, tick_delay=0.0)
    entered = threading.Event()
    release = threading.Event()
    finished = []

    def slow(g, samples):
        if not entered.is_set():
            entered.set()
            release.wait(TIMEOUT)
            finished.append(time.perf_counter())

    gen.subscribe(slow)
    gen.start_in_background()
    assert entered.wait(TIMEOUT)

    stopper = threading.Thread(target=gen.stop)
    stopper.start()
    time.sleep(0.05)
    assert stopper.is_alive(), "stop() returned during an in-flight notification"

    release.set()
    stopper.join(TIMEOUT)
    assert not stopper.is_alive()
    assert finished
    assert gen.state == EngineState.PAUSED

    gen.close(timeout=TIMEOUT)


def test_stop_from_other_thread_then_zero_notifications():
    gen = SignalGenerator(0.0, 1.0, 1.0, 1000.0, 1.0, tick_delay=0.0)
    counter = []
    gen.subscribe(lambda g, s: counter.append(1))
    gen.start_in_background()

    try:
        deadline = time.time() + TIMEOUT
        while len(counter) < 50 and time.time() < deadline:
            time.sleep(0.001)

        for _ in range(5):
            gen.stop()
            count = len(counter)
            time.sleep(0.01)
            assert len(counter) == count
            gen.start()
            time.sleep(0.005)
    finally:
        gen.close(timeout=TIMEOUT)


def test_start_cannot_slip_between_pause_and_mutation():
    """A start() racing a reconfigure() waits until the mutation has resumed the loop."""
    gen = SignalGenerator(0.0, 1.0, 0.0, 100.0, 0.2, tick_delay=0.001)
    ticked = threading.Event()
    gen.subscribe(lambda g, s: ticked.set())
    gen.start_in_background()
    assert ticked.wait(TIMEOUT)

    states_during_mutation = []
    racers = []
    original_clear = gen._history.clear
    original_quiesce = gen._quiesce

    def recording_clear():
        states_during_mutation.append(gen.state)
        original_clear()

    def quiesce_then_race():
        original_quiesce()
        racer = threading.Thread(target=gen.start)
        racer.start()
        racer.join(0.05)
        racers.append(racer)

    gen._history.clear = recording_clear
    gen._quiesce = quiesce_then_race
    try:
        gen.reconfigure(amplitude=2.0)
    finally:
        gen._quiesce = original_quiesce

    try:
        # a racer that re-arms a parked loop also clears, still while PAUSED
        assert states_during_mutation
        assert all(state is EngineState.PAUSED for state in states_during_mutation)
        racers[0].join(TIMEOUT)
        assert not racers[0].is_alive()
        assert gen.amplitude == 2.0
    finally:
        gen.close(timeout=TIMEOUT)


def test_competing_start_does_not_strand_stop():
    """stop() still returns when another thread calls start() while it waits."""
    gen = SignalGenerator(0.0, 1.0, 1.0, 10.0, 1.0, tick_delay=0.0)
    entered = threading.Event()
    release = threading.Event()

    def slow(g, samples):
        if not entered.is_set():
            entered.set()
            release.wait(TIMEOUT)

    gen.subscribe(slow)
    gen.start_in_background()
    assert entered.wait(TIMEOUT)

    stopper = threading.Thread(target=gen.stop)
    stopper.start()
    time.sleep(0.05)
    starter = threading.Thread(target=gen.start)
    starter.start()
    time.sleep(0.05)

    release.set()
    try:
        stopper.join(TIMEOUT)
        starter.join(TIMEOUT)
        assert not stopper.is_alive(), "stop() stayed blocked"
        assert not starter.is_alive()
    finally:
        gen.close(timeout=TIMEOUT)


def test_reconfigure_under_concurrent_starts_only_mutates_paused_engine():
    gen = SignalGenerator(0.0, 1.0, 0.0, 100.0, 0.2, tick_delay=0.0005)
    states = []
    original_clear = gen._history.clear

    def recording_clear():
        states.append(gen.state)
        original_clear()

    gen._history.clear = recording_clear
    done = threading.Event()

    def keep_starting():
        while not done.is_set():
            gen.start()
            time.sleep(0.0005)

    ticked = threading.Event()
    gen.subscribe(lambda g, s: ticked.set())
    gen.start_in_background()
    assert ticked.wait(TIMEOUT)
    starter = threading.Thread(target=keep_starting)
    starter.start()
    try:
        for amplitude in range(2, 32):
            gen.reconfigure(amplitude=float(amplitude))
    finally:
        done.set()
        starter.join(TIMEOUT)
        gen.close(timeout=TIMEOUT)

    assert states
    assert all(state in (EngineState.PAUSED, EngineState.IDLE) for state in states)
