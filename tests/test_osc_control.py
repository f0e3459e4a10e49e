"""
Tests for the OSC control surface
Handlers are called directly; no sockets are opened.
"""

import sys
import os
import threading
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest
from signal_chronus.generator import SignalGenerator, EngineState
from signal_chronus.osc_control import OSCController, PARAM_PREFIX

TIMEOUT = 5.0


class TestOSCController:
    """Test OSC message handling"""

    def setup_method(self):
        self.generator = SignalGenerator(0.0, 1.0, 1.0, 10.0, 1.0, tick_delay=0.001)
        self.controller = OSCController(self.generator, host="127.0.0.1", port=0)

    def teardown_method(self):
        self.generator.close(timeout=TIMEOUT)

    def test_dispatcher_maps_every_param(self):
        disp = self.controller.setup_dispatcher()

        for name in ("phase", "amplitude", "frequency", "sample_frequency", "duration"):
            assert list(disp.handlers_for_address(PARAM_PREFIX + name))
        assert list(disp.handlers_for_address("/gen/start"))

    def test_param_update(self):
        assert self.controller.handle_param("/gen/param/amplitude", 2.5)
        assert self.controller.handle_param("/gen/param/duration", 0.5)

        assert self.generator.amplitude == 2.5
        assert self.generator.capacity == 5
        assert self.controller.messages_received == 2

    def test_invalid_values_are_rejected(self, capsys):
        assert not self.controller.handle_param("/gen/param/sample_frequency", 0.0)
        assert not self.controller.handle_param("/gen/param/duration", "soon")
        assert not self.controller.handle_param("/gen/param/phase")

        assert self.controller.messages_rejected == 3
        assert self.generator.sample_frequency == 10.0
        assert "[OSC] Rejected" in capsys.readouterr().out

    def test_start_stop(self):
        ticked = threading.Event()
        self.generator.subscribe(lambda g, s: ticked.set())

        self.controller.handle_start("/gen/start")
        assert ticked.wait(TIMEOUT)

        self.controller.handle_stop("/gen/stop")
        assert self.generator.state == EngineState.PAUSED

        # second start re-arms the same loop
        worker = self.generator._worker
        self.controller.handle_start("/gen/start")
        assert self.generator._worker is worker

    def test_reset_and_status(self, capsys):
        self.controller.handle_reset("/gen/reset")
        assert self.generator.time_cursor == 0.0

        self.controller.handle_status("/gen/status")
        assert "State:" in capsys.readouterr().out
