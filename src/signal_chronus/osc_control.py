"""
OSC control surface for a SignalGenerator
Runs an AsyncIO OSC server in a separate thread

Addresses:
    /gen/start                  start or resume generation
    /gen/stop                   pause generation
    /gen/reset                  restart from time 0 with an empty history
    /gen/status                 print generator status
    /gen/param/<name> <value>   change one parameter
"""

import asyncio
import threading

from pythonosc import dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer

from .config import get_config, is_verbose
from .generator import SignalGenerator
from .param_spec import PARAM_SPECS

PARAM_PREFIX = "/gen/param/"


class OSCController:
    """
    OSC server for run-time generator control
    Runs in separate thread with AsyncIO
    """

    def __init__(self, generator: SignalGenerator, host: str = None, port: int = None):
        config = get_config()
        self.generator = generator
        self.host = host if host is not None else config['osc_host']
        self.port = port if port is not None else config['osc_port']
        self.server = None
        self.transport = None
        self.loop = None
        self.thread = None
        self._stop_event = threading.Event()

        # Counters
        self.messages_received = 0
        self.messages_rejected = 0

    def setup_dispatcher(self):
        """Create OSC message dispatcher"""
        disp = dispatcher.Dispatcher()

        disp.map("/gen/start", self.handle_start)
        disp.map("/gen/stop", self.handle_stop)
        disp.map("/gen/reset", self.handle_reset)
        disp.map("/gen/status", self.handle_status)
        for name in PARAM_SPECS:
            disp.map(PARAM_PREFIX + name, self.handle_param)

        return disp

    def handle_start(self, address, *args):
        self.messages_received += 1
        self.generator.start_in_background()

    def handle_stop(self, address, *args):
        self.messages_received += 1
        self.generator.stop()

    def handle_reset(self, address, *args):
        self.messages_received += 1
        self.generator.reconfigure()

    def handle_status(self, address, *args):
        self.messages_received += 1
        print(self.generator.get_status())

    def handle_param(self, address, *args):
        """
        Handle /gen/param/<name> <value>
        Invalid values are reported and dropped; the generator is untouched
        """
        self.messages_received += 1
        name = address[len(PARAM_PREFIX):]

        if len(args) < 1:
            self.messages_rejected += 1
            print(f"[OSC] Missing value for {address}")
            return False

        try:
            self.generator.set_param(name, args[0])
        except (ValueError, TypeError) as e:
            self.messages_rejected += 1
            print(f"[OSC] Rejected {address} {args[0]!r}: {e}")
            return False

        if is_verbose():
            print(f"[OSC] {name} = {args[0]}")
        return True

    async def _run_server(self):
        """AsyncIO server coroutine"""
        disp = self.setup_dispatcher()

        self.server = AsyncIOOSCUDPServer(
            (self.host, self.port),
            disp,
            asyncio.get_running_loop()
        )

        self.transport, self.protocol = await self.server.create_serve_endpoint()

        print(f"[OSC] Server listening on {self.host}:{self.port}")

        # Keep server running until stop event
        while not self._stop_event.is_set():
            await asyncio.sleep(0.1)

        self.transport.close()

    def _thread_target(self):
        """Thread target function"""
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        try:
            self.loop.run_until_complete(self._run_server())
        finally:
            self.loop.close()

    def start(self):
        """Start OSC server in separate thread"""
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._thread_target, name="osc-control", daemon=True)
        self.thread.start()

    def stop(self):
        """Stop OSC server"""
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=2)
