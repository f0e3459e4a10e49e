#!/usr/bin/env python3
"""
Signal Chronus console - interactive host for a SignalGenerator
"""

import argparse
import sys

import numpy as np

from .config import apply_config, get_config, print_config
from .generator import EngineState, SignalGenerator
from .osc_control import OSCController
from .param_spec import PARAM_SPECS

HELP = "Commands: start, stop, status, set <param> <value>, params, history, config, quit"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signal-chronus",
        description="Continuous cosine sample generator with a rolling history"
    )
    for name, spec in PARAM_SPECS.items():
        parser.add_argument(
            "--" + name.replace("_", "-"),
            dest=name,
            type=float,
            default=None,
            help=f"{spec.description} ({spec.units or 'unitless'})"
        )
    parser.add_argument("--tick-delay-ms", type=float, default=None,
                        help="Wall-clock delay between ticks")
    parser.add_argument("--osc", action="store_true",
                        help="Also accept control messages over OSC")
    parser.add_argument("--autostart", action="store_true",
                        help="Start generating immediately")
    return parser


def create_generator(args: argparse.Namespace) -> SignalGenerator:
    """Build a generator from configured defaults overridden by CLI flags."""
    config = get_config()
    values = {
        name: getattr(args, name) if getattr(args, name) is not None else config[name]
        for name in PARAM_SPECS
    }
    delay_ms = args.tick_delay_ms if args.tick_delay_ms is not None else config['tick_delay_ms']
    return SignalGenerator(tick_delay=delay_ms / 1000.0, **values)


def format_history(samples: np.ndarray, limit: int = 8) -> str:
    if len(samples) == 0:
        return "[] (empty)"
    shown = ", ".join(f"{v:+.3f}" for v in samples[-limit:])
    prefix = "..., " if len(samples) > limit else ""
    return f"[{prefix}{shown}] ({len(samples)} samples)"


def handle_command(generator: SignalGenerator, cmd: list) -> bool:
    """
    Run one console command.

    Returns:
        False when the console should exit
    """
    if cmd[0] == "start":
        generator.start_in_background()
    elif cmd[0] == "stop":
        generator.stop()
        print("Stopped")
    elif cmd[0] == "status":
        print(generator.get_status())
    elif cmd[0] == "set" and len(cmd) > 2:
        try:
            params = generator.set_param(cmd[1], cmd[2])
            print(f"Set {cmd[1]} = {getattr(params, cmd[1]):g} (history={generator.capacity})")
        except ValueError as e:
            print(f"[CLI] {e}")
    elif cmd[0] == "params":
        for name, value in generator.params.to_dict().items():
            spec = PARAM_SPECS[name]
            print(f"  {name}: {value:g} {spec.units}".rstrip())
    elif cmd[0] == "history":
        print(format_history(generator.history))
    elif cmd[0] == "config":
        print_config()
    elif cmd[0] in ["quit", "exit"]:
        return False
    else:
        print(f"Unknown command: {' '.join(cmd)}")
        print(HELP)
    return True


def main(argv=None):
    """Interactive console for the signal generator"""
    apply_config()
    args = build_parser().parse_args(argv)

    try:
        generator = create_generator(args)
    except ValueError as e:
        print(f"[CLI] Invalid configuration: {e}")
        return 2

    osc = None
    if args.osc:
        osc = OSCController(generator)
        osc.start()

    print("\n=== Signal Chronus ===")
    print(HELP)

    if args.autostart:
        generator.start_in_background()

    try:
        while True:
            try:
                cmd = input("\n> ").strip().lower().split()
            except (KeyboardInterrupt, EOFError):
                print("\nShutting down...")
                break

            if not cmd:
                continue
            if not handle_command(generator, cmd):
                break
    finally:
        if osc is not None:
            osc.stop()
        if generator.state is not EngineState.CLOSED:
            generator.close(timeout=2)

    return 0


if __name__ == "__main__":
    sys.exit(main())
