#!/usr/bin/env python3
"""
Configuration Manager for Signal Chronus
Handles environment variables and the optional .env file
"""

import os
from pathlib import Path
from typing import Dict, Any

ENV_PREFIX = 'SIGNAL_CHRONUS_'
DEFAULT_ENV_FILE = '.env.signal_chronus'


def load_env_file(env_path: str = DEFAULT_ENV_FILE) -> Dict[str, str]:
    """Load environment variables from file"""
    env_vars = {}

    # Try multiple locations
    locations = [
        Path(env_path),
        Path(__file__).parent.parent.parent / env_path,
        Path.cwd() / env_path
    ]

    for location in locations:
        if location.exists():
            with open(location, 'r') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#'):
                        if '=' in line:
                            key, value = line.split('=', 1)
                            # Remove inline comments
                            if '#' in value:
                                value = value.split('#')[0]
                            env_vars[key.strip()] = value.strip()
            if is_verbose():
                print(f"[Config] Loaded config from: {location}")
            break

    return env_vars


def apply_config(env_path: str = DEFAULT_ENV_FILE) -> Dict[str, str]:
    """Export .env values into os.environ without overriding what is already set"""
    env_vars = load_env_file(env_path)

    for key, value in env_vars.items():
        os.environ.setdefault(key, value)

    return env_vars


def is_verbose() -> bool:
    return os.environ.get(ENV_PREFIX + 'VERBOSE', '0') == '1'


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def get_config() -> Dict[str, Any]:
    """Get parsed configuration values"""
    config = {
        # Signal defaults
        'phase': float(_env('PHASE', '0.0')),
        'amplitude': float(_env('AMPLITUDE', '1.0')),
        'frequency': float(_env('FREQUENCY', '1.0')),
        'sample_frequency': float(_env('SAMPLE_FREQUENCY', '10.0')),
        'duration': float(_env('DURATION', '1.0')),

        # Engine
        'tick_delay_ms': float(_env('TICK_DELAY_MS', '10')),

        # OSC
        'osc_host': _env('OSC_HOST', '127.0.0.1'),
        'osc_port': int(_env('OSC_PORT', '5006')),

        # Debug
        'verbose': is_verbose(),
    }

    return config


def print_config():
    """Print current configuration"""
    config = get_config()

    print("\n" + "="*60)
    print("SIGNAL CHRONUS - CONFIGURATION")
    print("="*60)

    sections = {
        'Signal': ['phase', 'amplitude', 'frequency', 'sample_frequency', 'duration'],
        'Engine': ['tick_delay_ms'],
        'OSC': ['osc_host', 'osc_port'],
        'Debug': ['verbose']
    }

    for section, keys in sections.items():
        print(f"\n{section}:")
        for key in keys:
            if key in config:
                print(f"  {key}: {config[key]}")

    print("\n" + "="*60 + "\n")


if __name__ == "__main__":
    apply_config()
    print_config()
