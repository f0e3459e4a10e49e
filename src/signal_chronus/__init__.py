"""
Signal Chronus - Continuous cosine sample generator
Pause-safe parameter changes over a rolling sample history
"""

__version__ = "0.1.0"

# Make key components available at package level
from .generator import SignalGenerator, EngineState, GeneratorStatus
from .history import HistoryBuffer
from .param_spec import SignalParameters, InvalidConfigurationError

__all__ = [
    'SignalGenerator', 'EngineState', 'GeneratorStatus',
    'HistoryBuffer', 'SignalParameters', 'InvalidConfigurationError'
]
