"""Audio pipeline: capture windows, analysis, source routing, send buffering; optional debug dump."""
from .analyzer import SourceVadConfig, VadResult, analyze
from .chunker import SendBuffer
from .models import AudioBlock, AudioSource, SendUnit
from .pipeline import DualSourcePipeline, SourceAggregator
from .receiver import CaptureWindow
from .recorder import DebugAudioRecorderBase, create_debug_recorder
from .router import RoutingDecision, SourceRouter

__all__ = [
    "AudioBlock",
    "AudioSource",
    "CaptureWindow",
    "DebugAudioRecorderBase",
    "DualSourcePipeline",
    "RoutingDecision",
    "SendBuffer",
    "SendUnit",
    "SourceAggregator",
    "SourceRouter",
    "SourceVadConfig",
    "VadResult",
    "analyze",
    "create_debug_recorder",
]
