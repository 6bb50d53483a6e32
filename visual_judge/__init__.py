"""AI visual regression judge.

Captures visual evidence of a scene around a simulated user action, asks a
multimodal model whether the change matches a natural-language test contract,
and gates the result on a certainty threshold.
"""

from .contract import TestContext
from .decision import ScenarioOutcome, decide
from .errors import CaptureError, ConfigurationError, TransportError, ValidationError, VisualJudgeError
from .evidence import FramePair, FrameSequence, SingleImage, Video
from .verdict import TokenUsage, Verdict, parse_verdict

__all__ = [
    "CaptureError",
    "ConfigurationError",
    "FramePair",
    "FrameSequence",
    "ScenarioOutcome",
    "SingleImage",
    "TestContext",
    "TokenUsage",
    "TransportError",
    "ValidationError",
    "Verdict",
    "Video",
    "VisualJudgeError",
    "decide",
    "parse_verdict",
]
