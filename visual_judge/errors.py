"""Error taxonomy for the judge harness."""

from __future__ import annotations


class VisualJudgeError(RuntimeError):
    pass


class ConfigurationError(VisualJudgeError):
    """Missing credential or dependency. Raised before any network call."""


class TransportError(VisualJudgeError):
    """The judge call itself failed (network, auth, service, timeout)."""


class ValidationError(VisualJudgeError):
    """The judge answered, but not with a usable verdict."""


class CaptureError(VisualJudgeError):
    """No evidence could be captured, so there is nothing to judge."""
