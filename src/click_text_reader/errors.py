"""Exception types raised by the text pipeline.

Only ``ConfigurationError`` and ``ResourceError`` ever reach the caller of
``TextPipeline.run`` / ``TesseractRecognizer``. ``InputError`` and
``RecognizerError`` describe per-candidate failures that are logged and
skipped inside the run.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class InputError(PipelineError):
    """Empty frame, or a candidate region that collapsed after clipping."""


class RecognizerError(PipelineError):
    """The recognizer raised or returned something unusable for a candidate."""


class ConfigurationError(PipelineError, ValueError):
    """Malformed option values. Raised before any run starts."""


class ResourceError(PipelineError, RuntimeError):
    """A backing resource of the recognizer (binary, model data) is missing."""
