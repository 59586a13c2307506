"""Typed failures raised by the comparison and gating engine.

A failure to measure is never turned into a success rate of 0 or 100; every
path that cannot produce a measurement raises one of these instead.
"""

from __future__ import annotations


class D2CError(Exception):
    """Base class for all workflow failures."""


class ImageDecodeError(D2CError):
    def __init__(self, source_name: str, cause: Exception | str):
        self.source_name = source_name
        self.cause = cause
        super().__init__(f"Could not decode image '{source_name}': {cause}")


class MalformedComparisonResult(D2CError):
    """The pixel-difference capability returned an impossible count."""


class InvalidDomInput(D2CError):
    """A DOM comparison argument is not a list of nodes."""


class ArtifactNotFound(D2CError):
    def __init__(self, path: str, kind: str = "artifact"):
        self.path = path
        self.kind = kind
        super().__init__(f"{kind.capitalize()} not found: {path}")


class UnparsableRunnerOutput(D2CError):
    def __init__(self, output: str, message: str = "Could not parse test runner output"):
        self.output = output
        super().__init__(message)


class RunnerTimeout(D2CError):
    def __init__(self, timeout_seconds: float, output: str = ""):
        self.timeout_seconds = timeout_seconds
        self.output = output
        super().__init__(f"Test runner timed out after {timeout_seconds}s")


class InvalidArtifact(D2CError):
    """A baseline or golden artifact exists but can't be used."""


class RunnerLaunchError(D2CError):
    def __init__(self, command: list[str], cause: OSError):
        self.command = command
        self.cause = cause
        super().__init__(f"Could not start test runner '{' '.join(command)}': {cause}")
