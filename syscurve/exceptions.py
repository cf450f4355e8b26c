"""
System curve error types.
"""

__all__ = [
    "SystemCurveError",
    "ValidationError",
    "EmptyPipelineError",
    "IndexOutOfRangeError",
    "UnsupportedMethodError",
    "NoMethodError",
]


class SystemCurveError(Exception):
    """Base class for all system curve errors"""


class ValidationError(SystemCurveError, ValueError):
    """A pipe section or curve parameter is out of range"""


class EmptyPipelineError(SystemCurveError):
    """A pipeline with no sections was evaluated"""


class IndexOutOfRangeError(SystemCurveError, IndexError):
    """A pipe section index does not exist in the pipeline"""


class UnsupportedMethodError(SystemCurveError, NotImplementedError):
    """The friction factor method is known but has no implementation"""


class NoMethodError(SystemCurveError, LookupError):
    """No friction factor approximator could be resolved for the method"""
