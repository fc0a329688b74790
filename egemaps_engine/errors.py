"""Exceptions raised inside the extraction pipeline.

The engine facade is the only place these are caught; callers see them as
``EngineError`` records on the returned result objects, or get them back
from ``AnalysisResult.unwrap()``.
"""

from egemaps_engine.models.enums import ErrorCode


class EngineException(Exception):
    """Base class for pipeline errors carrying an ErrorCode"""
    code = ErrorCode.INTERNAL_EXTRACTION_FAILURE


class EngineNotReadyError(EngineException):
    """analyze() called before a successful initialize()"""
    code = ErrorCode.ENGINE_NOT_READY


class InitializationError(EngineException):
    """Recipe asset or analysis tables failed to load"""
    code = ErrorCode.INITIALIZATION_FAILURE


class InvalidAudioError(EngineException):
    """Unsupported sample rate, channel layout or sample values"""
    code = ErrorCode.INVALID_AUDIO


class InsufficientAudioError(EngineException):
    """Signal shorter than the minimum analysis duration"""
    code = ErrorCode.INSUFFICIENT_AUDIO


class ExtractionError(EngineException):
    """Numeric failure inside LLD extraction (e.g. LPC solver)"""
    code = ErrorCode.INTERNAL_EXTRACTION_FAILURE


class ExtractionTimeoutError(EngineException):
    """Worker did not finish within the caller's timeout"""
    code = ErrorCode.EXTRACTION_TIMEOUT


_EXCEPTIONS_BY_CODE = {
    cls.code: cls
    for cls in (
        EngineNotReadyError,
        InitializationError,
        InvalidAudioError,
        InsufficientAudioError,
        ExtractionError,
        ExtractionTimeoutError,
    )
}


def exception_for(code: ErrorCode, message: str) -> EngineException:
    """Build the exception matching an error code"""
    return _EXCEPTIONS_BY_CODE.get(code, EngineException)(message)
