"""Enumerations for engine lifecycle and error taxonomy"""

from enum import Enum


class EngineState(Enum):
    """Readiness of an engine instance"""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class ErrorCode(Enum):
    """Error kinds reported by the engine

    ENGINE_NOT_READY: initialize() never ran or failed
    INITIALIZATION_FAILURE: recipe asset or analysis tables missing or corrupt
    INVALID_AUDIO: unsupported sample rate, channel layout or sample values
    INSUFFICIENT_AUDIO: signal shorter than the minimum analysis duration
    INTERNAL_EXTRACTION_FAILURE: unexpected numeric failure in the pipeline
    EXTRACTION_TIMEOUT: analyze_async gave up waiting for the worker
    """
    ENGINE_NOT_READY = "EngineNotReady"
    INITIALIZATION_FAILURE = "InitializationFailure"
    INVALID_AUDIO = "InvalidAudio"
    INSUFFICIENT_AUDIO = "InsufficientAudio"
    INTERNAL_EXTRACTION_FAILURE = "InternalExtractionFailure"
    EXTRACTION_TIMEOUT = "ExtractionTimeout"


class Scope(Enum):
    """Frame subset a functional is computed over"""
    ALL = "all"
    VOICED = "voiced"
    UNVOICED = "unvoiced"
