"""
common.errors

Error taxonomy for holder statistics runs.

Fatal errors derive from EngineError and abort a scan. Per-item problems
(malformed logs, classification misses) are not raised past the component
that meets them; they are kept as SkippedItem diagnostics instead.
"""


class EngineError(RuntimeError):
    pass


class ProviderUnavailable(EngineError):
    """Endpoint unreachable, credential missing, or request rejected as unauthorized."""


class RetriesExhausted(EngineError):
    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class RpcError(EngineError):
    def __init__(self, message: str, code=None):
        super().__init__(message)
        self.code = code


class InvalidAddress(EngineError, ValueError):
    pass


class MalformedEvent(ValueError):
    pass
