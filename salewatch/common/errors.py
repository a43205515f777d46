"""
Error taxonomy for the sale detection pipeline

None of these are fatal to the process:
- ClassificationFailure: degraded to the default "no sale" verdict, logged only
- StoreFailure: propagated to the command/report caller, shown as a failure reply
- InputFormatError: surfaced as a usage message, no side effects
- TranscriptionFailure: degraded to an empty body, pipeline continues
"""


class SalewatchError(Exception):
    """Base class for salewatch errors"""


class ClassificationFailure(SalewatchError):
    """Transport or parse failure from a classification provider"""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class StoreFailure(SalewatchError):
    """Ledger read/write failure"""


class InputFormatError(SalewatchError):
    """Malformed admin command text"""

    def __init__(self, message: str, usage: str = ""):
        super().__init__(message)
        self.usage = usage


class TranscriptionFailure(SalewatchError):
    """Audio could not be transcribed"""
