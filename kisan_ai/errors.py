# in kisan_ai/errors.py

class KisanAIError(Exception):
    """Base class for errors raised by the Kisan AI services"""


class NotFoundError(KisanAIError):
    """A catalog or store lookup found nothing"""


class LLMNotConfiguredError(KisanAIError):
    """No API key is configured for the generative model"""


class JSONExtractionError(KisanAIError):
    """The model answered with text that holds no parseable JSON object"""


class UpstreamServiceError(KisanAIError):
    """
    An external model or provider call failed.

    `public_message` is the only text that may be shown to a client; the
    original cause stays on `__cause__` and in the server log.
    """

    public_message = "Upstream service failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)


class DiagnosisFailed(UpstreamServiceError):
    public_message = "Failed to diagnose crop disease"


class MarketInsightFailed(UpstreamServiceError):
    public_message = "Failed to get market insight"


class MarketAnalysisFailed(UpstreamServiceError):
    public_message = "Failed to generate market analysis"


class VoiceQueryFailed(UpstreamServiceError):
    public_message = "Failed to process voice query"


class ConflictError(KisanAIError):
    """A record with the same identifier already exists"""
