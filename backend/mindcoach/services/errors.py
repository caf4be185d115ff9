"""Error taxonomy shared by services, agents and routers."""


class MindCoachError(Exception):
    """Base class for errors raised by the service layer."""


class ConfigurationError(MindCoachError):
    """A provider credential or required setting is missing."""


class ProviderError(MindCoachError):
    """A provider call failed (transport, rate limit, timeout, bad status)."""


class MalformedOutputError(MindCoachError):
    """The provider answered but its structured output could not be parsed."""


class RoadmapGenerationError(MindCoachError):
    """Roadmap synthesis failed with no safe fallback."""


class NotFoundError(MindCoachError):
    """A referenced project or chat does not exist in the store."""


def provider_status_code(error: Exception) -> int:
    """Map a provider failure to an HTTP status by its message."""
    message = str(error).lower()
    if "rate limit" in message:
        return 429
    if "timeout" in message or "timed out" in message:
        return 504
    return 500


def provider_error_message(status_code: int) -> str:
    if status_code == 429:
        return "Too many requests. Please wait a moment and try again."
    if status_code == 504:
        return "Request timed out. Please try a shorter message."
    return "Failed to generate response. Please try again."
