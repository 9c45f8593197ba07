class PipelineError(Exception):
    """Base class for every error raised by the event pipeline."""


class ParseError(PipelineError):
    """An inbound payload is not valid JSON."""


class TransportError(PipelineError):
    """The broker could not be reached or refused the message."""


class PayloadTooLarge(TransportError):
    """The serialized event exceeds the broker's single-message capacity."""


class PersistenceError(PipelineError):
    """The relational store could not be reached or a statement failed."""


class ConfigurationError(PipelineError):
    """A mandatory setting is missing."""
