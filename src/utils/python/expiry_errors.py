class ExpiryPipelineError(Exception):
    pass


class ConfigurationError(ExpiryPipelineError):
    """Raised when a required environment variable is missing."""


class ExpiryScheduleError(ExpiryPipelineError):
    """Raised when an expiry check cannot be built or handed to the queue.

    Propagates out of the stream handler so the stream batch is retried.
    """


class MalformedIntentError(ExpiryPipelineError):
    """Raised for an expiry queue message body that cannot be parsed."""
