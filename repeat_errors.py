"""Error kinds raised by the repeat printer tool.

All of them are terminal where they are detected; nothing is retried.
"""


class RepeatPrintError(Exception):
    """Base class for every failure the tool reports."""


class ArgumentError(RepeatPrintError):
    """Missing or malformed command-line arguments."""


class TemplateReadError(RepeatPrintError):
    """Receipt template file missing, unreadable or empty."""


class ConfigurationError(RepeatPrintError):
    """Delay, repeat count or device id that cannot be used."""


class TransportError(RepeatPrintError):
    """Serial or print spooler send failure."""

    def __init__(self, message, device_id=None):
        super().__init__(message)
        self.device_id = device_id
