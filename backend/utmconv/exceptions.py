"""
Conversion errors.

All three are fatal for a single conversion and are reported by
UTMConverter.convert() as a plain False.
"""


class ConversionError(Exception):

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"{type(self).__name__}: {self.message}"


class NoSessionAvailable(ConversionError):
    """No decoder channel could be reserved."""


class SourceUnreadable(ConversionError):
    """The telemetry log could not be opened for reading."""


class DestinationUnwritable(ConversionError):
    """The UTM output file or its folder could not be created."""
