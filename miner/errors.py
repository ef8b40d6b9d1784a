"""
Error taxonomy shared by the capture pipeline and the AnkiConnect client.
"""


class MinerError(Exception):
    pass


class UserInputError(MinerError):
    """Nothing visible or resolvable to act on. Reported, no state change."""


class RecencyError(MinerError):
    """The note to update is missing or was added too long ago."""


class AnkiConnectError(MinerError):
    pass


class TransportError(AnkiConnectError):
    """AnkiConnect could not be reached."""


class MalformedResponseError(AnkiConnectError):
    """The request could not be encoded or the reply could not be decoded."""


class ApplicationError(AnkiConnectError):
    """AnkiConnect answered with an explicit error message."""
