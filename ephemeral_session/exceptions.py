"""Error taxonomy for Ephemeral Session.

Server-side errors never escape the Session API: they are converted into
structured failure responses at the handler boundary.
"""


class SessionError(Exception):
    """Base class for every Ephemeral Session error."""


class ConfigurationError(SessionError):
    """A required secret or parameter is missing or malformed.

    Fatal to the operation that needed it and never retried.
    """


class ValidationError(SessionError):
    """A caller omitted or malformed a required request field."""


class StoreConnectionError(SessionError, ConnectionError):
    """The Redis store is unreachable or a command failed."""


class CryptoError(SessionError):
    """Decryption failed authentication or the envelope is malformed."""


class TransportError(SessionError):
    """The client could not reach the Session API."""


class SessionNotFound(SessionError):
    """No session blob exists for the alias (or it expired)."""
