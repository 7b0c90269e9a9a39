# backend/petfeeder/core/exceptions.py


class PetFeederError(Exception):
    """Base class for backend errors."""


class ConnectionUnavailable(PetFeederError):
    """MQTT transport could not be initialised (bad host, socket error). Fatal at startup."""


class PublishFailed(PetFeederError):
    """Broker rejected the publish or did not acknowledge it in time."""


class RepositoryError(PetFeederError):
    """Schedule or log store unreachable, slow, or returned malformed data."""


class EncodingError(PetFeederError):
    """Command could not be built from the given intent."""
