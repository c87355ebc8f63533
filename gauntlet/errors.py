class GauntletError(Exception):
    """Base class for the errors allowed to escape a harness component."""


class ConfigurationError(GauntletError):
    """Invalid thresholds or settings. Raised before any phase starts."""


class SessionError(GauntletError):
    """The throwaway identity could not be registered or logged in."""


class MissingCredentialError(RuntimeError):
    """An authenticated probe was requested from a session with no token."""
