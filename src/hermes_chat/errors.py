"""Exception types shared across hermes-chat components."""

import json


class ConfigurationError(Exception):
    """Required configuration (usually a credential) is missing or invalid."""


class UnknownToolError(LookupError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Command {name} not found")
        self.name = name


def get_error_message(error: object) -> str:
    """Render any raised value as a short human-readable message."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        for key in ("message", "error"):
            if isinstance(error.get(key), str):
                return error[key]
        try:
            return json.dumps(error)
        except (TypeError, ValueError):
            return repr(error)
    return str(error)
