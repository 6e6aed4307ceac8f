from __future__ import annotations


class UnicornBotError(Exception):
    pass


class ConfigurationError(UnicornBotError):
    """Invalid settings or command definitions. Fatal at startup."""


class IdentityResolutionError(UnicornBotError):
    """No actor could be built from the payload of an event."""


class ReplyDeliveryError(UnicornBotError):
    def __init__(self, message: str, failures: list[tuple[str, BaseException]] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class HandlerExecutionError(UnicornBotError):
    def __init__(self, command_name: str, event_key: str, original: BaseException) -> None:
        super().__init__(f"{command_name} failed on {event_key}: {original}")
        self.command_name = command_name
        self.event_key = event_key
        self.original = original
