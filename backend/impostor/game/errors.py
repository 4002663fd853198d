from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class GameError(Exception):
    """A recoverable, per-action failure reported back to the caller only."""

    code = "game_error"

    def __init__(self, message: str, code: str | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra

    def to_payload(self) -> dict:
        return {"message": self.message, "code": self.code, **self.extra}


class InvalidPayload(GameError):
    code = "invalid_payload"


class RoomNotFound(GameError):
    code = "room_not_found"

    def __init__(self, message: str = "Room not found", **extra: Any) -> None:
        super().__init__(message, **extra)


class PhaseError(GameError):
    code = "wrong_phase"


class NotAllowed(GameError):
    code = "only_host"


class JoinRejected(GameError):
    code = "join_rejected"


class NotEnoughPlayers(GameError):
    code = "not_enough_players"


class InvalidSettings(GameError):
    code = "invalid_settings"


class InvalidTarget(GameError):
    code = "invalid_target"


class ConfigurationError(RuntimeError):
    """Fatal: the server cannot run a game with this setup."""


def describe_validation_error(exc: ValidationError) -> str:
    """First pydantic error as ``field: message`` using wire names."""
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    first = errors[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"{where}: {first.get('msg', 'invalid')}" if where else first.get("msg", "invalid")
