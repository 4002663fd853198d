"""Wire messages.

Every client -> server event has one frozen pydantic model here, keyed by
its camelCase wire names. ``parse()`` validates a payload before anything
reaches the game layer.
"""

from typing import Annotated, Any, ClassVar, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, ValidationError

from ..game.errors import InvalidPayload, describe_validation_error


def _pin_text(value: Any) -> Any:
    # PINs sometimes arrive as numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Pin = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), BeforeValidator(_pin_text)]


class ClientMessage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event: ClassVar[str] = ""

    @classmethod
    def parse(cls, data: Any):
        if not isinstance(data, dict):
            raise InvalidPayload("Payload must be an object")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidPayload(describe_validation_error(exc)) from exc


class JoinRoom(ClientMessage):
    event: ClassVar[str] = "room:join"
    pin: Pin
    user_id: Text = Field(alias="userId")
    display_name: Text = Field(alias="displayName")


class RejoinRoom(ClientMessage):
    event: ClassVar[str] = "room:rejoin"
    pin: Pin
    user_id: Text = Field(alias="userId")
    display_name: Text = Field(alias="displayName")


class HostJoin(ClientMessage):
    event: ClassVar[str] = "room:host-join"
    pin: Pin
    user_id: Text = Field(alias="userId")
    display_name: Optional[Text] = Field(default=None, alias="displayName")


class Identify(ClientMessage):
    event: ClassVar[str] = "user:identify"
    user_id: Text = Field(alias="userId")
    pin: Optional[Pin] = None


class StartGame(ClientMessage):
    event: ClassVar[str] = "game:start"
    pin: Pin
    settings: Optional[dict] = None


class SubmitAnswer(ClientMessage):
    event: ClassVar[str] = "answer:submit"
    pin: Pin
    target_user_id: Text = Field(alias="targetUserId")


class SubmitVote(ClientMessage):
    event: ClassVar[str] = "vote:submit"
    pin: Pin
    target_user_id: Text = Field(alias="targetUserId")


class ThemeBroadcast(ClientMessage):
    event: ClassVar[str] = "theme:broadcast"
    pin: Pin
    theme: Text


class SkipToVoting(ClientMessage):
    event: ClassVar[str] = "discussion:skip-to-voting"
    pin: Pin
    host_id: Optional[Text] = Field(default=None, alias="hostId")


class KickPlayer(ClientMessage):
    event: ClassVar[str] = "player:kick"
    pin: Pin
    target_user_id: Text = Field(alias="targetUserId")


CLIENT_MESSAGES: dict[str, type[ClientMessage]] = {
    cls.event: cls
    for cls in (
        JoinRoom,
        RejoinRoom,
        HostJoin,
        Identify,
        StartGame,
        SubmitAnswer,
        SubmitVote,
        ThemeBroadcast,
        SkipToVoting,
        KickPlayer,
    )
}


class ServerEvent:
    ROOM_JOINED = "room:joined"
    ROOM_UPDATE = "room:update"
    ERROR = "error"
    ROUND_START = "round:start"
    PROMPT_GROUP = "prompt:group"
    PROMPT_IMPOSTOR = "prompt:impostor"
    ANSWERS_UPDATE = "answers:update"
    DISCUSSION_START = "discussion:start"
    VOTING_START = "voting:start"
    TIMER_UPDATE = "timer:update"
    ROUND_RESULT = "round:result"
    GAME_END = "game:end"
    PLAYER_KICKED = "player:kicked"
    THEME_UPDATE = "theme:update"
