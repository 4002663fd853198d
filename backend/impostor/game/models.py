from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidSettings, describe_validation_error


Phase = Literal["lobby", "answering", "discussing", "voting", "results", "ended"]
PlayerStatus = Literal["connected", "disconnected"]
QuestionKind = Literal["group", "impostor"]


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    kind: QuestionKind
    tags: frozenset[str] = frozenset()
    opposite_id: str | None = None


class Settings(BaseModel):
    """Per-room game settings; wire names are the camelCase aliases."""

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid", populate_by_name=True)

    rounds: int = Field(default=5, ge=1, le=50)
    answer_timer_sec: int = Field(default=30, ge=1, le=600, alias="answerTimerSec")
    discussion_timer_sec: int = Field(default=120, ge=1, le=600, alias="discussionTimerSec")
    vote_timer_sec: int = Field(default=15, ge=1, le=600, alias="voteTimerSec")

    def with_overrides(self, overrides: dict[str, Any] | None) -> "Settings":
        if not overrides:
            return self
        if not isinstance(overrides, dict):
            raise InvalidSettings("Settings must be an object")
        try:
            return Settings.model_validate({**self.to_dict(), **overrides})
        except ValidationError as exc:
            raise InvalidSettings(describe_validation_error(exc)) from exc

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass
class Player:
    id: str
    display_name: str
    sid: str | None = None
    status: PlayerStatus = "connected"
    disconnected_at_ms: int | None = None

    @property
    def connected(self) -> bool:
        return self.status == "connected"


@dataclass
class RoundData:
    impostor_id: str
    group_question_id: str
    group_question_text: str
    impostor_question_id: str
    impostor_question_text: str
    answers: dict[str, str] = field(default_factory=dict)
    votes: dict[str, str] = field(default_factory=dict)

    def question_for(self, player_id: str) -> str:
        if player_id == self.impostor_id:
            return self.impostor_question_text
        return self.group_question_text

    def purge(self, player_id: str) -> None:
        self.answers.pop(player_id, None)
        self.votes.pop(player_id, None)


@dataclass
class Room:
    id: str
    pin: str
    host_id: str
    host_name: str = ""
    host_sid: str | None = None
    settings: Settings = field(default_factory=Settings)
    phase: Phase = "lobby"
    current_round: int = 0
    current_round_data: RoundData | None = None
    players: dict[str, Player] = field(default_factory=dict)
    scores: dict[str, int] = field(default_factory=dict)
    used_question_ids: set[str] = field(default_factory=set)
    created_at_ms: int = 0
    # Scheduled work owned by the room; see game/timers.py
    phase_timer: Any = None
    ticker: Any = None
    grace_timers: dict[str, Any] = field(default_factory=dict)

    def connected_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.connected]

    def find_by_name(self, display_name: str) -> Player | None:
        key = display_name.strip().casefold()
        for p in self.players.values():
            if p.display_name.strip().casefold() == key:
                return p
        return None
