from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Empty means: pick a default in create_app()
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Game defaults (a host can override rounds/timers when starting)
    DEFAULT_ROUNDS = int(os.environ.get("DEFAULT_ROUNDS", "5"))
    ANSWER_TIMER_SEC = int(os.environ.get("ANSWER_TIMER_SEC", "30"))
    DISCUSSION_TIMER_SEC = int(os.environ.get("DISCUSSION_TIMER_SEC", "120"))
    VOTE_TIMER_SEC = int(os.environ.get("VOTE_TIMER_SEC", "15"))
    RESULTS_DURATION_SEC = int(os.environ.get("RESULTS_DURATION_SEC", "5"))

    # Roster
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "3"))
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "0"))
    DISCONNECT_GRACE_SEC = int(os.environ.get("DISCONNECT_GRACE_SEC", "60"))
    NAME_MAX_LEN = int(os.environ.get("NAME_MAX_LEN", "24"))

    # Scoring
    GROUP_POINTS = int(os.environ.get("GROUP_POINTS", "1"))
    IMPOSTOR_POINTS = int(os.environ.get("IMPOSTOR_POINTS", "3"))

    PIN_RETRY_LIMIT = int(os.environ.get("PIN_RETRY_LIMIT", "50"))


# Three players is the floor for a round to make sense.
HARD_MIN_PLAYERS = 3


@dataclass(frozen=True)
class GameRules:
    default_rounds: int = 5
    answer_timer_sec: int = 30
    discussion_timer_sec: int = 120
    vote_timer_sec: int = 15
    results_duration_sec: float = 5
    min_players: int = HARD_MIN_PLAYERS
    max_players: int = 0
    disconnect_grace_sec: float = 60
    name_max_len: int = 24
    group_points: int = 1
    impostor_points: int = 3
    pin_retry_limit: int = 50

    def __post_init__(self) -> None:
        if self.min_players < HARD_MIN_PLAYERS:
            object.__setattr__(self, "min_players", HARD_MIN_PLAYERS)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GameRules":
        return cls(
            default_rounds=int(config.get("DEFAULT_ROUNDS", 5)),
            answer_timer_sec=int(config.get("ANSWER_TIMER_SEC", 30)),
            discussion_timer_sec=int(config.get("DISCUSSION_TIMER_SEC", 120)),
            vote_timer_sec=int(config.get("VOTE_TIMER_SEC", 15)),
            results_duration_sec=float(config.get("RESULTS_DURATION_SEC", 5)),
            min_players=int(config.get("MIN_PLAYERS", HARD_MIN_PLAYERS)),
            max_players=int(config.get("MAX_PLAYERS", 0)),
            disconnect_grace_sec=float(config.get("DISCONNECT_GRACE_SEC", 60)),
            name_max_len=int(config.get("NAME_MAX_LEN", 24)),
            group_points=int(config.get("GROUP_POINTS", 1)),
            impostor_points=int(config.get("IMPOSTOR_POINTS", 3)),
            pin_retry_limit=int(config.get("PIN_RETRY_LIMIT", 50)),
        )
