from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Sequence

from ..config import GameRules
from .models import Question, Room, Settings
from .questions import CATALOG, validate_catalog
from .registry import RoomRegistry
from .roster import PlayerRoster
from .rounds import RoundOrchestrator
from .timers import TimerBroadcaster

log = logging.getLogger(__name__)


@dataclass
class GameHub:
    """Everything one server process needs to run games, wired together."""

    rules: GameRules
    registry: RoomRegistry
    timers: TimerBroadcaster
    rounds: RoundOrchestrator
    roster: PlayerRoster

    @classmethod
    def build(
        cls,
        transport: Any,
        rules: GameRules | None = None,
        catalog: Sequence[Question] = CATALOG,
        rng: random.Random | None = None,
    ) -> "GameHub":
        rules = rules or GameRules()
        validate_catalog(catalog)

        registry = RoomRegistry(pin_retry_limit=rules.pin_retry_limit).init()
        timers = TimerBroadcaster(transport, registry.lock)
        rounds = RoundOrchestrator(transport, registry.lock, rules, timers, catalog=catalog, rng=rng)
        roster = PlayerRoster(transport, registry.lock, rules, rounds)
        log.info("[hub-init] questions=%d min_players=%d", len(catalog), rules.min_players)
        return cls(rules=rules, registry=registry, timers=timers, rounds=rounds, roster=roster)

    def default_settings(self) -> Settings:
        return Settings(
            rounds=self.rules.default_rounds,
            answer_timer_sec=self.rules.answer_timer_sec,
            discussion_timer_sec=self.rules.discussion_timer_sec,
            vote_timer_sec=self.rules.vote_timer_sec,
        )

    def create_room(self, host_id: str, display_name: str) -> Room:
        return self.registry.create_room(host_id, display_name, settings=self.default_settings())

    def shutdown(self) -> None:
        self.registry.shutdown()
