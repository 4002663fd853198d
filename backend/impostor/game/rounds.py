from __future__ import annotations

import logging
import random
import secrets
from typing import Any, Callable, ContextManager, Sequence

from ..config import GameRules
from ..realtime.events import ServerEvent
from . import scoring, views
from .errors import InvalidTarget, NotAllowed, NotEnoughPlayers, PhaseError
from .models import Player, Question, Room, RoundData
from .questions import CATALOG, select_pair
from .timers import Timer, TimerBroadcaster

log = logging.getLogger(__name__)

# Submissions arriving in these phases are late, not wrong: drop them quietly.
_LATE_FOR_ANSWERS = ("discussing", "voting", "results", "ended")
_LATE_FOR_VOTES = ("results", "ended")

# Phases during which a reconnecting player should get their prompt again.
_ROUND_PHASES = ("answering", "discussing", "voting")


class RoundOrchestrator:
    """Per-room phase state machine.

    lobby -> answering -> discussing -> voting -> results -> (answering | ended)

    Only this class changes ``room.phase``. Every transition cancels the
    pending phase timer and ticker before scheduling new ones, so whichever
    of "everyone submitted" and "time is up" happens first wins.
    """

    def __init__(
        self,
        transport: Any,
        lock: ContextManager,
        rules: GameRules,
        timers: TimerBroadcaster,
        catalog: Sequence[Question] = CATALOG,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._lock = lock
        self.rules = rules
        self.timers = timers
        self.catalog = catalog
        self.rng = rng or secrets.SystemRandom()

    # ---- commands ----

    def start_game(self, room: Room, requester_id: str | None, overrides: dict | None = None) -> None:
        if requester_id != room.host_id:
            raise NotAllowed("Only the host can start the game")
        if room.phase != "lobby":
            raise PhaseError("Game already started")

        connected = room.connected_players()
        if len(connected) < self.rules.min_players:
            raise NotEnoughPlayers(f"Need at least {self.rules.min_players} players to start")

        room.settings = room.settings.with_overrides(overrides)
        log.info("[game-start] room=%s players=%d settings=%s", room.pin, len(connected), room.settings)
        self._start_round(room)

    def submit_answer(self, room: Room, user_id: str | None, target_id: str) -> bool:
        if room.phase != "answering":
            if room.phase in _LATE_FOR_ANSWERS:
                log.debug("[answer-late] room=%s user=%s phase=%s", room.pin, user_id, room.phase)
                return False
            raise PhaseError("Not in answering phase")

        data = room.current_round_data
        if data is None or user_id is None or user_id not in room.players:
            return False
        if target_id not in room.players:
            raise InvalidTarget("Unknown player")

        data.answers[user_id] = target_id
        self._transport.emit(ServerEvent.ANSWERS_UPDATE, views.answers_update(room), to=room.pin)
        self.check_progress(room)
        return True

    def submit_vote(self, room: Room, user_id: str | None, target_id: str) -> bool:
        if room.phase != "voting":
            if room.phase in _LATE_FOR_VOTES:
                log.debug("[vote-late] room=%s user=%s", room.pin, user_id)
                return False
            raise PhaseError("Not in voting phase")

        data = room.current_round_data
        if data is None or user_id is None or user_id not in room.players:
            return False
        if target_id not in room.players:
            raise InvalidTarget("Unknown player")

        data.votes[user_id] = target_id
        self.check_progress(room)
        return True

    def skip_discussion(self, room: Room, requester_id: str | None) -> None:
        if requester_id != room.host_id:
            raise NotAllowed("Only the host can skip the discussion")
        if room.phase != "discussing":
            raise PhaseError("Can only skip during discussion")
        log.info("[discussion-skip] room=%s round=%d", room.pin, room.current_round)
        self._start_voting(room)

    def check_progress(self, room: Room) -> None:
        """Advance if every rostered player has submitted for the current phase.

        Called after each submission and after a player leaves the roster,
        since a smaller roster may already be complete.
        """
        data = room.current_round_data
        if data is None:
            return
        roster = set(room.players)
        if room.phase == "answering" and roster.issubset(data.answers):
            log.info("[answers-complete] room=%s round=%d", room.pin, room.current_round)
            self._start_discussion(room)
        elif room.phase == "voting" and roster.issubset(data.votes):
            log.info("[votes-complete] room=%s round=%d", room.pin, room.current_round)
            self._finish_round(room)

    def resync(self, room: Room, player: Player) -> None:
        if room.phase in _ROUND_PHASES and room.current_round_data is not None:
            self._deliver_prompt(room, player)

    def cancel(self, room: Room) -> None:
        if room.phase_timer is not None:
            room.phase_timer.cancel()
            room.phase_timer = None
        self.timers.stop(room)

    # ---- transitions ----

    def _start_round(self, room: Room) -> None:
        self.cancel(room)

        order = list(room.players)
        self.rng.shuffle(order)
        if not order:
            log.warning("[round-abort] room=%s no players", room.pin)
            room.phase = "lobby"
            room.current_round_data = None
            self._transport.emit(
                ServerEvent.ERROR,
                {"message": "No players left to start a round", "code": "no_players"},
                to=room.pin,
            )
            views.broadcast_room_update(self._transport, room, host_fallback=True)
            return

        room.current_round += 1
        impostor_id = self.rng.choice(order)
        group, impostor = select_pair(room, self.catalog, self.rng)
        room.current_round_data = RoundData(
            impostor_id=impostor_id,
            group_question_id=group.id,
            group_question_text=group.text,
            impostor_question_id=impostor.id,
            impostor_question_text=impostor.text,
        )
        room.phase = "answering"
        seconds = room.settings.answer_timer_sec
        log.info("[round-start] room=%s round=%d/%d", room.pin, room.current_round, room.settings.rounds)

        self._transport.emit(
            ServerEvent.ROUND_START,
            {"roundNumber": room.current_round, "timerSeconds": seconds},
            to=room.pin,
        )
        for player_id in order:
            self._deliver_prompt(room, room.players[player_id])

        self._schedule(room, seconds, tick=True)

    def _start_discussion(self, room: Room) -> None:
        self.cancel(room)
        room.phase = "discussing"
        seconds = room.settings.discussion_timer_sec
        data = room.current_round_data
        self._transport.emit(
            ServerEvent.DISCUSSION_START,
            {"timerSeconds": seconds, "question": data.group_question_text if data else ""},
            to=room.pin,
        )
        self._schedule(room, seconds, tick=True)

    def _start_voting(self, room: Room) -> None:
        self.cancel(room)
        room.phase = "voting"
        seconds = room.settings.vote_timer_sec
        self._transport.emit(
            ServerEvent.VOTING_START,
            {"timerSeconds": seconds, "players": views.player_list(room)},
            to=room.pin,
        )
        self._schedule(room, seconds, tick=True)

    def _finish_round(self, room: Room) -> None:
        self.cancel(room)
        room.phase = "results"
        data = room.current_round_data
        if data is None:
            return

        caught = scoring.impostor_caught(data.votes, data.impostor_id, len(room.connected_players()))
        scoring.apply_round_scores(
            room,
            data.impostor_id,
            caught,
            group_points=self.rules.group_points,
            impostor_points=self.rules.impostor_points,
        )
        log.info(
            "[round-result] room=%s round=%d impostor=%s caught=%s votes=%d",
            room.pin,
            room.current_round,
            data.impostor_id,
            caught,
            len(data.votes),
        )
        self._transport.emit(
            ServerEvent.ROUND_RESULT,
            {
                "impostorId": data.impostor_id,
                "impostorCaught": caught,
                "impostorQuestion": data.impostor_question_text,
                "votes": [[voter, target] for voter, target in data.votes.items()],
                "scores": scoring.leaderboard(room),
            },
            to=room.pin,
        )
        self._schedule(room, self.rules.results_duration_sec, tick=False)

    def _after_results(self, room: Room) -> None:
        if room.current_round >= room.settings.rounds:
            self._end_game(room)
        else:
            self._start_round(room)

    def _end_game(self, room: Room) -> None:
        self.cancel(room)
        room.phase = "ended"
        room.current_round_data = None
        final_scores = scoring.leaderboard(room)
        log.info("[game-end] room=%s rounds=%d", room.pin, room.current_round)
        self._transport.emit(ServerEvent.GAME_END, {"finalScores": final_scores}, to=room.pin)

    # ---- scheduling ----

    def _schedule(self, room: Room, seconds: float, tick: bool) -> None:
        handlers: dict[str, Callable[[Room], None]] = {
            "answering": self._start_discussion,
            "discussing": self._start_voting,
            "voting": self._finish_round,
            "results": self._after_results,
        }
        phase, round_no = room.phase, room.current_round
        log.info("[timer-set] room=%s phase=%s round=%d duration=%ss", room.pin, phase, round_no, seconds)

        def _fire() -> None:
            if room.phase != phase or room.current_round != round_no:
                log.info(
                    "[timer-abort] room=%s expected=%s/%d actual=%s/%d",
                    room.pin,
                    phase,
                    round_no,
                    room.phase,
                    room.current_round,
                )
                return
            log.info("[timer-fire] room=%s phase=%s round=%d", room.pin, phase, round_no)
            handlers[phase](room)

        room.phase_timer = Timer(
            self._transport,
            self._lock,
            seconds,
            _fire,
            name=f"{room.pin}:{phase}:{round_no}",
        ).start()
        if tick:
            self.timers.start(room, int(seconds))

    def _deliver_prompt(self, room: Room, player: Player) -> None:
        data = room.current_round_data
        if data is None or not player.sid:
            return
        event = ServerEvent.PROMPT_IMPOSTOR if player.id == data.impostor_id else ServerEvent.PROMPT_GROUP
        self._transport.emit(
            event,
            {"text": data.question_for(player.id), "players": views.player_list(room)},
            to=player.sid,
        )
