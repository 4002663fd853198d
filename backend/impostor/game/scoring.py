"""Round scoring.

Pure helpers so the rules can be checked without timers or sockets.
"""

from __future__ import annotations

from typing import Mapping

from .models import Room


def tally_votes(votes: Mapping[str, str]) -> tuple[str | None, int]:
    """Return (plurality target, its vote count).

    Ties go to the target that reached the winning count first in vote
    order.
    """
    counts: dict[str, int] = {}
    for target_id in votes.values():
        counts[target_id] = counts.get(target_id, 0) + 1

    leader: str | None = None
    best = 0
    for target_id, count in counts.items():
        if count > best:
            leader, best = target_id, count
    return leader, best


def impostor_caught(votes: Mapping[str, str], impostor_id: str, connected_count: int) -> bool:
    leader, count = tally_votes(votes)
    # Strict majority: exactly half is not enough.
    return leader == impostor_id and count * 2 > connected_count


def apply_round_scores(room: Room, impostor_id: str, caught: bool, group_points: int, impostor_points: int) -> None:
    if caught:
        for player_id in room.players:
            if player_id != impostor_id and player_id in room.scores:
                room.scores[player_id] += group_points
    elif impostor_id in room.scores:
        room.scores[impostor_id] += impostor_points


def leaderboard(room: Room) -> list[dict]:
    rows = []
    for user_id, score in room.scores.items():
        player = room.players.get(user_id)
        rows.append(
            {
                "userId": user_id,
                "displayName": player.display_name if player else "Unknown",
                "score": score,
            }
        )
    # sorted() is stable, so ties keep join order
    return sorted(rows, key=lambda r: r["score"], reverse=True)
