from __future__ import annotations

import logging
import random
import secrets
from typing import Iterable, Sequence

from .errors import ConfigurationError
from .models import Question, Room

log = logging.getLogger(__name__)

_rng = secrets.SystemRandom()


# (group prompt, impostor prompt, tags)
_PAIRS: list[tuple[str, str, tuple[str, ...]]] = [
    # Personality & humor
    ("Who is the funniest?", "Who is the most serious?", ("personality", "humor")),
    ("Who tells the best jokes?", "Who tells the worst jokes?", ("personality", "humor")),
    ("Who laughs the loudest?", "Who laughs the quietest?", ("personality", "humor")),
    ("Who has the most contagious laugh?", "Who has the most awkward laugh?", ("personality", "humor")),
    ("Who makes awkward situations funny?", "Who makes funny situations awkward?", ("personality", "humor")),
    # School / work
    ("Who is the most hardworking?", "Who is the laziest?", ("school", "work")),
    ("Who procrastinates the most?", "Who always finishes things early?", ("school", "work")),
    ("Who is most likely to forget homework?", "Who never forgets anything?", ("school", "work")),
    ("Who gives the best presentations?", "Who is most afraid of public speaking?", ("school", "work")),
    ("Who would be the best teacher?", "Who would be the worst teacher?", ("school", "work")),
    # Everyday life
    ("Who is the most organized?", "Who is the messiest?", ("lifestyle",)),
    ("Who is the best cook?", "Who burns water when cooking?", ("lifestyle",)),
    ("Who is most likely to oversleep?", "Who is always the first one awake?", ("lifestyle",)),
    ("Who spends the most time on their phone?", "Who uses their phone the least?", ("lifestyle",)),
    # Social life
    ("Who is the most talkative?", "Who is the quietest?", ("social",)),
    ("Who gives the best advice?", "Who gives the worst advice?", ("social",)),
    ("Who is the best listener?", "Who interrupts people the most?", ("social",)),
    ("Who is the life of the party?", "Who leaves parties first?", ("social",)),
    # Adventure & risk
    ("Who would survive a zombie apocalypse?", "Who would be first eliminated in a zombie apocalypse?", ("adventure",)),
    ("Who would get lost on a trip?", "Who has the best sense of direction?", ("adventure",)),
    ("Who would try the weirdest food?", "Who is the pickiest eater?", ("adventure",)),
    ("Who is most likely to go skydiving?", "Who is most afraid of heights?", ("adventure",)),
    ("Who is the most spontaneous?", "Who plans everything in advance?", ("adventure",)),
    # Entertainment
    ("Who knows the most about movies?", "Who has seen the fewest movies?", ("entertainment",)),
    ("Who is most likely to binge-watch a show in one day?", "Who watches the least TV?", ("entertainment",)),
    ("Who is the biggest gamer?", "Who has never touched a video game?", ("entertainment",)),
    ("Who sings the loudest in the car?", "Who refuses to sing along?", ("entertainment",)),
    ("Who always picks the best music?", "Who has the worst taste in music?", ("entertainment",)),
    # Silly
    ("Who trips the most?", "Who has the best balance?", ("silly",)),
    ("Who forgets names the most?", "Who remembers everyone's name?", ("silly",)),
    ("Who laughs at their own jokes the most?", "Who never finds their own jokes funny?", ("silly",)),
    ("Who takes the longest selfies?", "Who hates taking photos?", ("silly",)),
    ("Who is most likely to say something embarrassing in public?", "Who thinks before they speak?", ("silly",)),
    # Relationships & personality
    ("Who is the most romantic?", "Who is the least romantic?", ("personality",)),
    ("Who gives the best compliments?", "Who never compliments anyone?", ("personality",)),
    ("Who is the most competitive?", "Who doesn't care about winning?", ("personality",)),
    ("Who is the most dramatic?", "Who is the most chill?", ("personality",)),
    # Random
    ("Who would be the best president/leader?", "Who would be the worst leader?", ("random",)),
    ("Who is most likely to move abroad?", "Who will never leave their hometown?", ("random",)),
    ("Who is most likely to become famous?", "Who prefers to stay anonymous?", ("random",)),
    ("Who is the most creative?", "Who thinks inside the box?", ("random",)),
    ("Who is the best problem-solver?", "Who creates more problems than they solve?", ("random",)),
    ("Who would win a trivia contest?", "Who knows the least random facts?", ("random",)),
    ("Who is the best dancer?", "Who has two left feet?", ("random",)),
    ("Who would be a stand-up comedian?", "Who would bomb on stage?", ("random",)),
    ("Who is the best at keeping secrets?", "Who can't keep a secret to save their life?", ("random",)),
    ("Who would survive without the internet the longest?", "Who would die without WiFi?", ("random",)),
]


def build_catalog(pairs: Iterable[tuple[str, str, Sequence[str]]]) -> list[Question]:
    """Expand (group, impostor, tags) pairs into linked catalog entries with sequential ids."""
    catalog: list[Question] = []
    next_id = 1
    for group_text, impostor_text, tags in pairs:
        gid, iid = str(next_id), str(next_id + 1)
        next_id += 2
        catalog.append(Question(id=gid, text=group_text, kind="group", tags=frozenset(tags), opposite_id=iid))
        catalog.append(Question(id=iid, text=impostor_text, kind="impostor", tags=frozenset(tags), opposite_id=gid))
    return catalog


CATALOG: list[Question] = build_catalog(_PAIRS)


def validate_catalog(catalog: Sequence[Question]) -> None:
    ids = {q.id for q in catalog}
    if len(ids) != len(catalog):
        raise ConfigurationError("question catalog has duplicate ids")
    for kind in ("group", "impostor"):
        if not any(q.kind == kind for q in catalog):
            raise ConfigurationError(f"question catalog has no {kind} questions")
    for q in catalog:
        if q.opposite_id is not None and q.opposite_id not in ids:
            raise ConfigurationError(f"question {q.id} points at unknown opposite {q.opposite_id}")


def select_pair(
    room: Room,
    catalog: Sequence[Question] = CATALOG,
    rng: random.Random = _rng,
) -> tuple[Question, Question]:
    """Pick a (group, impostor) question pair for the next round of ``room``.

    Questions already served in the room are skipped until one of the kinds
    runs out, at which point the used set is cleared and selection starts
    over from the full catalog. The impostor prompt avoids the group
    prompt's own opposite and, when possible, any prompt sharing a tag.
    """
    groups = [q for q in catalog if q.kind == "group"]
    fakes = [q for q in catalog if q.kind == "impostor"]
    if not groups or not fakes:
        raise ConfigurationError("question catalog needs both group and impostor questions")

    used = room.used_question_ids
    available_groups = [q for q in groups if q.id not in used]
    available_fakes = [q for q in fakes if q.id not in used]
    if not available_groups or not available_fakes:
        log.info("[questions-reset] room=%s used=%d", room.pin, len(used))
        used.clear()
        available_groups, available_fakes = groups, fakes

    group = rng.choice(available_groups)

    not_opposite = [q for q in available_fakes if q.id != group.opposite_id]
    preferred = [q for q in not_opposite if not (q.tags & group.tags)]
    pool = preferred or not_opposite or available_fakes
    impostor = rng.choice(pool)

    used.add(group.id)
    used.add(impostor.id)
    return group, impostor
