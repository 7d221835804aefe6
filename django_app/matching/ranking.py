"""Contest leaderboard: top three entries by similarity to the target."""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .errors import ContestStateError, NotFound
from .models import Contest
from .similarity import to_percent

logger = logging.getLogger(__name__)

PLACES = ("first", "second", "third")


@dataclass(frozen=True)
class Placement:
    entry_id: Optional[int]
    user_id: Optional[int]
    photo_id: Optional[int]
    similarity: Optional[float]

    @property
    def is_empty(self):
        return self.entry_id is None

    def as_dict(self):
        if self.is_empty:
            return {"status": "no_entry"}
        return {
            "status": "ranked",
            "entry_id": self.entry_id,
            "user_id": self.user_id,
            "photo_id": self.photo_id,
            "similarity": self.similarity,
            "percent": to_percent(self.similarity),
        }


NO_ENTRY = Placement(entry_id=None, user_id=None, photo_id=None, similarity=None)


@dataclass(frozen=True)
class Leaderboard:
    first: Placement = NO_ENTRY
    second: Placement = NO_ENTRY
    third: Placement = NO_ENTRY
    version: int = 0

    def placements(self):
        return (self.first, self.second, self.third)

    def as_dict(self):
        data = {place: placement.as_dict() for place, placement in zip(PLACES, self.placements())}
        data["version"] = self.version
        return data


def _ranking_key(entry):
    # Highest score first, then earliest submission, then lowest id
    return (-entry.similarity, entry.submitted_at, entry.id)


def select_winners(entries, version=0):
    """Pick the top three entries.

    ``entries`` is any iterable of objects with ``id``, ``user_id``,
    ``photo_id``, ``similarity`` and ``submitted_at``. Unfilled places hold
    ``NO_ENTRY``. Ranking uses the raw scores, never the rounded percentage.
    """
    ordered = sorted(entries, key=_ranking_key)[:len(PLACES)]
    placements = [
        Placement(
            entry_id=entry.id,
            user_id=entry.user_id,
            photo_id=entry.photo_id,
            similarity=entry.similarity,
        )
        for entry in ordered
    ]
    placements.extend([NO_ENTRY] * (len(PLACES) - len(placements)))
    return Leaderboard(*placements, version=version)


def rank_entries(contest_id):
    """Rank a contest's entries and persist the winners onto the contest.

    The contest row is locked for the duration of the read-then-write, so
    concurrent calls for one contest run one after another and the stored
    ranking always reflects the entries visible to the last writer.
    """
    with transaction.atomic():
        try:
            contest = Contest.objects.select_for_update().get(pk=contest_id)
        except Contest.DoesNotExist:
            raise NotFound(f"Contest {contest_id} not found")

        if settings.FACER_RANKING_REQUIRES_CLOSED and contest.status != Contest.Status.CLOSED:
            raise ContestStateError(
                f"Contest {contest_id} is '{contest.status}'; ranking requires a closed contest"
            )

        entries = list(contest.entries.all())
        board = select_winners(entries, version=contest.ranking_version + 1)

        contest.first_place_id = board.first.user_id
        contest.second_place_id = board.second.user_id
        contest.third_place_id = board.third.user_id
        contest.ranking_version = board.version
        contest.ranked_at = timezone.now()
        contest.save(update_fields=[
            "first_place", "second_place", "third_place", "ranking_version", "ranked_at",
        ])

    logger.info(
        "Ranked contest #%s from %d entries (version %d)",
        contest_id, len(entries), board.version,
    )
    return board
