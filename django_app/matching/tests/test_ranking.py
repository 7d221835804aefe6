from datetime import timedelta
from types import SimpleNamespace

import pytest
from django.utils import timezone

from matching.errors import ContestStateError, NotFound
from matching.models import Contest, ContestEntry, Photo
from matching.ranking import NO_ENTRY, rank_entries, select_winners

T0 = timezone.now()


def entry(entry_id, score, seconds):
    return SimpleNamespace(
        id=entry_id,
        user_id=100 + entry_id,
        photo_id=200 + entry_id,
        similarity=score,
        submitted_at=T0 + timedelta(seconds=seconds),
    )


class TestSelectWinners:

    def test_top_three_with_submission_order_tie_break(self):
        entries = [entry(i + 1, score, i) for i, score in enumerate([0.9, 0.7, 0.95, 0.7])]
        board = select_winners(entries)
        assert board.first.entry_id == 3
        assert board.first.similarity == 0.95
        assert board.second.entry_id == 1
        assert board.third.entry_id == 2

    def test_input_order_does_not_matter(self):
        entries = [entry(i + 1, score, i) for i, score in enumerate([0.9, 0.7, 0.95, 0.7])]
        board = select_winners(reversed(entries))
        assert [p.entry_id for p in board.placements()] == [3, 1, 2]

    def test_single_entry_fills_rest_with_no_entry(self):
        board = select_winners([entry(1, 0.42, 0)])
        assert board.first.entry_id == 1
        assert board.first.user_id == 101
        assert board.first.photo_id == 201
        assert board.second is NO_ENTRY
        assert board.third is NO_ENTRY

    def test_no_entries(self):
        board = select_winners([])
        assert all(p is NO_ENTRY for p in board.placements())

    def test_raw_scores_decide_even_when_percent_is_equal(self):
        # Both display as 95%
        board = select_winners([entry(1, 0.9001, 0), entry(2, 0.9002, 1)])
        assert board.first.entry_id == 2
        assert board.first.as_dict()["percent"] == board.second.as_dict()["percent"]

    def test_as_dict_marks_empty_slots(self):
        data = select_winners([entry(1, 0.5, 0)], version=3).as_dict()
        assert data["first"]["status"] == "ranked"
        assert data["first"]["user_id"] == 101
        assert data["first"]["percent"] == 75
        assert data["second"] == {"status": "no_entry"}
        assert data["third"] == {"status": "no_entry"}
        assert data["version"] == 3


@pytest.mark.django_db
class TestRankEntries:

    def _submit(self, contest, user, score, seconds):
        photo = Photo.objects.create(owner=user, image_path="photos/p.jpg")
        return ContestEntry.objects.create(
            contest=contest, user=user, photo=photo, similarity=score,
            submitted_at=T0 + timedelta(seconds=seconds),
        )

    def test_ranks_and_persists_winners(self, make_contest, make_user):
        contest = make_contest()
        users = [make_user() for _ in range(4)]
        entries = [
            self._submit(contest, user, score, i)
            for i, (user, score) in enumerate(zip(users, [0.9, 0.7, 0.95, 0.7]))
        ]

        board = rank_entries(contest.pk)

        assert board.first.entry_id == entries[2].pk
        assert board.second.entry_id == entries[0].pk
        assert board.third.entry_id == entries[1].pk
        assert board.first.photo_id == entries[2].photo_id

        contest.refresh_from_db()
        assert contest.first_place == users[2]
        assert contest.second_place == users[0]
        assert contest.third_place == users[1]
        assert contest.ranking_version == 1
        assert contest.ranked_at is not None

    def test_single_entry(self, make_contest, make_user):
        contest = make_contest()
        user = make_user()
        self._submit(contest, user, 0.3, 0)

        board = rank_entries(contest.pk)

        assert board.first.user_id == user.pk
        assert board.second is NO_ENTRY
        assert board.third is NO_ENTRY
        contest.refresh_from_db()
        assert contest.first_place == user
        assert contest.second_place is None
        assert contest.third_place is None

    def test_reranking_bumps_version_and_picks_up_new_entries(self, make_contest, make_user):
        contest = make_contest()
        self._submit(contest, make_user(), 0.5, 0)
        assert rank_entries(contest.pk).version == 1

        late = make_user()
        self._submit(contest, late, 0.99, 10)
        board = rank_entries(contest.pk)

        assert board.version == 2
        assert board.first.user_id == late.pk
        contest.refresh_from_db()
        assert contest.first_place == late

    def test_unknown_contest(self):
        with pytest.raises(NotFound):
            rank_entries(999)

    def test_ranking_runs_in_any_status_by_default(self, make_contest, make_user):
        contest = make_contest(status=Contest.Status.ACTIVE)
        self._submit(contest, make_user(), 0.5, 0)
        assert rank_entries(contest.pk).first is not NO_ENTRY

    def test_ranking_can_require_closed_contest(self, settings, make_contest, make_user):
        settings.FACER_RANKING_REQUIRES_CLOSED = True
        contest = make_contest(status=Contest.Status.ACTIVE)
        self._submit(contest, make_user(), 0.5, 0)

        with pytest.raises(ContestStateError):
            rank_entries(contest.pk)

        Contest.objects.filter(pk=contest.pk).update(status=Contest.Status.CLOSED)
        assert rank_entries(contest.pk).version == 1
