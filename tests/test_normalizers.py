"""Credit normalizer behaviour tests."""

from __future__ import annotations

from app.services.metadata import RawPersonCredits
from app.services.normalizers import (
    OTHER_DEPARTMENT,
    UNKNOWN_JOB,
    UNKNOWN_ROLE,
    normalize_person_credits,
    normalize_raw_person_credits,
    normalize_title_credits,
)


def test_title_credits_yield_one_record_per_person() -> None:
    cast = [
        {"id": 1, "name": "Ann", "character": "Hero", "popularity": 5},
        {"id": 2, "name": "Bob", "character": "Sidekick", "popularity": 3},
        {"id": 1, "name": "Ann", "character": "Narrator", "popularity": 5},
    ]
    crew = [
        {"id": 3, "name": "Cy", "job": "Director", "department": "Directing"},
        {"id": 1, "name": "Ann", "job": "Producer", "department": "Production"},
        {"id": 1, "name": "Ann", "job": "Producer", "department": "Production"},
    ]

    records = normalize_title_credits(cast, crew)

    assert sorted(record.person_id for record in records) == [1, 2, 3]
    assert all(record.role_kinds for record in records)
    ann = next(record for record in records if record.person_id == 1)
    assert ann.role_kinds == {"cast", "crew"}
    assert ann.jobs == ["Producer"]
    assert ann.departments == {"Production"}


def test_title_credits_fill_sentinels_for_missing_fields() -> None:
    records = normalize_title_credits(
        [{"id": 1, "name": "Ann", "character": "  "}],
        [{"id": 2, "name": "Bob"}],
    )

    by_id = {record.person_id: record for record in records}
    assert by_id[1].character == UNKNOWN_ROLE
    assert by_id[1].jobs == []
    assert by_id[2].character is None
    assert by_id[2].jobs == [UNKNOWN_JOB]
    assert by_id[2].departments == {OTHER_DEPARTMENT}


def test_title_credits_sort_by_popularity_with_missing_as_zero() -> None:
    records = normalize_title_credits(
        [
            {"id": 1, "name": "Low", "popularity": None},
            {"id": 2, "name": "High", "popularity": 9.5},
            {"id": 3, "name": "Tied", "popularity": 0},
        ],
        [],
    )

    assert [record.person_id for record in records] == [2, 1, 3]


def test_title_credits_empty_inputs_return_empty_list() -> None:
    assert normalize_title_credits([], []) == []
    assert normalize_title_credits(None, None) == []


def test_title_credits_skip_entries_without_numeric_id() -> None:
    records = normalize_title_credits(
        [{"name": "Ghost"}, {"id": "7", "name": "Text"}, {"id": 8, "name": "Real"}],
        [],
    )

    assert [record.person_id for record in records] == [8]


def test_person_credits_merge_cast_and_crew_on_same_title() -> None:
    records = normalize_person_credits(
        movie_cast=[{"id": 10, "title": "M1", "release_date": "2000-01-01"}],
        movie_crew=[
            {"id": 10, "title": "M1", "job": "Director", "release_date": "2000-01-01"}
        ],
        tv_cast=[],
        tv_crew=[],
    )

    assert len(records) == 1
    record = records[0]
    assert record.title_id == 10
    assert record.media_kind == "movie"
    assert record.role_kinds == {"cast", "crew"}
    assert record.primary_role_kind == "cast"
    assert record.jobs == ["Director"]
    assert record.departments == {OTHER_DEPARTMENT}


def test_person_credits_exclude_undated_titles() -> None:
    records = normalize_person_credits(
        movie_cast=[
            {"id": 1, "title": "Released", "release_date": "1999-05-01", "character": "A"},
            {"id": 2, "title": "Rumoured", "release_date": "", "character": "B"},
            {"id": 3, "title": "Announced", "character": "C"},
        ],
        movie_crew=None,
        tv_cast=[{"id": 4, "name": "Pilot", "character": "D"}],
        tv_crew=None,
    )

    assert [record.title_id for record in records] == [1]


def test_person_credits_keep_movies_and_series_apart() -> None:
    records = normalize_raw_person_credits(
        RawPersonCredits(
            movie_cast=[
                {"id": 10, "title": "Film", "release_date": "2001-01-01", "popularity": 2}
            ],
            tv_cast=[
                {"id": 10, "name": "Show", "first_air_date": "2005-09-01", "popularity": 4}
            ],
        )
    )

    assert [record.identity for record in records] == [("series", 10), ("movie", 10)]
    assert records[0].display_name == "Show"
    assert records[1].display_name == "Film"


def test_person_credits_deduplicate_characters_and_jobs() -> None:
    records = normalize_person_credits(
        movie_cast=[],
        movie_crew=[],
        tv_cast=[
            {"id": 5, "name": "Show", "first_air_date": "2010-01-01", "character": "Self"},
            {"id": 5, "name": "Show", "first_air_date": "2010-01-01", "character": "Self"},
            {"id": 5, "name": "Show", "first_air_date": "2010-01-01", "character": "Twin"},
        ],
        tv_crew=[
            {"id": 5, "name": "Show", "first_air_date": "2010-01-01", "job": "Writer", "department": "Writing"},
            {"id": 5, "name": "Show", "first_air_date": "2010-01-01", "job": "Writer", "department": "Writing"},
        ],
    )

    record = records[0]
    assert record.characters == ["Self", "Twin"]
    assert record.jobs == ["Writer"]
    assert record.departments == {"Writing"}


def test_person_credits_crew_only_primary_role_is_crew() -> None:
    records = normalize_person_credits(
        movie_cast=[],
        movie_crew=[{"id": 1, "title": "Doc", "release_date": "2020-02-02", "job": "Editor"}],
        tv_cast=[],
        tv_crew=[],
    )

    assert records[0].primary_role_kind == "crew"
    assert records[0].characters == []
