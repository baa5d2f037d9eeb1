from __future__ import annotations

from mnemosyne.store import search


def test_clean_keywords_drops_blanks_and_duplicates() -> None:
    assert search.clean_keywords(["Cat", " ", "cat", "DOG", ""]) == [
        ("Cat", "cat"),
        ("DOG", "dog"),
    ]
    assert search.clean_keywords(None) == []


def test_count_occurrences_is_case_insensitive_and_literal() -> None:
    assert search.count_occurrences("Coffee, more COFFEE", "coffee") == 2
    assert search.count_occurrences("a.b.c", ".") == 2
    assert search.count_occurrences("aaaa", "aa") == 2
    assert search.count_occurrences(None, "x") == 0


def test_score_fields_applies_weights_per_field() -> None:
    keywords = search.clean_keywords(["cat"])
    match = search.score_fields(
        keywords,
        {"name": "Cat", "attributes": '{"species":"cat","toy":"catnip"}'},
        search.FIELD_WEIGHTS["entity"],
    )

    assert match.score == 3 + 2
    assert match.matched_keywords == ["cat"]
    assert match.matched_fields == {"name": True, "attributes": True}


def test_adding_occurrences_never_lowers_score() -> None:
    keywords = search.clean_keywords(["vet"])
    weights = search.FIELD_WEIGHTS["event"]
    base = search.score_fields(keywords, {"description": "vet", "metadata": None}, weights)
    more = search.score_fields(keywords, {"description": "vet vet", "metadata": "vet"}, weights)

    assert more.score > base.score


def test_all_mode_matches_are_subset_of_any_mode() -> None:
    keywords = search.clean_keywords(["red", "car"])
    weights = search.FIELD_WEIGHTS["attribute"]
    texts = ["red car", "red bike", "blue car", "green van"]
    matches = [
        search.score_fields(keywords, {"key": "k", "value": text}, weights)
        for text in texts
    ]

    any_hits = {t for t, m in zip(texts, matches) if search.is_match(m, keywords, "any")}
    all_hits = {t for t, m in zip(texts, matches) if search.is_match(m, keywords, "all")}

    assert all_hits == {"red car"}
    assert all_hits <= any_hits
    assert any_hits == {"red car", "red bike", "blue car"}


def test_rank_is_stable_and_truncates() -> None:
    keywords = search.clean_keywords(["x"])
    weights = {"value": 1}
    scored = [
        ({"id": i}, search.score_fields(keywords, {"value": text}, weights))
        for i, text in enumerate(["x", "xx", "x", "xxx"])
    ]

    ranked = search.rank(scored, limit=3)

    assert [item["id"] for item in ranked] == [3, 1, 0]
    assert [item["relevance_score"] for item in ranked] == [3, 2, 1]
