"""Unit tests for the TF-IDF ranker."""

from __future__ import annotations

import math
import threading

import pytest

from docsite_search.config import SearchSettings
from docsite_search.domain.model import Document
from docsite_search.errors import SearchCancelledError
from docsite_search.search.indexer import build_index
from docsite_search.search.ranking import Ranker, unique_terms


def _doc(location: str, page: str = "p", category: str = "page", title: str = "", text: str = "") -> Document:
    return Document(location=location, page=page, title=title or location, category=category, text=text)


def test_unique_terms_keeps_first_seen_order():
    assert unique_terms(["law", "dust", "", "law"]) == ("law", "dust")


class TestScoring:
    def test_matches_reference_values(self, dust_law_index):
        ranker = Ranker(dust_law_index)
        assert ranker.score(["dust", "law"], 0) == pytest.approx(2 * math.log(2) / 1.15)
        assert ranker.score(["dust", "law"], 1) == pytest.approx(2 * math.log(2) / 0.85)
        assert ranker.score(["ccm89"], 0) == pytest.approx(3 * math.log(3) / 1.15)

    def test_non_matching_document_scores_zero(self, dust_law_index):
        assert Ranker(dust_law_index).score(["ccm89"], 1) == 0.0
        assert Ranker(dust_law_index).score([], 0) == 0.0

    def test_title_match_outweighs_text_match_by_title_weight(self):
        index = build_index(
            [
                _doc("a", title="alpha", text="beta"),
                _doc("b", title="beta", text="alpha"),
            ]
        )
        ranker = Ranker(index, title_weight=3.0)
        title_hit = ranker.score(["alpha"], 0)
        text_hit = ranker.score(["alpha"], 1)
        assert title_hit / text_hit == pytest.approx(3.0)

    def test_title_weight_one_treats_fields_equally(self):
        index = build_index([_doc("a", title="alpha", text="beta"), _doc("b", title="beta", text="alpha")])
        ranker = Ranker(index, title_weight=1.0)
        assert ranker.score(["alpha"], 0) == pytest.approx(ranker.score(["alpha"], 1))

    def test_shorter_document_wins_for_equal_frequency(self, dust_law_index):
        ranker = Ranker(dust_law_index)
        assert ranker.score(["dust"], 1) > ranker.score(["dust"], 0)

    def test_length_normalization_can_be_disabled(self, dust_law_index):
        ranker = Ranker(dust_law_index, length_b=0.0)
        assert ranker.score(["dust"], 0) == pytest.approx(ranker.score(["dust"], 1))

    def test_repeated_query_terms_do_not_double_count(self, dust_law_index):
        ranker = Ranker(dust_law_index)
        assert ranker.score(["dust", "dust", "law"], 0) == pytest.approx(ranker.score(["dust", "law"], 0))

    def test_category_weight_multiplies_score(self, docs_corpus):
        index = build_index(docs_corpus)
        plain = Ranker(index).score(["dust"], 2)
        boosted = Ranker(index, category_weights={"type": 2.0}).score(["dust"], 2)
        assert boosted == pytest.approx(2 * plain)

    def test_parent_weight_adds_share_of_parent_score(self):
        index = build_index(
            [
                _doc("maps/", page="Maps", title="Dust Maps", text="dust maps overview"),
                _doc("maps/#sfd", page="Maps", category="section", title="SFD98", text="dust map by Schlegel"),
            ]
        )
        base = Ranker(index)
        boosted = Ranker(index, parent_weight=0.5)
        expected = base.score(["dust"], 1) + 0.5 * base.score(["dust"], 0)
        assert boosted.score(["dust"], 1) == pytest.approx(expected)
        # Pages have no parent, so they are unaffected.
        assert boosted.score(["dust"], 0) == pytest.approx(base.score(["dust"], 0))
        # Parent content alone never makes a section match.
        assert boosted.score(["overview"], 1) == 0.0

    def test_score_scaled_by_fraction_of_terms_matched(self, dust_law_index):
        ranker = Ranker(dust_law_index)
        full = ranker.score(["ccm89"], 0)
        partial = ranker.score(["ccm89", "missing"], 0)
        assert partial == pytest.approx(full / 2)


class TestRankOrder:
    def test_reference_order(self, dust_law_index):
        ranked = Ranker(dust_law_index).rank(["dust", "law"])
        assert [entry.doc_id for entry in ranked] == [1, 0]
        assert ranked[0].matched_terms == ("dust", "law")

    def test_more_matched_terms_always_rank_higher(self):
        index = build_index(
            [
                _doc("heavy", title="Dust Dust Dust", text="dust dust dust"),
                _doc("both", text="some long text that mentions dust and also law once"),
            ]
        )
        ranked = Ranker(index).rank(["dust", "law"])
        assert [entry.doc_id for entry in ranked] == [1, 0]
        assert ranked[0].coordination == 2
        assert ranked[1].coordination == 1

    def test_ties_broken_by_corpus_order(self):
        corpus = [_doc(f"loc{i}", title="Same", text="identical dust text") for i in (3, 1, 2)]
        ranked = Ranker(build_index(corpus)).rank(["dust"])
        assert [entry.doc_id for entry in ranked] == [0, 1, 2]
        assert len({entry.score for entry in ranked}) == 1

    def test_or_semantics_includes_partial_matches(self, dust_law_index):
        ranked = Ranker(dust_law_index).rank(["ccm89", "donnell"])
        assert sorted(entry.doc_id for entry in ranked) == [0, 1]

    def test_unknown_terms_yield_nothing(self, dust_law_index):
        assert Ranker(dust_law_index).rank(["nebula"]) == []
        assert Ranker(dust_law_index).rank([]) == []

    def test_cancellation_raises(self, dust_law_index):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SearchCancelledError):
            Ranker(dust_law_index).rank(["dust"], cancel=cancel)

    def test_unset_cancel_event_is_ignored(self, dust_law_index):
        ranked = Ranker(dust_law_index).rank(["dust"], cancel=threading.Event())
        assert len(ranked) == 2


def test_from_settings_uses_configured_weights(dust_law_index):
    ranker = Ranker.from_settings(
        dust_law_index, SearchSettings(title_weight=5.0, length_b=0.5, category_weights={"Page": 0.5})
    )
    assert ranker.title_weight == 5.0
    assert ranker.length_b == 0.5
    assert ranker.category_weights == {"page": 0.5}
