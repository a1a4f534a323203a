"""Tests for relevance search, highlighting and suggestions."""

import pytest

from ethos_discovery.corpus import Corpus
from ethos_discovery.models import Author, SearchFilters
from ethos_discovery.search import (
    SearchEngine,
    SearchSession,
    highlight_excerpt,
    matches_filters,
    score_article,
)
from tests.conftest import make_article


@pytest.fixture
def engine(example_corpus):
    return SearchEngine(example_corpus)


class TestSearch:
    """Tests for SearchEngine.search."""

    def test_prompt_query_returns_matching_titles_in_corpus_order(self, engine):
        state = engine.search("prompt", SearchFilters())

        assert [r.article.id for r in state.results] == ["a", "b"]
        assert state.total_results == 2
        # title term (10) + exact phrase in title (15)
        assert state.results[0].relevance_score == 25
        assert state.results[1].relevance_score == 25

    def test_empty_query_returns_whole_corpus_unscored(self, engine, example_corpus):
        state = engine.search("", SearchFilters())

        assert state.total_results == len(example_corpus)
        assert [r.article.id for r in state.results] == ["a", "b", "c"]
        for result in state.results:
            assert result.relevance_score == 0
            assert result.matched_fields == []
            assert result.highlighted_excerpt == result.article.excerpt

    def test_blank_query_is_treated_as_empty(self, engine):
        state = engine.search("   ")

        assert state.total_results == 3

    def test_no_matches_is_an_empty_result_not_an_error(self, engine):
        state = engine.search("kubernetes")

        assert state.results == []
        assert state.total_results == 0
        assert state.is_searching is False

    def test_results_respect_filters(self, engine):
        state = engine.search("", SearchFilters(category="legal"))

        assert [r.article.id for r in state.results] == ["c"]

    def test_unknown_category_filter_gives_no_results(self, engine):
        state = engine.search("prompt", SearchFilters(category="does-not-exist"))

        assert state.total_results == 0

    def test_results_sorted_by_score(self):
        corpus = Corpus([
            make_article("low", "Notes", excerpt="Some thoughts on python."),
            make_article("high", "Python Tips", tags=["python"]),
            make_article("mid", "Misc", tags=["python"]),
        ])
        state = SearchEngine(corpus).search("python")

        scores = [r.relevance_score for r in state.results]
        assert [r.article.id for r in state.results] == ["high", "low", "mid"]
        assert scores == sorted(scores, reverse=True)
        assert all(score > 0 for score in scores)

    def test_reports_search_time_and_suggestions(self, engine):
        state = engine.search("prompt")

        assert state.search_time >= 0
        assert state.suggestions == ["Prompt"]
        assert state.query == "prompt"


class TestScoring:
    """Tests for score_article."""

    def test_exact_phrase_in_title_adds_bonus(self):
        with_phrase = make_article("x", "Prompt Patterns Explained")
        without_phrase = make_article("y", "Patterns for Prompt Work")

        score_x, _ = score_article(with_phrase, "prompt patterns")
        score_y, _ = score_article(without_phrase, "prompt patterns")

        assert score_x - score_y >= 15

    def test_exact_phrase_in_excerpt_adds_bonus(self):
        article = make_article("x", "Untitled", excerpt="All about chain of thought.")

        score, matched = score_article(article, "chain of")

        # excerpt per term (6 + 6) + phrase in excerpt (10)
        assert score == 22
        assert matched == ["excerpt"]

    def test_matched_fields_keep_first_match_order_without_duplicates(self):
        article = make_article(
            "x", "Python Tips", tags=["python"], content="python tips for everyone"
        )

        score, matched = score_article(article, "python tips")

        assert matched == ["title", "tags", "content"]
        # python: title 10 + tags 8 + content 3; tips: title 10 + content 3; phrase 15
        assert score == 49

    def test_content_is_only_sampled_at_the_start(self):
        article = make_article("x", "Long Read", content="x" * 1000 + " zebra")

        score, matched = score_article(article, "zebra")

        assert score == 0
        assert matched == []

    def test_author_role_matches(self):
        article = make_article("x", "Guardrails", author=Author(name="Elena Volkova", role="Safety Researcher"))

        score, matched = score_article(article, "researcher")

        assert score == 5
        assert matched == ["author"]

    def test_category_matches(self):
        article = make_article("x", "Untitled", category="case-studies")

        score, matched = score_article(article, "case")

        assert score == 4
        assert matched == ["category"]


class TestFilters:
    """Tests for matches_filters."""

    def test_difficulty_filter(self):
        article = make_article("x", "T", difficulty="Advanced")

        assert matches_filters(article, SearchFilters(difficulty="Advanced"))
        assert not matches_filters(article, SearchFilters(difficulty="Beginner"))

    def test_tri_state_code_examples(self):
        article = make_article("x", "T", has_code_examples=False)

        assert matches_filters(article, SearchFilters(has_code_examples=None))
        assert matches_filters(article, SearchFilters(has_code_examples=False))
        assert not matches_filters(article, SearchFilters(has_code_examples=True))

    def test_downloads_filter(self):
        article = make_article("x", "T", has_downloads=True)

        assert not matches_filters(article, SearchFilters(has_downloads=False))

    def test_author_is_case_insensitive_substring(self):
        article = make_article("x", "T", author=Author(name="Sarah Chen", role="Lead"))

        assert matches_filters(article, SearchFilters(author="sarah"))
        assert not matches_filters(article, SearchFilters(author="marcus"))

    def test_tags_match_in_either_direction(self):
        article = make_article("x", "T", tags=["Prompt Engineering"])

        assert matches_filters(article, SearchFilters(tags=["engineering"]))
        assert matches_filters(article, SearchFilters(tags=["prompt engineering tips"]))
        assert matches_filters(article, SearchFilters(tags=["vision", "prompt"]))
        assert not matches_filters(article, SearchFilters(tags=["vision"]))

    def test_date_range_is_not_enforced(self):
        article = make_article("x", "T", date="January 1, 2001")

        assert matches_filters(article, SearchFilters(date_range="last-month"))


class TestHighlight:
    """Tests for highlight_excerpt."""

    def test_picks_sentence_with_most_terms(self):
        excerpt = "First sentence here. Second talks about prompts. Third one"

        assert highlight_excerpt(excerpt, "prompts") == "Second talks about <mark>prompts</mark>..."

    def test_keeps_original_casing_and_skips_ellipsis_for_whole_excerpt(self):
        assert highlight_excerpt("Prompt design matters", "PROMPT") == "<mark>Prompt</mark> design matters"

    def test_defaults_to_first_sentence(self):
        assert highlight_excerpt("Alpha. Beta", "zzz") == "Alpha..."

    def test_marks_every_occurrence_of_every_term(self):
        result = highlight_excerpt("Prompt a prompt for chains", "prompt chain")

        assert result == "<mark>Prompt</mark> a <mark>prompt</mark> for <mark>chain</mark>s"

    def test_terms_are_not_treated_as_patterns(self):
        assert highlight_excerpt("Costs $5 (approx)", "(approx)") == "Costs $5 <mark>(approx)</mark>"

    def test_empty_query_returns_excerpt(self):
        assert highlight_excerpt("Alpha. Beta", "") == "Alpha. Beta"


class TestSuggestions:
    """Tests for SearchEngine.suggestions."""

    def test_short_query_has_no_suggestions(self, engine):
        assert engine.suggestions("p") == []
        assert engine.suggestions("") == []

    def test_collects_title_words_tags_and_authors(self):
        corpus = Corpus([
            make_article(
                "x",
                "Practical Prompting",
                tags=["Prompt Design"],
                author=Author(name="Priya Nair", role="Editor"),
            ),
        ])

        assert SearchEngine(corpus).suggestions("pr") == [
            "Practical", "Prompting", "Prompt Design", "Priya Nair",
        ]

    def test_ignores_short_title_words(self):
        corpus = Corpus([make_article("x", "AI at Scale")])

        assert SearchEngine(corpus).suggestions("ai") == []

    def test_capped_at_five(self):
        corpus = Corpus([
            make_article("x", "Prompt", tags=[f"prompt {i}" for i in range(10)]),
        ])

        suggestions = SearchEngine(corpus).suggestions("prompt")

        assert suggestions == ["Prompt", "prompt 0", "prompt 1", "prompt 2", "prompt 3"]


class TestSearchSession:
    """Tests for SearchSession state handling."""

    def test_update_filters_keeps_query(self, engine):
        session = SearchSession(engine)
        session.search("prompt")

        state = session.update_filters(category="legal")

        assert state.query == "prompt"
        assert state.filters.category == "legal"
        assert state.total_results == 0

    def test_update_query_keeps_filters(self, engine):
        session = SearchSession(engine)
        session.search("", SearchFilters(category="tutorials"))

        state = session.update_query("advanced")

        assert state.filters.category == "tutorials"
        assert [r.article.id for r in state.results] == ["b"]

    def test_clear_resets_state(self, engine):
        session = SearchSession(engine)
        session.search("prompt", SearchFilters(difficulty="Beginner"))

        state = session.clear()

        assert state.query == ""
        assert state.results == []
        assert state.total_results == 0
        assert state.filters == SearchFilters()

    def test_popular_searches(self, engine):
        session = SearchSession(engine, popular_searches=["chain of thought"])

        assert session.popular_searches() == ["chain of thought"]
