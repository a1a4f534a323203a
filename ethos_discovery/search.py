"""Relevance search over the article corpus.

Scoring is additive over weighted fields:

    title 10, tags 8, excerpt 6, content 3, author 5, category 4

per query term, plus exact-phrase bonuses for the title (+15) and the
excerpt (+10). Only the first 1000 characters of the content are checked.
"""

import logging
import re
import time
from typing import Optional

from .config import POPULAR_SEARCHES
from .corpus import Corpus
from .models import Article, SearchFilters, SearchResult, SearchState

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = {
    "title": 10,
    "tags": 8,
    "excerpt": 6,
    "content": 3,
    "author": 5,
    "category": 4,
}
TITLE_PHRASE_BONUS = 15
EXCERPT_PHRASE_BONUS = 10
CONTENT_SAMPLE_SIZE = 1000
MAX_SUGGESTIONS = 5
MIN_SUGGESTION_QUERY = 2

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"


def split_terms(query: str) -> list[str]:
    """Split a query into lowercase whitespace-separated terms."""
    return [term for term in query.lower().split() if term]


def matches_filters(article: Article, filters: SearchFilters) -> bool:
    """Check whether an article satisfies every filter predicate."""
    if filters.category != "all" and article.category != filters.category:
        return False

    if filters.difficulty != "all" and article.difficulty != filters.difficulty:
        return False

    if filters.has_code_examples is not None and article.has_code_examples != filters.has_code_examples:
        return False

    if filters.has_downloads is not None and article.has_downloads != filters.has_downloads:
        return False

    if filters.author and filters.author.lower() not in article.author.name.lower():
        return False

    if filters.tags:
        article_tags = [tag.lower() for tag in article.tags]
        has_matching_tag = any(
            wanted.lower() in tag or tag in wanted.lower()
            for wanted in filters.tags
            for tag in article_tags
        )
        if not has_matching_tag:
            return False

    # dateRange is accepted but not applied
    return True


def score_article(article: Article, query: str) -> tuple[float, list[str]]:
    """Compute the relevance score and matched fields for one article."""
    terms = split_terms(query)
    if not terms:
        return 0, []

    fields = {
        "title": [article.title.lower()],
        "tags": [tag.lower() for tag in article.tags],
        "excerpt": [article.excerpt.lower()],
        "content": [article.content[:CONTENT_SAMPLE_SIZE].lower()],
        "author": [article.author.name.lower(), article.author.role.lower()],
        "category": [article.category.lower()],
    }

    score = 0
    matched_fields: list[str] = []
    for term in terms:
        for field_name, values in fields.items():
            if any(term in value for value in values):
                score += FIELD_WEIGHTS[field_name]
                if field_name not in matched_fields:
                    matched_fields.append(field_name)

    # Exact phrase bonuses
    phrase = query.lower()
    if phrase in article.title.lower():
        score += TITLE_PHRASE_BONUS
    if phrase in article.excerpt.lower():
        score += EXCERPT_PHRASE_BONUS

    return score, matched_fields


def highlight_excerpt(excerpt: str, query: str) -> str:
    """Return the best-matching excerpt sentence with query terms marked."""
    terms = split_terms(query)
    if not terms:
        return excerpt

    sentences = excerpt.split(". ")
    best_sentence = sentences[0]
    max_matches = 0
    for sentence in sentences:
        lowered = sentence.lower()
        matches = len({term for term in terms if term in lowered})
        if matches > max_matches:
            max_matches = matches
            best_sentence = sentence

    # Single pass so a term never matches inside an inserted marker
    ordered = sorted(set(terms), key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(term) for term in ordered), re.IGNORECASE)
    highlighted = pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", best_sentence)

    return highlighted + ("..." if best_sentence != excerpt else "")


class SearchEngine:
    """Scores and filters corpus articles against a query and filters."""

    def __init__(self, corpus: Corpus):
        self.corpus = corpus

    def filter_articles(self, filters: SearchFilters) -> list[Article]:
        """Apply filters, keeping corpus order."""
        if filters.date_range != "all":
            logger.debug("dateRange=%s is not enforced", filters.date_range)
        return [article for article in self.corpus if matches_filters(article, filters)]

    def suggestions(self, query: str) -> list[str]:
        """Autocomplete suggestions from title words, tags and author names."""
        if not query.strip() or len(query) < MIN_SUGGESTION_QUERY:
            return []

        query_lower = query.lower()
        found: dict[str, None] = {}  # insertion-ordered set

        for article in self.corpus:
            for word in article.title.split(" "):
                if word.lower().startswith(query_lower) and len(word) > 2:
                    found.setdefault(word)

            for tag in article.tags:
                if query_lower in tag.lower():
                    found.setdefault(tag)

            if any(word.lower().startswith(query_lower) for word in article.author.name.split(" ")):
                found.setdefault(article.author.name)

            if len(found) >= MAX_SUGGESTIONS:
                break

        return list(found)[:MAX_SUGGESTIONS]

    def search(self, query: str, filters: Optional[SearchFilters] = None) -> SearchState:
        """Run a search and return the resulting state.

        An empty query returns every filtered article with a zero score and
        the raw excerpt. Otherwise, articles scoring zero are dropped and
        the rest are sorted by score, ties keeping corpus order.
        """
        filters = filters or SearchFilters()
        start = time.perf_counter()

        filtered = self.filter_articles(filters)

        if not query.strip():
            results = [
                SearchResult(
                    article=article,
                    relevance_score=0,
                    matched_fields=[],
                    highlighted_excerpt=article.excerpt,
                )
                for article in filtered
            ]
        else:
            results = []
            for article in filtered:
                score, matched_fields = score_article(article, query)
                if score <= 0:
                    continue
                results.append(
                    SearchResult(
                        article=article,
                        relevance_score=score,
                        matched_fields=matched_fields,
                        highlighted_excerpt=highlight_excerpt(article.excerpt, query),
                    )
                )
            results.sort(key=lambda r: r.relevance_score, reverse=True)

        suggestions = self.suggestions(query)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.debug("search: query=%r, %d results in %.2fms", query, len(results), elapsed_ms)
        return SearchState(
            query=query,
            filters=filters,
            results=results,
            is_searching=False,
            total_results=len(results),
            search_time=elapsed_ms,
            suggestions=suggestions,
        )


class SearchSession:
    """Holds the current search state between UI-driven calls."""

    def __init__(self, engine: SearchEngine, popular_searches: Optional[list[str]] = None):
        self.engine = engine
        self.state = SearchState()
        self._popular_searches = list(popular_searches or POPULAR_SEARCHES)

    def search(self, query: str, filters: Optional[SearchFilters] = None) -> SearchState:
        """Run a new search, replacing the current state."""
        self.state = self.engine.search(query, filters or SearchFilters())
        return self.state

    def update_query(self, query: str) -> SearchState:
        """Re-run with a new query and the current filters."""
        return self.search(query, self.state.filters)

    def update_filters(self, **changes) -> SearchState:
        """Merge filter changes into the current filters and re-run."""
        merged = self.state.filters.model_dump()
        merged.update(changes)
        filters = SearchFilters.model_validate(merged)
        return self.search(self.state.query, filters)

    def clear(self) -> SearchState:
        """Reset to the initial empty state."""
        self.state = SearchState()
        return self.state

    def popular_searches(self) -> list[str]:
        """Popular search phrases offered before the user types."""
        return list(self._popular_searches)
