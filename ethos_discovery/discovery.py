"""Trending scores, related-content ranking and curated collections."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Protocol

import httpx
from dateutil.parser import parse as parse_date
from pydantic import ValidationError

from .config import FEATURED_CATEGORY_IDS
from .corpus import Corpus
from .models import Article, Collection, EngagementSignal, Recommendation, TrendingArticle

logger = logging.getLogger(__name__)

VIEW_WEIGHT = 0.4
SHARE_WEIGHT = 0.3
ENGAGEMENT_WEIGHT = 0.2
RECENCY_WEIGHT = 0.1
RECENCY_WINDOW_DAYS = 365

# Related-content weights
SAME_CATEGORY = 30
SAME_DIFFICULTY = 15
PER_SHARED_TAG = 10
SAME_AUTHOR = 20
BOTH_CODE_EXAMPLES = 5
BOTH_DOWNLOADS = 5
PER_TITLE_WORD = 8
TRENDING_BOOST = 10
MIN_TITLE_WORD_LENGTH = 4

COLLECTION_SIZE = 3
POPULAR_PER_CATEGORY = 3

ZERO_SIGNAL = EngagementSignal()


class EngagementSource(Protocol):
    """Anything that maps an article id to its engagement figures."""

    def get(self, article_id: str) -> EngagementSignal:
        ...


def _parse_signals(raw: Mapping) -> dict[str, EngagementSignal]:
    """Validate a raw {id: {...}} table, skipping malformed entries."""
    signals: dict[str, EngagementSignal] = {}
    for article_id, value in raw.items():
        try:
            signals[str(article_id)] = EngagementSignal.model_validate(value)
        except ValidationError as e:
            logger.warning("Skipping engagement entry %s: %s", article_id, e.errors()[0]["msg"])
    return signals


class StaticEngagementSource:
    """Fixed lookup table keyed by article id."""

    def __init__(self, table: Optional[Mapping] = None):
        self._signals = _parse_signals(table or {})

    def get(self, article_id: str) -> EngagementSignal:
        return self._signals.get(article_id, ZERO_SIGNAL)


def load_engagement_table(path: Path) -> StaticEngagementSource:
    """Load a static engagement table; a missing or broken file gives an empty one."""
    if not path.exists():
        logger.info("No engagement table at %s, trending uses recency only", path)
        return StaticEngagementSource()
    try:
        with open(path, "r", encoding="utf-8") as f:
            table = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read engagement table %s: %s", path, e)
        return StaticEngagementSource()
    if not isinstance(table, dict):
        logger.warning("Engagement table %s is not a JSON object", path)
        return StaticEngagementSource()
    return StaticEngagementSource(table)


class HttpEngagementSource:
    """Live analytics feed returning the same {id: signal} document."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self._signals: Optional[dict[str, EngagementSignal]] = None

    def refresh(self) -> None:
        """Fetch the feed again. Failures leave an empty table."""
        try:
            response = httpx.get(self.url, follow_redirects=True, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Engagement feed %s unavailable: %s", self.url, e)
            self._signals = {}
            return
        if not isinstance(data, dict):
            logger.warning("Engagement feed %s returned %s, expected object", self.url, type(data).__name__)
            self._signals = {}
            return
        self._signals = _parse_signals(data)

    def get(self, article_id: str) -> EngagementSignal:
        if self._signals is None:
            self.refresh()
        return self._signals.get(article_id, ZERO_SIGNAL)


def published_at(article: Article) -> Optional[datetime]:
    """Parse the display date of an article as an aware datetime."""
    try:
        parsed = parse_date(article.date)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_view_count(count: int) -> str:
    """Format a view count as 1.5M / 12.9K / 950."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def _any_tag_contains(article: Article, needles: Iterable[str]) -> bool:
    return any(needle in tag.lower() for tag in article.tags for needle in needles)


# (title, description, icon, predicate)
FEATURED_COLLECTIONS: list[tuple[str, str, str, Callable[[Article], bool]]] = [
    (
        "Getting Started with Prompt Engineering",
        "Essential guides for beginners to master the fundamentals",
        "rocket",
        lambda a: a.difficulty == "Beginner" or _any_tag_contains(a, ["fundamental"]),
    ),
    (
        "Production-Ready AI Solutions",
        "Advanced techniques for deploying AI in enterprise environments",
        "zap",
        lambda a: _any_tag_contains(a, ["production", "enterprise", "optimization"]),
    ),
    (
        "AI Safety & Ethics",
        "Responsible AI development and safety considerations",
        "shield",
        lambda a: _any_tag_contains(a, ["safety", "ethics", "alignment"]),
    ),
    (
        "Advanced Techniques",
        "Cutting-edge methods for expert practitioners",
        "brain",
        lambda a: a.difficulty == "Advanced" or _any_tag_contains(a, ["advanced"]),
    ),
]


class DiscoveryEngine:
    """Popularity and similarity ranking over the corpus."""

    def __init__(
        self,
        corpus: Corpus,
        engagement: Optional[EngagementSource] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.corpus = corpus
        self.engagement = engagement or StaticEngagementSource()
        self.now = now or (lambda: datetime.now(timezone.utc))

    def _signals(self) -> dict[str, EngagementSignal]:
        return {article.id: self.engagement.get(article.id) for article in self.corpus}

    def _recency(self, article: Article, now: datetime) -> float:
        published = published_at(article)
        if published is None:
            return 0.0
        days_since = (now - published).total_seconds() / 86400
        return max(0.0, 1 - days_since / RECENCY_WINDOW_DAYS)

    def trending_scores(self) -> dict[str, float]:
        """Composite trending score per article id."""
        signals = self._signals()
        max_views = max((s.views for s in signals.values()), default=0)
        max_shares = max((s.shares for s in signals.values()), default=0)
        now = self.now()

        scores = {}
        for article in self.corpus:
            signal = signals[article.id]
            norm_views = signal.views / max_views if max_views else 0.0
            norm_shares = signal.shares / max_shares if max_shares else 0.0
            scores[article.id] = (
                norm_views * VIEW_WEIGHT
                + norm_shares * SHARE_WEIGHT
                + signal.engagement_rate * ENGAGEMENT_WEIGHT
                + self._recency(article, now) * RECENCY_WEIGHT
            )
        return scores

    def calculate_trending_score(self, article: Article) -> float:
        """Trending score of a single article, normalized against the corpus."""
        return self.trending_scores().get(article.id, 0.0)

    def get_trending_posts(self, limit: int = 6) -> list[TrendingArticle]:
        """Articles sorted by trending score, ties in corpus order."""
        scores = self.trending_scores()
        trending = []
        for article in self.corpus:
            signal = self.engagement.get(article.id)
            trending.append(
                TrendingArticle(
                    **article.model_dump(),
                    trending_score=scores[article.id],
                    view_count=signal.views,
                    share_count=signal.shares,
                    engagement_rate=signal.engagement_rate,
                )
            )
        trending.sort(key=lambda a: a.trending_score, reverse=True)
        return trending[:max(limit, 0)]

    def get_recently_updated(self, limit: int = 4) -> list[Article]:
        """Articles by publication date, newest first; undated ones last."""
        dated = [(published_at(a), a) for a in self.corpus]
        dated.sort(key=lambda pair: (pair[0] is not None, pair[0] or datetime.min.replace(tzinfo=timezone.utc)), reverse=True)
        return [article for _, article in dated[:max(limit, 0)]]

    def get_popular_by_category(self, categories: Optional[list[str]] = None) -> dict[str, list[Article]]:
        """Top articles per category by trending score."""
        scores = self.trending_scores()
        result = {}
        for category in categories or FEATURED_CATEGORY_IDS:
            posts = [a for a in self.corpus if a.category == category]
            posts.sort(key=lambda a: scores[a.id], reverse=True)
            result[category] = posts[:POPULAR_PER_CATEGORY]
        return result

    def get_improved_related_posts(self, article: Article, limit: int = 3) -> list[Recommendation]:
        """Rank other articles by similarity to the given one."""
        scores = self.trending_scores()
        reference_tags = [tag.lower() for tag in article.tags]
        reference_words = article.title.lower().split(" ")

        recommendations = []
        for post in self.corpus:
            if post.id == article.id:
                continue

            score = 0.0
            reasons: list[str] = []

            if post.category == article.category:
                score += SAME_CATEGORY
                reasons.append("Same category")

            if post.difficulty == article.difficulty:
                score += SAME_DIFFICULTY
                reasons.append("Similar difficulty")

            common_tags = [
                tag for tag in post.tags
                if any(ref in tag.lower() or tag.lower() in ref for ref in reference_tags)
            ]
            if common_tags:
                score += len(common_tags) * PER_SHARED_TAG
                plural = "s" if len(common_tags) > 1 else ""
                reasons.append(f"{len(common_tags)} shared topic{plural}")

            if post.author.name == article.author.name:
                score += SAME_AUTHOR
                reasons.append("Same author")

            if article.has_code_examples and post.has_code_examples:
                score += BOTH_CODE_EXAMPLES
                reasons.append("Has code examples")

            if article.has_downloads and post.has_downloads:
                score += BOTH_DOWNLOADS
                reasons.append("Has downloads")

            post_words = post.title.lower().split(" ")
            title_overlap = sum(
                1 for word in reference_words
                if len(word) >= MIN_TITLE_WORD_LENGTH and word in post_words
            )
            if title_overlap:
                score += title_overlap * PER_TITLE_WORD
                reasons.append("Similar topics")

            score += scores.get(post.id, 0.0) * TRENDING_BOOST

            if score > 0:
                recommendations.append(
                    Recommendation(
                        article=post,
                        relevance_score=score,
                        reason=", ".join(reasons[:2]) or "Related content",
                    )
                )

        recommendations.sort(key=lambda r: r.relevance_score, reverse=True)
        return recommendations[:max(limit, 0)]

    def get_featured_collections(self) -> list[Collection]:
        """Curated collections; empty ones are left out."""
        collections = []
        for title, description, icon, predicate in FEATURED_COLLECTIONS:
            articles = [a for a in self.corpus if predicate(a)][:COLLECTION_SIZE]
            if articles:
                collections.append(
                    Collection(title=title, description=description, icon=icon, articles=articles)
                )
        return collections

    def get_content_discovery_data(self) -> dict:
        """Everything the discovery page renders, in one call."""
        return {
            "trendingPosts": self.get_trending_posts(),
            "recentlyUpdated": self.get_recently_updated(),
            "popularByCategory": self.get_popular_by_category(),
            "featuredCollections": self.get_featured_collections(),
        }
