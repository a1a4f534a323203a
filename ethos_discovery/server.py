"""MCP server exposing search, discovery and bookmarks."""

import json
import logging
from typing import Optional

from fastmcp import FastMCP

from .bookmarks import BookmarkStore
from .config import get_corpus_source, get_engagement_path, get_engagement_url, get_log_file, setup_logging
from .corpus import Corpus, load_corpus
from .discovery import DiscoveryEngine, HttpEngagementSource, format_view_count, load_engagement_table
from .models import DateRange, DifficultyFilter, SearchFilters
from .search import SearchEngine, SearchSession
from .storage import get_storage

logger = logging.getLogger(__name__)
tool_logger = logging.getLogger("ethos_discovery.tools")


def log_tool(msg: str) -> None:
    """Record a tool call in the tool log."""
    tool_logger.info(msg)


def _size(result) -> int:
    return len(json.dumps(result, ensure_ascii=False))


mcp = FastMCP(name="ethos-discovery")

# Lazily created per server process
_corpus: Optional[Corpus] = None
_session: Optional[SearchSession] = None
_discovery: Optional[DiscoveryEngine] = None
_bookmarks: Optional[BookmarkStore] = None


def get_corpus() -> Corpus:
    """Get or load the corpus."""
    global _corpus
    if _corpus is None:
        _corpus = load_corpus(get_corpus_source())
    return _corpus


def get_session() -> SearchSession:
    """Get or create the search session."""
    global _session
    if _session is None:
        _session = SearchSession(SearchEngine(get_corpus()))
    return _session


def get_discovery() -> DiscoveryEngine:
    """Get or create the discovery engine."""
    global _discovery
    if _discovery is None:
        url = get_engagement_url()
        engagement = HttpEngagementSource(url) if url else load_engagement_table(get_engagement_path())
        _discovery = DiscoveryEngine(get_corpus(), engagement)
    return _discovery


def get_bookmarks() -> BookmarkStore:
    """Get or create the bookmark store."""
    global _bookmarks
    if _bookmarks is None:
        _bookmarks = BookmarkStore(get_storage())
    return _bookmarks


def _article_summary(article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "path": article.path,
        "category": article.category,
        "difficulty": article.difficulty,
        "readTime": article.read_time,
        "author": article.author.name,
    }


def build_filters(
    category: str = "all",
    difficulty: DifficultyFilter = "all",
    has_code_examples: Optional[bool] = None,
    has_downloads: Optional[bool] = None,
    author: str = "",
    tags: Optional[list[str]] = None,
    date_range: DateRange = "all",
) -> SearchFilters:
    """Search filters from tool arguments."""
    return SearchFilters(
        category=category,
        difficulty=difficulty,
        has_code_examples=has_code_examples,
        has_downloads=has_downloads,
        author=author,
        tags=tags or [],
        date_range=date_range,
    )


@mcp.tool
def search(
    query: str,
    category: str = "all",
    difficulty: DifficultyFilter = "all",
    has_code_examples: Optional[bool] = None,
    has_downloads: Optional[bool] = None,
    author: str = "",
    tags: Optional[list[str]] = None,
    date_range: DateRange = "all",
    limit: int = 10,
) -> dict:
    """Search articles by relevance.

    Args:
        query: Free-text query (empty returns every article passing the filters)
        category: Category id or "all"
        difficulty: "Beginner", "Intermediate", "Advanced" or "all"
        has_code_examples: Only articles with (True) / without (False) code examples
        has_downloads: Only articles with (True) / without (False) downloads
        author: Case-insensitive author name substring
        tags: Tags to match (any of them)
        date_range: "all", "last-month", "last-3-months" or "last-year" (accepted, not yet enforced)
        limit: Maximum number of results returned (default: 10)

    Returns:
        Total count, search time, suggestions and the top results
    """
    filters = build_filters(category, difficulty, has_code_examples, has_downloads, author, tags, date_range)
    state = get_session().search(query, filters)

    result = {
        "query": state.query,
        "totalResults": state.total_results,
        "searchTime": round(state.search_time, 3),
        "suggestions": state.suggestions,
        "results": [
            {
                **_article_summary(r.article),
                "score": r.relevance_score,
                "matchedFields": r.matched_fields,
                "excerpt": r.highlighted_excerpt,
            }
            for r in state.results[:limit]
        ],
    }
    log_tool(f"search: query='{query[:50]}', {state.total_results} hits, {_size(result)} chars")
    return result


@mcp.tool
def suggest(query: str) -> list[str]:
    """Autocomplete suggestions for a partial query (at most 5)."""
    result = get_session().engine.suggestions(query)
    log_tool(f"suggest: query='{query[:50]}', {len(result)} items")
    return result


@mcp.tool
def popular_searches() -> list[str]:
    """Popular search phrases."""
    return get_session().popular_searches()


@mcp.tool
def list_categories() -> list[dict]:
    """List all categories with article counts."""
    corpus = get_corpus()
    counts: dict[str, int] = {}
    for article in corpus:
        counts[article.category] = counts.get(article.category, 0) + 1

    result = [{"id": c.id, "name": c.name, "count": counts.get(c.id, 0)} for c in corpus.categories]
    log_tool(f"list_categories: {len(result)} items, {_size(result)} chars")
    return result


@mcp.tool
def get_article(article_id: str) -> Optional[dict]:
    """Get article metadata and excerpt.

    Args:
        article_id: The article ID

    Returns:
        Article metadata, or None if the id is unknown
    """
    article = get_corpus().get_article(article_id)
    if not article:
        return None

    result = {
        **_article_summary(article),
        "excerpt": article.excerpt,
        "tags": article.tags,
        "date": article.date,
        "hasCodeExamples": article.has_code_examples,
        "hasDownloads": article.has_downloads,
        "bookmarked": get_bookmarks().is_bookmarked(article.id),
    }
    log_tool(f"get_article: id={article_id}, {_size(result)} chars")
    return result


@mcp.tool
def trending(limit: int = 6) -> list[dict]:
    """Trending articles by views, shares, engagement and recency."""
    posts = get_discovery().get_trending_posts(limit)
    result = [
        {
            **_article_summary(p),
            "trendingScore": round(p.trending_score, 4),
            "views": format_view_count(p.view_count),
            "shares": p.share_count,
            "engagementRate": p.engagement_rate,
        }
        for p in posts
    ]
    log_tool(f"trending: {len(result)} items, {_size(result)} chars")
    return result


@mcp.tool
def related(article_id: str, limit: int = 3) -> Optional[list[dict]]:
    """Articles related to the given one, with the reason for each.

    Args:
        article_id: Reference article ID
        limit: Maximum number of recommendations (default: 3)

    Returns:
        Recommendations, or None if the id is unknown
    """
    article = get_corpus().get_article(article_id)
    if not article:
        return None

    recommendations = get_discovery().get_improved_related_posts(article, limit)
    result = [
        {**_article_summary(r.article), "score": round(r.relevance_score, 2), "reason": r.reason}
        for r in recommendations
    ]
    log_tool(f"related: id={article_id}, {len(result)} items")
    return result


@mcp.tool
def collections() -> list[dict]:
    """Curated collections of articles."""
    result = [
        {
            "title": c.title,
            "description": c.description,
            "icon": c.icon,
            "articles": [_article_summary(a) for a in c.articles],
        }
        for c in get_discovery().get_featured_collections()
    ]
    log_tool(f"collections: {len(result)} items, {_size(result)} chars")
    return result


@mcp.tool
def recently_updated(limit: int = 4) -> list[dict]:
    """Most recently published articles."""
    return [
        {**_article_summary(a), "date": a.date}
        for a in get_discovery().get_recently_updated(limit)
    ]


@mcp.tool
def discovery_overview() -> dict:
    """Trending, recent, popular-by-category and curated content in one call."""
    data = get_discovery().get_content_discovery_data()
    result = {
        "trendingPosts": [_article_summary(a) for a in data["trendingPosts"]],
        "recentlyUpdated": [_article_summary(a) for a in data["recentlyUpdated"]],
        "popularByCategory": {
            category: [_article_summary(a) for a in posts]
            for category, posts in data["popularByCategory"].items()
        },
        "featuredCollections": [
            {"title": c.title, "articles": [a.id for a in c.articles]}
            for c in data["featuredCollections"]
        ],
    }
    log_tool(f"discovery_overview: {_size(result)} chars")
    return result


@mcp.tool
def add_bookmark(article_id: str) -> bool:
    """Bookmark an article. False if unknown or already bookmarked."""
    article = get_corpus().get_article(article_id)
    if not article:
        return False
    added = get_bookmarks().add_bookmark(article)
    log_tool(f"add_bookmark: id={article_id}, added={added}")
    return added


@mcp.tool
def remove_bookmark(article_id: str) -> bool:
    """Remove a bookmark. False if it was not bookmarked."""
    removed = get_bookmarks().remove_bookmark(article_id)
    log_tool(f"remove_bookmark: id={article_id}, removed={removed}")
    return removed


@mcp.tool
def toggle_bookmark(article_id: str) -> bool:
    """Toggle the bookmark on an article. False if the id is unknown."""
    article = get_corpus().get_article(article_id)
    if not article:
        return False
    return get_bookmarks().toggle_bookmark(article)


@mcp.tool
def list_bookmarks(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    sort_by: str = "recent",
) -> list[dict]:
    """List bookmarks.

    Args:
        category: Filter by category id (optional)
        difficulty: Filter by difficulty (optional)
        sort_by: "recent", "title" or "category" (default: recent)
    """
    if sort_by not in ("recent", "title", "category"):
        sort_by = "recent"
    bookmarks = get_bookmarks().get_filtered_bookmarks(category, difficulty, sort_by)
    result = [b.to_dict() for b in bookmarks]
    log_tool(f"list_bookmarks: {len(result)} items, {_size(result)} chars")
    return result


@mcp.tool
def search_bookmarks(query: str) -> list[dict]:
    """Search bookmarks by title, author, tag or category."""
    return [b.to_dict() for b in get_bookmarks().search_bookmarks(query)]


@mcp.tool
def bookmark_stats() -> dict:
    """Bookmark counts per category and difficulty, plus the latest five."""
    return get_bookmarks().get_bookmark_stats().to_dict()


@mcp.tool
def reading_list_summary() -> dict:
    """Total articles, estimated reading time and category spread."""
    return get_bookmarks().get_reading_list_summary().to_dict()


@mcp.tool
def export_bookmarks() -> str:
    """Export all bookmarks as JSON."""
    return get_bookmarks().export_bookmarks()


@mcp.tool
def import_bookmarks(json_data: str) -> bool:
    """Merge bookmarks from exported JSON. False if the JSON is invalid."""
    ok = get_bookmarks().import_bookmarks(json_data)
    log_tool(f"import_bookmarks: ok={ok}, {len(json_data)} chars")
    return ok


@mcp.tool
def clear_bookmarks() -> bool:
    """Delete every bookmark."""
    get_bookmarks().clear_all_bookmarks()
    log_tool("clear_bookmarks")
    return True


def main():
    """Run the MCP server."""
    setup_logging()
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s", "%Y-%m-%d %H:%M:%S"))
    tool_logger.addHandler(handler)

    log_tool("=== MCP Server Started ===")
    mcp.run()


if __name__ == "__main__":
    main()
