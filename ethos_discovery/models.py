"""Data models for the content search & discovery engine."""

from typing import Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Difficulty = Literal["Beginner", "Intermediate", "Advanced"]
DifficultyFilter = Literal["all", "Beginner", "Intermediate", "Advanced"]
DateRange = Literal["all", "last-month", "last-3-months", "last-year"]
SortBy = Literal["recent", "title", "category"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (readTime, postId, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class Author(CamelModel):
    """Article author."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: str = ""


class Category(CamelModel):
    """Content category. The icon is an opaque UI reference."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: Optional[str] = None


class Article(CamelModel):
    """Corpus article, immutable at runtime."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    excerpt: str
    content: str = ""
    category: str
    tags: list[str] = Field(default_factory=list)
    author: Author
    difficulty: Difficulty
    date: str  # display string, e.g. "March 15, 2024"
    read_time: str = ""  # e.g. "5 min read"
    has_code_examples: bool = False
    has_downloads: bool = False
    path: str


class SearchFilters(CamelModel):
    """Structured search filters. None on the tri-state fields means unset."""

    category: str = "all"
    difficulty: DifficultyFilter = "all"
    has_code_examples: Optional[bool] = None
    has_downloads: Optional[bool] = None
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    date_range: DateRange = "all"


class SearchResult(CamelModel):
    """Search hit with relevance score and highlighted excerpt."""

    article: Article
    relevance_score: float
    matched_fields: list[str] = Field(default_factory=list)
    highlighted_excerpt: str


class SearchState(CamelModel):
    """Outcome of one search call."""

    query: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    results: list[SearchResult] = Field(default_factory=list)
    is_searching: bool = False
    total_results: int = 0
    search_time: float = 0.0  # milliseconds
    suggestions: list[str] = Field(default_factory=list)


class EngagementSignal(CamelModel):
    """Per-article engagement figures from the analytics source."""

    views: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    engagement_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("engagementRate", "engagement_rate", "engagement"),
    )


class TrendingArticle(Article):
    """Article extended with its trending metrics."""

    trending_score: float
    view_count: int = 0
    share_count: int = 0
    engagement_rate: float = 0.0


class Recommendation(CamelModel):
    """Related-content recommendation."""

    article: Article
    relevance_score: float
    reason: str


class Collection(CamelModel):
    """Curated thematic grouping of articles."""

    title: str
    description: str
    icon: str = ""
    articles: list[Article] = Field(default_factory=list)


class BookmarkRecord(CamelModel):
    """Persisted reference to a saved article."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    post_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    path: str = Field(min_length=1)
    category: str = ""
    difficulty: str = ""
    read_time: str = ""
    author: str = ""
    bookmarked_at: str = Field(min_length=1)  # ISO timestamp
    tags: list[str] = Field(default_factory=list)

    @field_validator("category", "difficulty", "read_time", "author", "tags", mode="before")
    @classmethod
    def _null_as_default(cls, value, info):
        if value is None:
            return [] if info.field_name == "tags" else ""
        return value


class BookmarkStats(CamelModel):
    """Derived counts over the bookmark set."""

    total_bookmarks: int
    category_counts: dict[str, int] = Field(default_factory=dict)
    difficulty_distribution: dict[str, int] = Field(default_factory=dict)
    recent_bookmarks: list[BookmarkRecord] = Field(default_factory=list)


class ReadingListSummary(CamelModel):
    """Reading-list aggregate shown next to the bookmark list."""

    total_articles: int
    total_read_time: str
    total_minutes: int
    categories: int
    last_bookmarked: Optional[str] = None
