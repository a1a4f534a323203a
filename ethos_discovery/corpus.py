"""In-memory article corpus and its loader."""

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import httpx
from pydantic import ValidationError

from .models import Article, Category

logger = logging.getLogger(__name__)


class CorpusError(ValueError):
    """Raised when corpus data violates the article/category contract."""


class Corpus:
    """Fixed, ordered collection of articles and categories."""

    def __init__(self, articles: Iterable[Article], categories: Iterable[Category] = ()):
        self.articles: tuple[Article, ...] = tuple(articles)
        self.categories: tuple[Category, ...] = tuple(categories)

        self._articles_by_id: dict[str, Article] = {}
        for article in self.articles:
            if article.id in self._articles_by_id:
                raise CorpusError(f"Duplicate article id: {article.id}")
            self._articles_by_id[article.id] = article

        self._categories_by_id = {c.id: c for c in self.categories}
        if self.categories:
            for article in self.articles:
                if article.category not in self._categories_by_id:
                    raise CorpusError(
                        f"Article {article.id} references unknown category: {article.category}"
                    )

    def __len__(self) -> int:
        return len(self.articles)

    def __iter__(self) -> Iterator[Article]:
        return iter(self.articles)

    def get_article(self, article_id: str) -> Optional[Article]:
        """Get article by ID."""
        return self._articles_by_id.get(article_id)

    def get_category(self, category_id: str) -> Optional[Category]:
        """Get category by ID."""
        return self._categories_by_id.get(category_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Corpus":
        """Build a corpus from {"categories": [...], "articles": [...]}."""
        if not isinstance(data, dict):
            raise CorpusError("Corpus document must be a JSON object")

        try:
            articles = [Article.model_validate(item) for item in data.get("articles", [])]
            if "categories" in data:
                categories = [Category.model_validate(item) for item in data["categories"]]
            else:
                # No category list supplied: derive one from the articles
                seen: dict[str, Category] = {}
                for article in articles:
                    seen.setdefault(
                        article.category,
                        Category(id=article.category, name=article.category.replace("-", " ").title()),
                    )
                categories = list(seen.values())
        except ValidationError as e:
            raise CorpusError(f"Invalid corpus record: {e}") from e

        return cls(articles, categories)


def load_corpus(source: Union[str, Path]) -> Corpus:
    """Load the corpus from a JSON file or an http(s) URL."""
    source_str = str(source)
    if source_str.startswith(("http://", "https://")):
        response = httpx.get(source_str, follow_redirects=True, timeout=30.0)
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise CorpusError(f"Corpus at {source_str} is not valid JSON") from e
    else:
        path = Path(source_str)
        if not path.exists():
            raise FileNotFoundError(f"Corpus file not found: {source_str}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise CorpusError(f"Corpus file {source_str} is not valid JSON") from e

    corpus = Corpus.from_dict(data)
    logger.info(
        "Loaded corpus from %s: %d articles, %d categories",
        source_str, len(corpus.articles), len(corpus.categories),
    )
    return corpus
