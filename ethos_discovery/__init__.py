"""Content search & discovery engine for the prompt marketplace blog."""

from .bookmarks import BookmarkStore
from .corpus import Corpus, CorpusError, load_corpus
from .discovery import DiscoveryEngine, HttpEngagementSource, StaticEngagementSource
from .models import Article, SearchFilters
from .search import SearchEngine, SearchSession

__version__ = "0.1.0"
