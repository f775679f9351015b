# shell_autocompleter/models/__init__.py
# prediction strategies: light ones query the store or the corpus, heavy ones call external backends

from .fuzzy_history import FuzzyHistoryModel
from .prefix import PrefixModel
from .freq import FreqModel
from .alias import AliasModel, SqlAliasStore
from .embedding import EmbeddingModel, EmbeddingStore, LlamaEmbeddingClient
from .llm import LlamaCliGenerator, LlmConfig, LlmModel

__all__ = [
    "FuzzyHistoryModel",
    "PrefixModel",
    "FreqModel",
    "AliasModel",
    "SqlAliasStore",
    "EmbeddingModel",
    "EmbeddingStore",
    "LlamaEmbeddingClient",
    "LlamaCliGenerator",
    "LlmConfig",
    "LlmModel",
]
