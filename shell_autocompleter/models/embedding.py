# shell_autocompleter/models/embedding.py
"""
Embedding-similarity strategy (heavy).

 - LlamaEmbeddingClient: runs the external `llama-embedding` binary for one vector
 - EmbeddingStore: float32 vectors in the `embeddings` table, cosine search with numpy
 - EmbeddingModel: embed the input, return stored history lines above a similarity
   threshold; `learn()` fills the store from history

The client is created lazily on the first predict (one attempt per process), so a
missing binary or model costs one warning and nothing else.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from shell_autocompleter.core.errors import BackendUnavailableError, MissingTableError
from shell_autocompleter.core.lazy import LazyBackend
from shell_autocompleter.core.protocols import EmbedderProtocol, StoreProtocol
from shell_autocompleter.core.suggestion import Suggestion

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "history"
HEALTHCHECK_PROMPT = "shell-autocompleter-healthcheck"
MAX_LEARN_INSERTS = 100
SEARCH_TOP_K = 10
SEARCH_THRESHOLD = 0.5
LLAMA_EMBED_BIN_ENV = "LLAMA_EMBED_BIN"
LLAMA_EMBED_MODEL_ENV = "LLAMA_EMBED_MODEL"


def parse_embedding_output(raw: str) -> List[float]:
    """
    Pull the numbers out of llama-embedding stdout.
    Tokens are whitespace separated, optionally wrapped in [ ] or followed by commas;
    anything non-numeric (labels, indices like `0:`) is ignored.
    """
    values: List[float] = []
    for token in raw.split():
        cleaned = token.strip("[],")
        if not cleaned:
            continue
        try:
            values.append(float(cleaned))
        except ValueError:
            continue
    if not values:
        raise BackendUnavailableError("llama-embedding returned no embedding values")
    return values


class LlamaEmbeddingClient:
    """`llama-embedding -m <model> --log-disable -p <text>`"""

    def __init__(self, binary: Union[str, Path], model_path: Union[str, Path]):
        self.binary = str(binary)
        self.model_path = str(model_path)

    @classmethod
    def from_env_or(cls, model_path: Optional[Union[str, Path]] = None) -> "LlamaEmbeddingClient":
        binary = os.environ.get(LLAMA_EMBED_BIN_ENV) or "llama-embedding"
        path = os.environ.get(LLAMA_EMBED_MODEL_ENV) or model_path
        if not path:
            raise BackendUnavailableError(
                f"{LLAMA_EMBED_MODEL_ENV} is not set and no embedding model path was given")
        return cls(binary, path)

    def embed(self, text: str) -> List[float]:
        try:
            proc = subprocess.run(
                [self.binary, "-m", self.model_path, "--log-disable", "-p", text],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise BackendUnavailableError(f"running {self.binary}: {e}") from e
        if proc.returncode != 0:
            raise BackendUnavailableError(f"{self.binary} exited with status {proc.returncode}")
        return parse_embedding_output(proc.stdout.decode("utf-8", errors="replace"))

    def health_check(self) -> None:
        self.embed(HEALTHCHECK_PROMPT)


# Vector storage -----------------------------------------------------------------

def to_blob(vec: Sequence[float]) -> bytes:
    return np.asarray(vec, dtype=np.float32).tobytes()


def from_blob(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


class EmbeddingStore:
    """Stored vectors keyed by (source, text)."""

    def __init__(self, store: StoreProtocol):
        self.store = store

    def exists(self, source: str, text: str) -> bool:
        rows = self.store.query(
            "SELECT COUNT(1) FROM embeddings WHERE source = ? AND text = ?", [source, text])
        return bool(rows and rows[0][0])

    def save(self, source: str, text: str, vec: Sequence[float]) -> None:
        self.store.execute(
            "INSERT INTO embeddings (source, text, emb) VALUES (?, ?, ?)",
            [source, text, to_blob(vec)])

    def search_similar(self, vec: Sequence[float], source: str,
                       top_k: int = SEARCH_TOP_K,
                       threshold: float = SEARCH_THRESHOLD) -> List[Suggestion]:
        """Cosine similarity against every stored vector of `source`; best `top_k` at or above `threshold`."""
        rows = self.store.query("SELECT text, emb FROM embeddings WHERE source = ?", [source])
        q = np.asarray(vec, dtype=np.float32)
        q_norm = float(np.linalg.norm(q))
        if not rows or q_norm == 0.0:
            return []

        texts: List[str] = []
        vectors: List[np.ndarray] = []
        for text, blob in rows:
            v = from_blob(blob)
            if v.shape != q.shape:
                continue
            texts.append(text)
            vectors.append(v)
        if not vectors:
            return []

        mat = np.vstack(vectors)
        norms = np.linalg.norm(mat, axis=1)
        norms[norms == 0.0] = np.inf
        sims = (mat @ q) / (norms * q_norm)

        order = np.argsort(-sims, kind="stable")[:top_k]
        return [Suggestion.with_source(texts[i], float(sims[i]), source)
                for i in order if sims[i] >= threshold]


class EmbeddingModel:
    """Heavy strategy: semantic neighbours of the input among learned history lines."""

    def __init__(self, vectors: EmbeddingStore,
                 backend: LazyBackend[EmbedderProtocol],
                 weight: float = 0.6):
        self.vectors = vectors
        self.backend = backend
        self._weight = float(weight)

    @classmethod
    def from_env(cls, store: StoreProtocol,
                 model_path: Optional[Union[str, Path]] = None) -> "EmbeddingModel":
        def factory() -> EmbedderProtocol:
            client = LlamaEmbeddingClient.from_env_or(model_path)
            client.health_check()
            return client
        return cls(EmbeddingStore(store), LazyBackend("embedding", factory))

    def predict(self, text: str) -> List[Suggestion]:
        if not text or not text.strip():
            return []
        client = self.backend.get()
        if client is None:
            return []
        try:
            vec = client.embed(text)
            found = self.vectors.search_similar(vec, DEFAULT_SOURCE)
        except BackendUnavailableError as e:
            logger.debug("embedding predict failed: %s", e)
            return []
        except MissingTableError:
            return []
        except sqlite3.Error as e:
            logger.debug("embedding search failed: %s", e)
            return []
        return [s.rescored(s.score * self._weight) for s in found]

    def learn(self, entries: Iterable[str]) -> int:
        """Embed and store up to MAX_LEARN_INSERTS history lines that are not stored yet."""
        client = self.backend.get()
        if client is None:
            return 0
        inserted = 0
        for entry in entries:
            if inserted >= MAX_LEARN_INSERTS:
                break
            candidate = entry.strip()
            if not candidate or self.vectors.exists(DEFAULT_SOURCE, candidate):
                continue
            try:
                vec = client.embed(candidate)
            except BackendUnavailableError as e:
                logger.debug("embedding request failed: %s", e)
                continue
            try:
                self.vectors.save(DEFAULT_SOURCE, candidate, vec)
            except sqlite3.Error as e:
                logger.debug("failed to save embedding: %s", e)
                continue
            inserted += 1
        logger.info("learned %d embeddings", inserted)
        return inserted

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"EmbeddingModel(weight={self._weight}, backend={self.backend!r})"
