# tests/test_heavy_models.py
# embedding + language-model strategies with stubbed backends, and the lazy backend cell

import subprocess
from unittest import mock

import numpy as np
import pytest

from shell_autocompleter.core.errors import BackendUnavailableError
from shell_autocompleter.core.lazy import LazyBackend
from shell_autocompleter.models.embedding import (
    MAX_LEARN_INSERTS,
    EmbeddingModel,
    EmbeddingStore,
    LlamaEmbeddingClient,
    from_blob,
    parse_embedding_output,
    to_blob,
)
from shell_autocompleter.models.llm import (
    LlamaCliGenerator,
    LlmConfig,
    LlmModel,
    build_prompt,
    parse_llama_output,
)

VECTORS = {
    "git status": [1.0, 0.0, 0.0],
    "git stash": [0.9, 0.1, 0.0],
    "ls -la": [0.0, 1.0, 0.0],
}


class StubEmbedder:
    def __init__(self, vectors=None, fail=False):
        self.vectors = vectors if vectors is not None else VECTORS
        self.fail = fail
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise BackendUnavailableError("no embedder")
        return self.vectors.get(text, [1.0, 0.0, 0.0])


class StubGenerator:
    def __init__(self, answers):
        self.answers = list(answers)
        self.seeds = []

    def generate(self, prompt, seed):
        self.seeds.append(seed)
        answer = self.answers[len(self.seeds) - 1] if len(self.seeds) <= len(self.answers) else ""
        if isinstance(answer, Exception):
            raise answer
        return answer


# lazy backend -------------------------------------------------------------------

def test_lazy_backend_initialises_once():
    factory = mock.Mock(return_value="client")
    cell = LazyBackend("x", factory)
    assert cell.get() == "client"
    assert cell.get() == "client"
    factory.assert_called_once()
    assert not cell.failed


def test_lazy_backend_memoises_failure(caplog):
    factory = mock.Mock(side_effect=BackendUnavailableError("missing"))
    cell = LazyBackend("llm", factory)
    with caplog.at_level("WARNING", logger="shell_autocompleter"):
        assert cell.get() is None
        assert cell.get() is None
    factory.assert_called_once()
    assert cell.failed and cell.attempted
    assert sum("backend unavailable" in r.message for r in caplog.records) == 1


# embedding ------------------------------------------------------------------------

def test_parse_embedding_output():
    raw = "embedding 0: [0.25, -1.5,\n 3e-2 ]\n"
    assert parse_embedding_output(raw) == pytest.approx([0.25, -1.5, 0.03])
    with pytest.raises(BackendUnavailableError):
        parse_embedding_output("no numbers here")


def test_blob_round_trip_is_float32():
    v = from_blob(to_blob([0.5, 1.5]))
    assert v.dtype == np.float32
    assert v.tolist() == [0.5, 1.5]


def test_embedding_store_search(store):
    es = EmbeddingStore(store)
    for text, vec in VECTORS.items():
        es.save("history", text, vec)
    es.save("history", "bad dims", [1.0, 0.0])
    assert es.exists("history", "git status")
    assert not es.exists("other", "git status")

    found = es.search_similar([1.0, 0.0, 0.0], "history", top_k=10, threshold=0.5)
    assert [s.text for s in found] == ["git status", "git stash"]
    assert found[0].score == pytest.approx(1.0)
    assert es.search_similar([1.0, 0.0, 0.0], "history", top_k=1)[0].text == "git status"
    assert es.search_similar([0.0, 0.0, 0.0], "history") == []


def test_embedding_model_scales_by_weight(store):
    es = EmbeddingStore(store)
    for text, vec in VECTORS.items():
        es.save("history", text, vec)
    m = EmbeddingModel(es, LazyBackend("embedding", StubEmbedder))
    out = m.predict("git status")
    assert out[0].text == "git status"
    assert out[0].score == pytest.approx(0.6)
    assert out[0].source == "history"
    assert m.weight() == 0.6
    assert m.predict("  ") == []


def test_embedding_model_unavailable_backend_is_empty(store):
    factory = mock.Mock(side_effect=BackendUnavailableError("LLAMA_EMBED_MODEL is not set"))
    m = EmbeddingModel(EmbeddingStore(store), LazyBackend("embedding", factory))
    assert m.predict("git") == []
    assert m.predict("git st") == []
    factory.assert_called_once()


def test_embedding_model_embed_failure_is_empty(store):
    m = EmbeddingModel(EmbeddingStore(store), LazyBackend("embedding", lambda: StubEmbedder(fail=True)))
    assert m.predict("git") == []


def test_learn_skips_known_and_caps_inserts(store):
    embedder = StubEmbedder()
    m = EmbeddingModel(EmbeddingStore(store), LazyBackend("embedding", lambda: embedder))
    assert m.learn(["git status", "  ", "git status"]) == 1
    lines = [f"cmd {i}" for i in range(MAX_LEARN_INSERTS + 20)]
    assert m.learn(lines) == MAX_LEARN_INSERTS
    assert store.query("SELECT COUNT(*) FROM embeddings") == [(MAX_LEARN_INSERTS + 1,)]


def test_client_from_env(monkeypatch):
    monkeypatch.setenv("LLAMA_EMBED_BIN", "/opt/llama-embedding")
    monkeypatch.setenv("LLAMA_EMBED_MODEL", "/models/e.gguf")
    c = LlamaEmbeddingClient.from_env_or(None)
    assert (c.binary, c.model_path) == ("/opt/llama-embedding", "/models/e.gguf")

    monkeypatch.delenv("LLAMA_EMBED_MODEL")
    with pytest.raises(BackendUnavailableError):
        LlamaEmbeddingClient.from_env_or(None)


def test_client_embed_runs_binary():
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"[0.1, 0.2]\n")
    with mock.patch("subprocess.run", return_value=done) as run:
        vec = LlamaEmbeddingClient("llama-embedding", "m.gguf").embed("ls")
    assert vec == pytest.approx([0.1, 0.2])
    assert run.call_args[0][0] == ["llama-embedding", "-m", "m.gguf", "--log-disable", "-p", "ls"]


def test_client_missing_binary_is_unavailable():
    with pytest.raises(BackendUnavailableError):
        LlamaEmbeddingClient("/nonexistent/llama-embedding", "m.gguf").embed("ls")


# language model -------------------------------------------------------------------

def test_parse_llama_output():
    assert parse_llama_output("status\n") == "status"
    assert parse_llama_output("llama_model_loader: loaded meta data\nstatus\n") == "status"
    assert parse_llama_output("sampling: temp\n  push  \n12 ms / 3 tok/s\n") == "push"
    assert parse_llama_output("") == ""
    assert parse_llama_output("Log start\n") == "Log start"


def test_prompt_is_few_shot():
    assert build_prompt("git s").endswith("npm i→install\ngit s→")


def test_llm_dedupes_and_caps_at_five():
    gen = StubGenerator(["status", "status", " stash ", "", "switch",
                         BackendUnavailableError("boom"), "show", "shortlog", "stage"])
    m = LlmModel(LazyBackend("llm", lambda: gen), seed=10)
    out = m.predict("git s")
    assert [s.text for s in out] == ["status", "stash", "switch", "show", "shortlog"]
    assert all(s.score == 1.0 and s.source == "llm" for s in out)
    assert gen.seeds == list(range(10, 18))


def test_llm_stops_after_ten_attempts():
    gen = StubGenerator(["same"] * 20)
    out = LlmModel(LazyBackend("llm", lambda: gen)).predict("git")
    assert [s.text for s in out] == ["same"]
    assert len(gen.seeds) == 10


def test_llm_short_input_skips_backend():
    factory = mock.Mock()
    m = LlmModel(LazyBackend("llm", factory))
    assert m.predict("g") == []
    assert m.predict(" g ") == []
    factory.assert_not_called()
    assert m.weight() == 0.4


def test_llm_unavailable_cli_is_empty(monkeypatch):
    monkeypatch.delenv("LLAMA_CLI_BIN", raising=False)
    with mock.patch("shutil.which", return_value=None):
        m = LlmModel.from_config(LlmConfig(model_path="m.gguf"))
        assert m.predict("git s") == []
        assert m.backend.failed


def test_generator_command_flags():
    gen = LlamaCliGenerator(LlmConfig(model_path="m.gguf"), binary="llama-cli")
    cmd = gen.command("p", 7)
    assert cmd[:5] == ["llama-cli", "-m", "m.gguf", "-p", "p"]
    assert cmd[cmd.index("--seed") + 1] == "7"
    assert cmd[cmd.index("-n") + 1] == "3"
    assert cmd[-1] == "-no-cnv"
    with pytest.raises(BackendUnavailableError):
        LlamaCliGenerator(LlmConfig()).check_available()
