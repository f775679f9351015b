# shell_autocompleter/models/llm.py
"""
Language-model strategy (heavy): short completions from a local model via `llama-cli`.

Each predict samples the generator up to MAX_ATTEMPTS times with consecutive seeds,
keeps unique non-empty answers and stops at MAX_SUGGESTIONS.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from shell_autocompleter.core.errors import BackendUnavailableError
from shell_autocompleter.core.lazy import LazyBackend
from shell_autocompleter.core.protocols import GeneratorProtocol
from shell_autocompleter.core.suggestion import Suggestion

logger = logging.getLogger(__name__)

SOURCE = "llm"
LLAMA_CLI_BIN_ENV = "LLAMA_CLI_BIN"
MIN_INPUT_LEN = 2
MAX_ATTEMPTS = 10
MAX_SUGGESTIONS = 5

FEW_SHOT_PROMPT = "git s→status\ndocker p→ps\nnpm i→install\n{input}→"

_METADATA_PREFIXES = ("llama_", "sampling", "Log")
_METADATA_MARKERS = ("ms / ", "tok/s")


@dataclass
class LlmConfig:
    model_path: str = ""
    temperature: float = 0.05
    max_tokens: int = 3
    seed: int = 299792458


def build_prompt(text: str) -> str:
    return FEW_SHOT_PROMPT.format(input=text)


def parse_llama_output(text: str) -> str:
    """First line that looks like generated text, skipping loader/sampler/timing noise."""
    lines = [line.strip() for line in text.splitlines()]
    for line in lines:
        if not line:
            continue
        if line.startswith(_METADATA_PREFIXES) or any(m in line for m in _METADATA_MARKERS):
            continue
        return line
    return next((line for line in lines if line), "")


class LlamaCliGenerator:
    """One `llama-cli` process per generate() call."""

    def __init__(self, config: LlmConfig, binary: Optional[str] = None):
        self.config = config
        self.binary = binary or os.environ.get(LLAMA_CLI_BIN_ENV) or "llama-cli"

    def command(self, prompt: str, seed: int) -> List[str]:
        c = self.config
        return [
            self.binary,
            "-m", c.model_path,
            "-p", prompt,
            "-n", str(c.max_tokens),
            "--temp", str(c.temperature),
            "--top-k", "1",
            "--seed", str(seed),
            "--no-display-prompt",
            "--reverse-prompt", "\n",
            "-no-cnv",
        ]

    def check_available(self) -> None:
        """Raise BackendUnavailableError unless the binary exists and a model is set."""
        if not self.config.model_path:
            raise BackendUnavailableError("no language model path configured")
        if shutil.which(self.binary) is None and not Path(self.binary).is_file():
            raise BackendUnavailableError(f"{self.binary} not found")

    def generate(self, prompt: str, seed: int) -> str:
        try:
            proc = subprocess.run(
                self.command(prompt, seed),
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise BackendUnavailableError(f"running {self.binary}: {e}") from e
        if proc.returncode != 0:
            raise BackendUnavailableError(f"{self.binary} exited with status {proc.returncode}")
        return parse_llama_output(proc.stdout.decode("utf-8", errors="replace"))


class LlmModel:
    """Heavy strategy; every generated completion scores 1.0."""

    def __init__(self, backend: LazyBackend[GeneratorProtocol],
                 seed: int = LlmConfig.seed,
                 weight: float = 0.4):
        self.backend = backend
        self.seed = seed
        self._weight = float(weight)

    @classmethod
    def from_config(cls, config: LlmConfig) -> "LlmModel":
        def factory() -> GeneratorProtocol:
            gen = LlamaCliGenerator(config)
            gen.check_available()
            logger.info("llama-cli found, language model suggestions enabled (%s)", config.model_path)
            return gen
        return cls(LazyBackend("llm", factory), seed=config.seed)

    def predict(self, text: str) -> List[Suggestion]:
        if not text or len(text.strip()) < MIN_INPUT_LEN:
            return []
        gen = self.backend.get()
        if gen is None:
            return []

        prompt = build_prompt(text)
        out: List[Suggestion] = []
        seen = set()
        for i in range(MAX_ATTEMPTS):
            if len(out) >= MAX_SUGGESTIONS:
                break
            try:
                answer = gen.generate(prompt, self.seed + i).strip()
            except BackendUnavailableError as e:
                logger.debug("generation attempt %d failed: %s", i, e)
                continue
            if not answer or answer in seen:
                continue
            seen.add(answer)
            out.append(Suggestion.with_source(answer, 1.0, SOURCE))
        return out

    def weight(self) -> float:
        return self._weight

    def __repr__(self):
        return f"LlmModel(weight={self._weight}, backend={self.backend!r})"
