"""Versioned system prompts stored alongside the package."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from schemalens.llm.client import LLMClientError

ENTITY_ENRICHMENT_PROMPT_VERSION = "enrichment.v1"
_PROMPT_FILES: dict[str, Path] = {
    "enrichment.v1": Path(__file__).resolve().parent / "prompts" / "entity_enrichment_v1.txt",
}


@lru_cache(maxsize=8)
def get_system_prompt(version: str = ENTITY_ENRICHMENT_PROMPT_VERSION) -> str:
    prompt_file = _PROMPT_FILES.get(version)
    if prompt_file is None:
        raise LLMClientError(f"Prompt version is not registered: {version}")
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise LLMClientError(f"Failed to load prompt file: {prompt_file}") from exc
    if not prompt_text:
        raise LLMClientError(f"Prompt file is empty: {prompt_file}")
    return prompt_text
