"""Prompt templates stored as .prompt.md files next to this module."""

from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Read a prompt by name, e.g. load_prompt("receipt_extraction")."""
    return (PROMPTS_DIR / f"{name}.prompt.md").read_text(encoding="utf-8").strip()


RECEIPT_EXTRACTION_PROMPT = load_prompt("receipt_extraction")

__all__ = ["load_prompt", "RECEIPT_EXTRACTION_PROMPT", "PROMPTS_DIR"]
