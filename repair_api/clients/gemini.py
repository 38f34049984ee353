"""Client wrapper for synthesizing research answers with Google Gemini models."""

from __future__ import annotations

import asyncio
import json
import logging
from textwrap import dedent
from typing import Any, Callable, Iterable

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from repair_api.core.config import GeminiSettings


_FALLBACKS: dict[str, tuple[str, ...]] = {
    "quick": ("gemini-1.5-flash", "gemini-pro"),
    "deliberate": ("gemini-1.5-pro", "gemini-1.5-flash"),
}

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request."""


class GeminiClient:
    """Turn a research instruction plus search results into a written answer."""

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    def model_for(self, profile: str) -> str:
        """Resolve a model profile (``quick`` or ``deliberate``) to a model name."""
        if profile == "deliberate":
            return self._settings.deliberate_model_name
        return self._settings.quick_model_name

    async def research(
        self,
        *,
        instruction: str,
        query: str,
        profile: str = "quick",
        search_results: list[dict[str, Any]] | None = None,
        max_output_tokens: int = 1024,
    ) -> tuple[str, str]:
        """Synthesize an answer; returns ``(model_name, text)``."""

        content = _build_research_prompt(
            instruction=instruction,
            query=query,
            search_results=search_results or [],
        )

        def _invoke() -> tuple[str, str]:
            model_name, response = self._invoke_with_models(
                models=self._collect_candidates(
                    self.model_for(profile), _FALLBACKS.get(profile, ())
                ),
                error_prefix="Gemini research generate_content failed",
                call=lambda model: model.generate_content(
                    content,
                    generation_config={
                        "max_output_tokens": max_output_tokens,
                        "temperature": 0.2,
                    },
                ),
            )
            try:
                text = response.text or ""
            except ValueError as exc:
                # .text raises when the candidate was blocked or has no parts.
                raise GeminiModelError(f"Gemini returned no text: {exc}") from exc
            return model_name, text

        return await asyncio.to_thread(_invoke)

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> tuple[str, Any]:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(model_name)
            try:
                return model_name, call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(f"{error_prefix}: {exc.message}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                f"Gemini model '{primary}' is not available. Update "
                "GEMINI_QUICK_MODEL_NAME or GEMINI_DELIBERATE_MODEL_NAME."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _truncate(value: Any, max_len: int = 600) -> Any:
    """Best-effort truncate long strings to keep prompt sizes manageable."""
    if isinstance(value, str) and len(value) > max_len:
        return value[: max_len - 3] + "..."
    return value


def _build_research_prompt(
    *,
    instruction: str,
    query: str,
    search_results: list[dict[str, Any]],
) -> str:
    """Construct the synthesis prompt for one research question."""
    sections = [
        dedent(
            (
                "You are a property repair cost researcher.\n"
                f"Task: {instruction}\n"
                f"Search query: {query}\n"
            )
        )
    ]
    if search_results:
        trimmed = [
            {key: _truncate(val) for key, val in result.items()}
            for result in search_results
        ]
        sections.append("Web results:\n" + json.dumps(trimmed, indent=2))
        sections.append(
            "Base the answer on the web results where they are relevant and cite "
            "the link for every figure you quote."
        )
    sections.append(
        "Answer concisely in plain text. Quote prices as currency amounts "
        "with a symbol or code (for example $85, 120.50 USD or EUR 40)."
    )
    return "\n\n".join(sections)


__all__ = ["GeminiClient", "GeminiModelError"]
