"""Base scorer implementing the Template Method pattern.

All providers share the same scoring algorithm:
    analyze() → _build_system_prompt() + _build_user_prompt()
              → _call_with_retry() → _call_api()   ← only this differs per provider
              → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod

from doclens_core.models import AnalysisOptions, AnalysisResult, StyleScores

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 8192


class BaseScorer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def analyze(
        self,
        file_path: str,
        document: str,
        options: AnalysisOptions,
        style_guide: str = "",
    ) -> AnalysisResult | None:
        """Score one document and return it with the engine's rewrite, or None on failure."""
        system = self._build_system_prompt(options, style_guide)
        user = self._build_user_prompt(file_path, document)
        raw = self._call_with_retry(system, user)
        if raw is None:
            return None
        parsed = self._parse(raw)
        if parsed is None:
            return None
        rewrite = parsed.get("rewrite")
        return AnalysisResult(
            file_path=file_path,
            original_content=document,
            rewritten_content=rewrite if isinstance(rewrite, str) else "",
            scores=StyleScores.from_dict(parsed.get("scores")),
        )

    def analyze_batch(
        self,
        documents: list[tuple[str, str]],
        options: AnalysisOptions,
        style_guide: str = "",
    ) -> list[AnalysisResult]:
        """Score ``(file_path, content)`` pairs in order, skipping documents the engine failed on."""
        results: list[AnalysisResult] = []
        for file_path, content in documents:
            result = self.analyze(file_path, content, options, style_guide)
            if result is None:
                logger.error("%s: analysis failed for %s", self.__class__.__name__, file_path)
                continue
            results.append(result)
        return results

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        Should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str | None:
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        return None

    def _build_system_prompt(self, options: AnalysisOptions, style_guide: str) -> str:
        return f"""You are a meticulous technical editor.
Score the document you are given and rewrite it so it follows the style rules below.

Dialect: {options.dialect}
Tone: {options.tone}
Style guide: {options.style_guide}

{style_guide}

Rules:
- Preserve the meaning, structure and markup of the document (headings, lists, links, code blocks).
- Change only what improves clarity, grammar, tone, terminology or style-guide compliance.
- Keep every line that needs no change exactly as it is, including whitespace.
- Never add commentary to the rewrite itself."""

    def _build_user_prompt(self, file_path: str, document: str) -> str:
        return f"""Document `{file_path}`:

{document}

### Output Format:
Respond with **only** a valid JSON object:

{{
  "rewrite": "<the full rewritten document>",
  "scores": {{
    "quality": <0-100>,
    "clarity": <0-100>,
    "grammar": <0-100>,
    "tone": <0-100>,
    "style_guide": <0-100>,
    "terminology": <0-100>
  }}
}}

If the document needs no changes, return it unchanged in "rewrite".
Do not return any text outside the JSON object."""

    def _parse(self, raw: str) -> dict | None:
        try:
            cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
            cleaned = re.sub(r"\s*```$", "", cleaned.strip())
            data = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning(
                "%s: failed to parse response as JSON: %s",
                self.__class__.__name__,
                raw[:200],
            )
            return None
        if not isinstance(data, dict):
            logger.warning("%s: expected a JSON object, got %s", self.__class__.__name__, type(data).__name__)
            return None
        return data
