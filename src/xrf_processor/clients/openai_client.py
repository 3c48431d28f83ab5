from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Sequence
from typing import Any

import httpx

from xrf_processor.clients.prompts import (
    COLUMN_MAPPING_PROMPT,
    COMPONENT_GROUPING_PROMPT,
    SUBSTRATE_GROUPING_PROMPT,
    hazard_assessment_prompt,
)
from xrf_processor.config.loader import AIConfig
from xrf_processor.models.normalization import NormalizationGroup
from xrf_processor.services.collaborators import AIColumnMapping
from xrf_processor.services.hazards import HazardReference

"""Chat-completion client (OpenAI or Azure OpenAI) and the three AI collaborators.

The client is a thin synchronous wrapper around ``httpx.Client``; every
transport or HTTP status failure surfaces as ``AIServiceError`` so callers only
need to handle one exception type. Collaborators parse the model's JSON answer
with ``extract_json``, which tolerates fenced code blocks and leading prose.
"""

__all__ = [
    "AIServiceError",
    "OpenAIClient",
    "OpenAIColumnMapper",
    "OpenAIHazardAssessor",
    "OpenAINameGrouper",
    "extract_json",
    "resolve_api_key",
]

logger = logging.getLogger(__name__)

COLUMN_MAPPING_TEMPERATURE = 0.2
COLUMN_MAPPING_MAX_TOKENS = 1500
HAZARD_TEMPERATURE = 0.3
HAZARD_MAX_TOKENS = 4000

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class AIServiceError(Exception):
    pass


def resolve_api_key(ai_cfg: AIConfig) -> str | None:
    """API key from the environment: AZURE_OPENAI_API_KEY for azure, else OPENAI_API_KEY."""
    var = "AZURE_OPENAI_API_KEY" if ai_cfg.provider == "azure" else "OPENAI_API_KEY"
    value = os.getenv(var)
    return value.strip() if value and value.strip() else None


def extract_json(text: str) -> Any:
    """Parse the JSON payload out of a model reply.

    Tries a fenced ```json block first, then the outermost ``{...}`` and
    ``[...]`` spans (whichever opens first wins), then the whole text.

    Raises:
        AIServiceError: nothing parseable was found
    """
    candidates: list[str] = []
    m = _FENCE_RE.search(text)
    if m:
        candidates.append(m.group(1))
    spans: list[tuple[int, int]] = []
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = text.find(open_ch), text.rfind(close_ch)
        if start != -1 and end > start:
            spans.append((start, end))
    candidates += [text[start:end + 1] for start, end in sorted(spans)]
    candidates.append(text)
    for c in candidates:
        try:
            return json.loads(c.strip())
        except json.JSONDecodeError:
            continue
    raise AIServiceError(f"response is not valid JSON: {text[:200]!r}")


class OpenAIClient:
    """Synchronous chat-completion client.

    Args:
        config: AI section of the application config
        api_key: Secret for the selected provider
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        config: AIConfig,
        api_key: str | None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.api_key = api_key
        self._transport = transport

    def is_configured(self) -> bool:
        if not self.api_key:
            return False
        if self.config.provider == "azure":
            return bool(self.config.azure_endpoint and self.config.model)
        return self.api_key.startswith("sk-")

    def _request_target(self) -> tuple[str, dict[str, str]]:
        if self.config.provider == "azure":
            endpoint = (self.config.azure_endpoint or "").rstrip("/")
            url = (
                f"{endpoint}/openai/deployments/{self.config.model}/chat/completions"
                f"?api-version={self.config.azure_api_version}"
            )
            return url, {"api-key": self.api_key or ""}
        base = self.config.openai_base_url.rstrip("/")
        return f"{base}/chat/completions", {"Authorization": f"Bearer {self.api_key}"}

    def chat(
        self,
        system: str,
        user: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send one system + user exchange and return the assistant text."""
        if not self.is_configured():
            raise AIServiceError(f"{self.config.provider} AI service is not configured")
        url, headers = self._request_target()
        payload: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens if max_tokens is None else max_tokens,
        }
        if self.config.provider != "azure":
            payload["model"] = self.config.model

        try:
            with httpx.Client(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                response = client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise AIServiceError(
                f"AI service returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise AIServiceError(f"AI service request failed: {e}") from e
        except ValueError as e:
            raise AIServiceError(f"AI service returned a non-JSON body: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIServiceError("AI service response has no message content") from e
        if not content:
            raise AIServiceError("AI service returned an empty message")
        return str(content)


class OpenAIColumnMapper:
    """Maps spreadsheet headers to canonical fields."""

    def __init__(self, client: OpenAIClient) -> None:
        self.client = client

    def map_columns(
        self, headers: Sequence[str], sample_rows: Sequence[dict[str, Any]] | None = None
    ) -> AIColumnMapping:
        user = "Column headers:\n" + json.dumps(list(headers), ensure_ascii=False)
        if sample_rows:
            user += "\n\nSample rows:\n" + json.dumps(list(sample_rows), ensure_ascii=False, default=str)
        user += "\n\nReturn ONLY the JSON object."
        data = extract_json(
            self.client.chat(
                COLUMN_MAPPING_PROMPT,
                user,
                temperature=COLUMN_MAPPING_TEMPERATURE,
                max_tokens=COLUMN_MAPPING_MAX_TOKENS,
            )
        )
        if not isinstance(data, dict):
            raise AIServiceError("column mapping response is not an object")

        assignments: dict[str, str] = {}
        for m in data.get("mappings") or []:
            if not isinstance(m, dict):
                continue
            field_name, column = m.get("field"), m.get("column")
            if field_name and column and field_name not in assignments:
                assignments[str(field_name)] = str(column)
        return AIColumnMapping(
            assignments=assignments,
            unmapped=[str(u) for u in data.get("unmapped") or []],
            confidence=float(data.get("overallConfidence") or 0.0),
        )


class OpenAINameGrouper:
    """Groups component or substrate name variants under canonical names."""

    def __init__(self, client: OpenAIClient, kind: str = "component") -> None:
        if kind not in ("component", "substrate"):
            raise ValueError(f"unknown grouping kind: {kind}")
        self.client = client
        self.kind = kind

    def normalize(self, names: Sequence[str]) -> list[NormalizationGroup]:
        if not names:
            return []
        system = COMPONENT_GROUPING_PROMPT if self.kind == "component" else SUBSTRATE_GROUPING_PROMPT
        user = (
            f"Normalize these {self.kind} names from an XRF lead paint inspection:\n\n"
            + "\n".join(names)
            + "\n\nReturn ONLY the JSON object, no other text."
        )
        data = extract_json(self.client.chat(system, user))
        raw_groups = data.get("normalizations") if isinstance(data, dict) else data
        if not isinstance(raw_groups, list):
            raise AIServiceError(f"{self.kind} grouping response has no normalizations list")

        groups: list[NormalizationGroup] = []
        for g in raw_groups:
            if not isinstance(g, dict) or not g.get("canonical"):
                continue
            groups.append(
                NormalizationGroup(
                    canonical=str(g["canonical"]).strip(),
                    variants=[str(v) for v in g.get("variants") or []],
                    confidence=float(g.get("confidence") or 0.9),
                )
            )
        logger.debug("%s grouping: %d names -> %d groups", self.kind, len(names), len(groups))
        return groups


class OpenAIHazardAssessor:
    """Asks the model for a hazard description and option codes per positive component."""

    def __init__(self, client: OpenAIClient, reference: HazardReference) -> None:
        self.client = client
        self.reference = reference

    def assess_hazards(self, components: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        if not components:
            return []
        system = hazard_assessment_prompt(
            [f"{k}: {v}" for k, v in self.reference.abatement.items()],
            [f"{k}: {v}" for k, v in self.reference.interim.items()],
        )
        user = (
            "Assess these positive lead-based paint components:\n\n"
            + json.dumps(list(components), indent=2, ensure_ascii=False)
            + "\n\nReturn ONLY the JSON array."
        )
        data = extract_json(
            self.client.chat(system, user, temperature=HAZARD_TEMPERATURE, max_tokens=HAZARD_MAX_TOKENS)
        )
        if isinstance(data, dict):
            data = data.get("hazards", [])
        if not isinstance(data, list):
            raise AIServiceError("hazard response is not a list")
        return [d for d in data if isinstance(d, dict)]
