"""Oracle boundary: the external AI service behind every pipeline stage.

Every Oracle call returns an :class:`OracleResult` - either a success holding
a shape-checked value or a failure holding an error message. Transport
errors, JSON parsing errors and missing prompt templates never escape this
module, so pipeline stages can degrade per item (fallback group, zero edges,
skipped batch) without try/except around each call.

The :class:`AnthropicOracle` implementation wraps each request in a bounded
:class:`RetryPolicy`: a malformed JSON answer gets a corrective re-prompt,
a transport error gets a backoff and a plain retry, and both consume the
same fixed attempt budget.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

import anthropic

from unitgraph.config import PipelineSettings
from unitgraph.oracle.oracleparse import as_group_name, as_record_list, extract_json

if TYPE_CHECKING:
    from unitgraph.specs.specduplicates import DuplicateCandidate
    from unitgraph.units.unitmodels import Unit

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OracleResult(Generic[T]):
    """Success-or-error outcome of one Oracle call."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OracleResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "OracleResult[T]":
        return cls(error=error or "unknown oracle failure")

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed attempt budget with exponential backoff between transport retries."""

    max_attempts: int = 2
    base_delay: float = 1.0

    def delay(self, retry_index: int) -> float:
        return self.base_delay * (2 ** retry_index)


class Oracle(ABC):
    """Interface to the classification / conversion / duplicate service."""

    @abstractmethod
    async def classify(self, symbol: str, known_group_names: Sequence[str]) -> OracleResult[str]:
        """Propose a group name for a unit symbol."""

    @abstractmethod
    async def generate_conversions(
        self,
        from_unit: "Unit",
        candidate_units: Sequence["Unit"],
        group_name: str,
    ) -> OracleResult[List[Dict[str, Any]]]:
        """Propose ``{from, to, multiplier, equation}`` edges from one unit to its siblings."""

    @abstractmethod
    async def confirm_duplicates(
        self,
        candidates: Sequence["DuplicateCandidate"],
    ) -> OracleResult[List[Dict[str, Any]]]:
        """Return ``{pairIndex, areDuplicates, similarity, reason}`` verdicts for a batch of pairs."""


def _describe_entry(entry: Dict[str, Any]) -> str:
    description = str(entry.get("description") or "")[:100]
    return f"{entry.get('primaryName', '')} ({entry.get('domain', '')})\n  Description: {description}..."


class AnthropicOracle(Oracle):
    """Oracle backed by the Anthropic Messages API.

    Args:
        settings: Pipeline settings (model, max tokens, attempts, prompts)
        client: Optional pre-built ``anthropic.AsyncAnthropic`` (or a test double)
    """

    def __init__(self, settings: PipelineSettings, client: Optional[Any] = None):
        self.settings = settings
        self.prompts = settings.prompts
        self.policy = RetryPolicy(settings.oracle_attempts, settings.retry_base_delay)
        self.client = client if client is not None else anthropic.AsyncAnthropic()

    async def _ask(self, prompt: str, system: Optional[str]) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.settings.model,
            "max_tokens": self.settings.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = await self.client.messages.create(**kwargs)
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def ask_json(
        self,
        prompt: str,
        system: Optional[str],
        shape: Callable[[Any], Optional[T]],
    ) -> OracleResult[T]:
        """Send *prompt* and return its JSON answer normalised by *shape*.

        Args:
            prompt: User prompt (the JSON-only suffix is appended here)
            system: Optional system prompt
            shape: Normaliser returning the typed value, or None when the JSON
                has the wrong top-level shape

        Returns:
            OracleResult with the shaped value, or a failure once the
            retry budget is spent
        """
        suffix = self.prompts.get("json_suffix", "")
        request = f"{prompt}\n\n{suffix}" if suffix else prompt
        current = request
        last_error = "no attempts made"

        for attempt in range(self.policy.max_attempts):
            try:
                text = await self._ask(current, system)
            except (anthropic.APIError, asyncio.TimeoutError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"Oracle call failed (attempt {attempt + 1}/{self.policy.max_attempts}): {last_error}")
                if attempt + 1 < self.policy.max_attempts:
                    await asyncio.sleep(self.policy.delay(attempt))
                continue

            try:
                value = shape(extract_json(text))
                if value is None:
                    raise ValueError("unexpected JSON shape")
            except ValueError as e:
                last_error = f"malformed response: {e}"
                logger.warning(f"Oracle returned malformed JSON (attempt {attempt + 1}/{self.policy.max_attempts}): {e}")
                repair = self.prompts.get("repair")
                current = repair.format(previous=text, prompt=request) if repair else request
                continue

            return OracleResult.success(value)

        return OracleResult.failure(last_error)

    def _render(self, name: str, **fields: Any) -> Optional[str]:
        """Fill prompt template *name*; None when it is missing or malformed."""
        template = self.prompts.get(name)
        if not template:
            logger.error(f"Prompt template '{name}' is not configured")
            return None
        try:
            return template.format(**fields)
        except (KeyError, IndexError, ValueError) as e:
            logger.error(f"Prompt template '{name}' cannot be filled: {e!r}")
            return None

    async def classify(self, symbol: str, known_group_names: Sequence[str]) -> OracleResult[str]:
        prompt = self._render(
            "classify",
            symbol=symbol,
            groups=", ".join(known_group_names) or "(none yet)",
        )
        if prompt is None:
            return OracleResult.failure("classify prompt unavailable")
        return await self.ask_json(prompt, self.prompts.get("classify_system"), as_group_name)

    async def generate_conversions(
        self,
        from_unit: "Unit",
        candidate_units: Sequence["Unit"],
        group_name: str,
    ) -> OracleResult[List[Dict[str, Any]]]:
        prompt = self._render(
            "conversions",
            from_symbol=from_unit.symbol,
            to_symbols=", ".join(u.symbol for u in candidate_units),
            group_name=group_name,
            count=len(candidate_units),
        )
        if prompt is None:
            return OracleResult.failure("conversions prompt unavailable")
        return await self.ask_json(prompt, self.prompts.get("conversions_system"), as_record_list)

    async def confirm_duplicates(
        self,
        candidates: Sequence["DuplicateCandidate"],
    ) -> OracleResult[List[Dict[str, Any]]]:
        pairs = "\n".join(
            f"\nPAIR {idx}:\nSpec A: {_describe_entry(c.entry1)}\nSpec B: {_describe_entry(c.entry2)}"
            for idx, c in enumerate(candidates)
        )
        prompt = self._render(
            "duplicates",
            count=len(candidates),
            pairs=pairs,
            max_index=max(len(candidates) - 1, 0),
        )
        if prompt is None:
            return OracleResult.failure("duplicates prompt unavailable")
        return await self.ask_json(prompt, self.prompts.get("duplicates_system"), as_record_list)


__all__ = [
    "OracleResult",
    "RetryPolicy",
    "Oracle",
    "AnthropicOracle",
]
