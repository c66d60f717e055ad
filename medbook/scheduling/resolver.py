"""Resolve a spoken doctor name or specialty to a provider row.

Local matching runs first and only accepts exact, partial-name or
substring hits. Typo-level similarity is left to the optional matcher
delegate (an LLM); when neither is confident, the specialty decides.
"""

import logging
import re
from difflib import SequenceMatcher
from typing import Protocol

from pydantic import BaseModel

from medbook.config import (
    LOCAL_NAME_MATCH_SCORE,
    MATCH_CONFIDENCE_THRESHOLD,
    MATCH_TEMPERATURE,
)
from medbook.executor import execute_prompt
from medbook.models.errors import ProviderNotFound, UpstreamServiceError
from medbook.models.schemas import Provider
from medbook.utils.json_extract import extract_json_object
from medbook.utils.remote import bounded_call

logger = logging.getLogger(__name__)

_HONORIFIC = re.compile(r"^(?:doctor|dr)\b\.?\s*", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")


class ProviderMatch(BaseModel):
    """Answer from a matcher delegate."""

    match_id: str | None = None
    confidence: float = 0.0


class ProviderMatcher(Protocol):
    def match(self, name: str, roster: list[Provider]) -> ProviderMatch | None: ...


def normalize_name(value: str) -> str:
    """Lowercase, drop honorifics and punctuation.

    Examples:
        >>> normalize_name("Dr. Sarah Smith")
        'sarah smith'
        >>> normalize_name("doctor smith")
        'smith'
    """
    cleaned = _HONORIFIC.sub("", value.strip())
    cleaned = _NON_WORD.sub(" ", cleaned.lower())
    return " ".join(cleaned.split())


def name_score(query: str, candidate: str) -> float:
    """Similarity in [0, 1] between a spoken name and a provider name.

    Exact match scores 1.0, a partial name ("Smith" for "Sarah Smith")
    0.9, a substring 0.8; otherwise the best difflib ratio against the
    full name or any single token.
    """
    q = normalize_name(query)
    c = normalize_name(candidate)
    if not q or not c:
        return 0.0
    if q == c:
        return 1.0

    q_tokens = q.split()
    c_tokens = c.split()
    if set(q_tokens) <= set(c_tokens):
        return 0.9
    if q in c:
        return 0.8

    ratios = [SequenceMatcher(None, q, c).ratio()]
    ratios.extend(
        SequenceMatcher(None, qt, ct).ratio() for qt in q_tokens for ct in c_tokens
    )
    return round(min(max(ratios), 0.79), 4)


def specialty_score(query: str, candidate: str) -> float:
    """Similarity between a requested specialty and a provider's label."""
    q = query.strip().lower()
    c = candidate.strip().lower()
    if not q or not c:
        return 0.0
    if q == c:
        return 1.0
    if q in c or c in q:
        return 0.8
    return round(min(SequenceMatcher(None, q, c).ratio(), 0.79), 4)


def _best(scored: list[tuple[float, Provider]]) -> tuple[float, Provider] | None:
    if not scored:
        return None
    return sorted(scored, key=lambda item: (-item[0], item[1].name.lower(), item[1].id))[0]


class LLMProviderMatcher:
    """Ask the language model to pick a provider from the roster."""

    def __init__(self, temperature: float = MATCH_TEMPERATURE, timeout: float | None = None):
        self.temperature = temperature
        self.timeout = timeout

    def match(self, name: str, roster: list[Provider]) -> ProviderMatch | None:
        doctors = [{"id": p.id, "name": p.name, "specialty": p.specialty} for p in roster]
        text = bounded_call(
            execute_prompt,
            "match_provider",
            variables={"name": name, "doctors": doctors},
            temperature=self.temperature,
            service="provider-matcher",
            timeout=self.timeout,
        ).unwrap()

        payload = extract_json_object(text)
        if payload is None:
            logger.warning(f"Provider matcher returned no JSON: {text[:200]!r}")
            return None
        try:
            return ProviderMatch(
                match_id=payload.get("match_id") or None,
                confidence=float(payload.get("confidence") or 0.0),
            )
        except (TypeError, ValueError):
            return None


class ProviderResolver:
    """Resolve a provider by name, falling back to specialty.

    Example:
        resolver = ProviderResolver(db, matcher=LLMProviderMatcher())
        provider = resolver.resolve(name="Dr. Smyth")
    """

    def __init__(
        self,
        store,
        matcher: ProviderMatcher | None = None,
        threshold: float = MATCH_CONFIDENCE_THRESHOLD,
        local_score: float = LOCAL_NAME_MATCH_SCORE,
    ):
        self.store = store
        self.matcher = matcher
        self.threshold = threshold
        self.local_score = local_score

    def resolve(self, name: str | None = None, specialty: str | None = None) -> Provider:
        """Return the best provider for a spoken name and/or specialty.

        Raises:
            ProviderNotFound: Nothing matched confidently
        """
        name = (name or "").strip() or None
        specialty = (specialty or "").strip() or None
        if name is None and specialty is None:
            raise ProviderNotFound(None, details={"reason": "no doctor or specialty given"})

        roster = self.store.list_providers()

        if name is not None:
            provider = self._resolve_name(name, roster, specialty)
            if provider is not None:
                return provider

        if specialty is not None:
            provider = self._resolve_specialty(specialty, roster)
            if provider is not None:
                return provider

        raise ProviderNotFound(name or specialty)

    def _resolve_name(
        self, name: str, roster: list[Provider], specialty: str | None = None
    ) -> Provider | None:
        floor = max(self.threshold, self.local_score)
        hits = [(name_score(name, p.name), p) for p in roster]
        hits = [item for item in hits if item[0] >= floor]
        if specialty is not None:
            # Equal name scores: the requested specialty wins
            hits = [(score + self._specialty_bonus(specialty, p), p) for score, p in hits]
        best = _best(hits)
        if best is not None:
            logger.info(f"🔎 Matched '{name}' to {best[1].name} (score {best[0]:.2f})")
            return best[1]

        if self.matcher is None or not roster:
            return None

        try:
            answer = self.matcher.match(name, roster)
        except UpstreamServiceError as e:
            logger.error(f"Provider matcher failed for '{name}': {e.message}")
            return None

        if answer is None or answer.match_id is None or answer.confidence <= self.threshold:
            logger.info(f"🔎 No confident match for '{name}'")
            return None

        for provider in roster:
            if provider.id == answer.match_id:
                logger.info(
                    f"🔎 Matcher picked {provider.name} for '{name}' "
                    f"(confidence {answer.confidence:.2f})"
                )
                return provider

        logger.warning(f"Matcher returned unknown provider id {answer.match_id}")
        return None

    def _specialty_bonus(self, specialty: str, provider: Provider) -> float:
        return 0.01 if specialty_score(specialty, provider.specialty) >= self.threshold else 0.0

    def _resolve_specialty(self, specialty: str, roster: list[Provider]) -> Provider | None:
        scored = [(specialty_score(specialty, p.specialty), p) for p in roster]
        best = _best([item for item in scored if item[0] >= self.threshold])
        if best is None:
            return None
        logger.info(f"🔎 Matched specialty '{specialty}' to {best[1].name}")
        return best[1]


__all__ = [
    "LLMProviderMatcher",
    "ProviderMatch",
    "ProviderResolver",
    "name_score",
    "normalize_name",
    "specialty_score",
]
