"""Round adjudication gateway: prompts the oracle, parses replies, falls back.

Every public call returns a well-formed result. Any failure along the way
(no credentials, transport error, empty reply, malformed payload) is turned
into a deterministic fallback: a verbatim two-line tie for battles and a
fixed list of placeholder arguments for suggestions.
"""

import json
import os
import re
import sys
from dataclasses import dataclass

import httpx

from .models import (
    DEFAULT_TIMEOUT,
    GAME_FALLBACK,
    GAME_MODEL,
    is_error_response,
    query_google_ai_studio_async,
    query_model_async,
    sanitize_speaker_content,
)
from .prompts import (
    ARGUMENTS_PROMPT,
    ARGUMENTS_SYSTEM,
    BATTLE_PROMPT,
    BATTLE_SYSTEM,
    FALLBACK_ARGUMENTS,
    FALLBACK_REASON,
    MANUAL_MARKER,
    SUGGESTION_COUNT,
    SUGGESTION_MAX_CHARS,
)

_FENCE_RE = re.compile(r"```(?:json)?\n?")

DIALOGUE_MIN_LINES = 2
DIALOGUE_MAX_LINES = 4


class GatewayFailure(Exception):
    """Contacting the oracle or parsing its reply failed."""


@dataclass(frozen=True)
class DialogueLine:
    speaker: str
    text: str


@dataclass(frozen=True)
class RoundVerdict:
    """Oracle result for one round. vote_p1 is player 1's share of 100."""
    dialogue: tuple[DialogueLine, ...]
    vote_p1: int
    reason: str
    fallback: bool = False


def fallback_verdict(arg1: str, p1_name: str, arg2: str, p2_name: str) -> RoundVerdict:
    """Tie result that replays both arguments verbatim."""
    return RoundVerdict(
        dialogue=(DialogueLine(p1_name, arg1), DialogueLine(p2_name, arg2)),
        vote_p1=50,
        reason=FALLBACK_REASON,
        fallback=True,
    )


def extract_json_payload(text: str, expected: type = dict):
    """Parse the first well-formed JSON payload of the expected type in text.

    Tolerates markdown fences and explanatory prose around the payload.
    Raises GatewayFailure if nothing usable is found.
    """
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        payload = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        payload = None
    if isinstance(payload, expected):
        return payload

    opener = "{" if expected is dict else "["
    decoder = json.JSONDecoder()
    start = cleaned.find(opener)
    while start != -1:
        try:
            payload, _ = decoder.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, expected):
            return payload
        start = cleaned.find(opener, start + 1)

    raise GatewayFailure(f"no {expected.__name__} payload in reply: {text[:80]!r}")


def parse_verdict(payload: dict) -> RoundVerdict:
    """Validate a battle payload.

    Dialogue needs at least DIALOGUE_MIN_LINES entries; anything past
    DIALOGUE_MAX_LINES is dropped. Score is rounded and clamped to 0-100.
    """
    dialogue = payload.get("dialogue")
    if not isinstance(dialogue, list) or not dialogue:
        raise GatewayFailure("reply has no dialogue")
    if len(dialogue) < DIALOGUE_MIN_LINES:
        raise GatewayFailure(f"dialogue has {len(dialogue)} line(s), need {DIALOGUE_MIN_LINES}")

    lines = []
    for entry in dialogue[:DIALOGUE_MAX_LINES]:
        if not isinstance(entry, dict):
            raise GatewayFailure("dialogue entry is not an object")
        speaker = entry.get("speaker")
        text = entry.get("text")
        if not isinstance(speaker, str) or not isinstance(text, str):
            raise GatewayFailure("dialogue entry is missing speaker or text")
        lines.append(DialogueLine(speaker.strip(), text.strip()))

    raw_vote = payload.get("voteP1")
    if isinstance(raw_vote, bool):
        raise GatewayFailure("voteP1 is not a number")
    try:
        vote = round(float(raw_vote))
    except (TypeError, ValueError, OverflowError):
        raise GatewayFailure(f"voteP1 is not a number: {raw_vote!r}")

    reason = payload.get("reason")
    if not isinstance(reason, str):
        raise GatewayFailure("reply has no reason")

    return RoundVerdict(
        dialogue=tuple(lines),
        vote_p1=max(0, min(100, vote)),
        reason=reason.strip(),
    )


def parse_arguments(payload: list) -> list[str]:
    """Keep non-blank distinct strings, in order, capped at SUGGESTION_COUNT."""
    seen = []
    for item in payload:
        if not isinstance(item, str):
            continue
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    if not seen:
        raise GatewayFailure("reply has no usable arguments")
    return seen[:SUGGESTION_COUNT]


class Gateway:
    """Narrow interface to the oracle: arguments in, dialogue + score out."""

    def __init__(
        self,
        api_key: str | None = None,
        google_api_key: str | None = None,
        model: str = GAME_MODEL,
        fallback: tuple[str, str] | None = GAME_FALLBACK,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = 0,
        verbose: bool = False,
    ):
        self.api_key = api_key
        self.google_api_key = google_api_key
        self.model = model
        self.fallback = fallback
        self.client = client
        self.timeout = timeout
        self.retries = retries
        self.verbose = verbose
        self.cost_accumulator: list[float] = []
        self.last_error: str | None = None

    @classmethod
    def from_env(cls, offline: bool = False, **kwargs) -> "Gateway":
        """Build a gateway from OPENROUTER_API_KEY / GOOGLE_API_KEY."""
        if offline:
            return cls(api_key=None, google_api_key=None, **kwargs)
        return cls(
            api_key=os.environ.get("OPENROUTER_API_KEY"),
            google_api_key=os.environ.get("GOOGLE_API_KEY"),
            **kwargs,
        )

    @property
    def offline(self) -> bool:
        return not self.api_key and not self.google_api_key

    @property
    def total_cost(self) -> float:
        return round(sum(self.cost_accumulator), 4)

    def _report(self, message: str) -> None:
        self.last_error = message
        if self.verbose:
            print(f"({message})", file=sys.stderr, flush=True)

    async def _ask(
        self,
        client: httpx.AsyncClient,
        messages: list[dict],
        max_tokens: int,
        temperature: float | None,
    ) -> str:
        response = ""
        if self.api_key:
            response = await query_model_async(
                client, self.api_key, self.model, messages,
                max_tokens=max_tokens, temperature=temperature, json_mode=True,
                retries=self.retries, cost_accumulator=self.cost_accumulator,
            )
            if not is_error_response(response):
                return response

        if self.fallback and self.google_api_key:
            provider, fallback_model = self.fallback
            if provider == "google":
                response = await query_google_ai_studio_async(
                    client, self.google_api_key, fallback_model, messages,
                    max_tokens=max_tokens, temperature=temperature, json_mode=True,
                    retries=self.retries,
                )
                if not is_error_response(response):
                    return response

        raise GatewayFailure(response or "[Error: no API key configured]")

    async def complete(
        self,
        messages: list[dict],
        max_tokens: int = 1000,
        temperature: float | None = None,
    ) -> str:
        """Send messages to the oracle. Raises GatewayFailure on any failure."""
        if self.offline:
            raise GatewayFailure("offline: no OPENROUTER_API_KEY or GOOGLE_API_KEY")
        try:
            if self.client is not None:
                return await self._ask(self.client, messages, max_tokens, temperature)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await self._ask(client, messages, max_tokens, temperature)
        except GatewayFailure:
            raise
        except Exception as e:
            raise GatewayFailure(f"unexpected {type(e).__name__}: {e}") from e

    async def generate_arguments(self, topic: str, stance: str) -> list[str]:
        """Suggest short arguments supporting stance on topic."""
        self.last_error = None
        messages = [
            {"role": "system", "content": ARGUMENTS_SYSTEM},
            {"role": "user", "content": ARGUMENTS_PROMPT.format(
                topic=sanitize_speaker_content(topic),
                stance=sanitize_speaker_content(stance),
                count=SUGGESTION_COUNT,
                max_chars=SUGGESTION_MAX_CHARS,
            )},
        ]
        try:
            text = await self.complete(messages, max_tokens=600)
            return parse_arguments(extract_json_payload(text, list))
        except GatewayFailure as e:
            self._report(f"Suggestions unavailable, using placeholders: {e}")
            return list(FALLBACK_ARGUMENTS)

    async def simulate_battle_round(
        self,
        topic: str,
        arg1: str,
        p1_name: str,
        arg2: str,
        p2_name: str,
        is_p1_manual: bool = False,
        is_p2_manual: bool = False,
    ) -> RoundVerdict:
        """Generate one round of dialogue and a verdict for player 1."""
        self.last_error = None
        messages = [
            {"role": "system", "content": BATTLE_SYSTEM},
            {"role": "user", "content": BATTLE_PROMPT.format(
                topic=sanitize_speaker_content(topic),
                p1_name=sanitize_speaker_content(p1_name),
                p2_name=sanitize_speaker_content(p2_name),
                arg1=sanitize_speaker_content(arg1),
                arg2=sanitize_speaker_content(arg2),
                p1_marker=MANUAL_MARKER if is_p1_manual else "",
                p2_marker=MANUAL_MARKER if is_p2_manual else "",
            )},
        ]
        try:
            text = await self.complete(messages, max_tokens=1000, temperature=1.0)
            return parse_verdict(extract_json_payload(text, dict))
        except GatewayFailure as e:
            self._report(f"Battle fell back to a tie: {e}")
            return fallback_verdict(arg1, p1_name, arg2, p2_name)


async def generate_arguments(topic: str, stance: str, gateway: Gateway | None = None) -> list[str]:
    gateway = gateway or Gateway.from_env()
    return await gateway.generate_arguments(topic, stance)


async def simulate_battle_round(
    topic: str,
    arg1: str,
    p1_name: str,
    arg2: str,
    p2_name: str,
    is_p1_manual: bool = False,
    is_p2_manual: bool = False,
    gateway: Gateway | None = None,
) -> RoundVerdict:
    gateway = gateway or Gateway.from_env()
    return await gateway.simulate_battle_round(
        topic, arg1, p1_name, arg2, p2_name, is_p1_manual, is_p2_manual,
    )
