from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from drumforge.core.config import settings

log = logging.getLogger(__name__)

_DEMO_BASE = "https://www.soundhelix.com/examples/mp3"

# genre -> (keyword pattern, demo track); order breaks ties between equally early matches
_DEMO_TRACKS = (
    ("rock", r"rock", f"{_DEMO_BASE}/SoundHelix-Song-1.mp3"),
    ("punk", r"punk", f"{_DEMO_BASE}/SoundHelix-Song-2.mp3"),
    ("jazz", r"jazz", f"{_DEMO_BASE}/SoundHelix-Song-3.mp3"),
    ("blast-beats", r"blast[\s-]?beats?", f"{_DEMO_BASE}/SoundHelix-Song-4.mp3"),
    ("reggae", r"reggae", f"{_DEMO_BASE}/SoundHelix-Song-5.mp3"),
    ("funk", r"funk(?:y)?", f"{_DEMO_BASE}/SoundHelix-Song-6.mp3"),
    ("hip-hop", r"hip[\s-]?hop", f"{_DEMO_BASE}/SoundHelix-Song-7.mp3"),
    ("latin", r"latin", f"{_DEMO_BASE}/SoundHelix-Song-8.mp3"),
    ("trap", r"trap", f"{_DEMO_BASE}/SoundHelix-Song-9.mp3"),
)
_GENRE_PATTERNS = [
    (genre, re.compile(rf"\b{pattern}\b", re.IGNORECASE), url) for genre, pattern, url in _DEMO_TRACKS
]
DEFAULT_DEMO_URL = _DEMO_TRACKS[0][2]


@dataclass(frozen=True)
class ProviderSuccess:
    audio_url: str


@dataclass(frozen=True)
class ProviderFailure:
    cause: str


ProviderOutcome = Union[ProviderSuccess, ProviderFailure]


def demo_url_for_prompt(prompt: str) -> str:
    """Demo track for the genre named earliest in the prompt; rock when none is named."""
    best: Optional[tuple[int, str]] = None
    for _genre, pattern, url in _GENRE_PATTERNS:
        match = pattern.search(prompt or "")
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), url)
    return best[1] if best else DEFAULT_DEMO_URL


def resolve_audio_url(outcome: ProviderOutcome, prompt: str) -> str:
    """Always yields a playable URL: the provider's on success, a demo track otherwise."""
    if isinstance(outcome, ProviderSuccess):
        return outcome.audio_url
    log.warning("[provider] Falling back to demo track: %s", outcome.cause)
    return demo_url_for_prompt(prompt)


def build_provider_prompt(prompt: str, bpm: Optional[int] = None) -> str:
    if bpm is None:
        return prompt
    return f"{prompt}, {bpm} BPM"


def _extract_audio_url(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    output = data.get("output")
    candidates = [output.get("audio_url") if isinstance(output, dict) else None, data.get("audio_url")]
    for value in candidates:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class DrumProviderClient:
    """Thin client for the generative drum provider.

    Makes exactly one request per call, bounded by the configured timeout,
    and never raises: every failure becomes a ProviderFailure.
    """

    def __init__(
        self,
        api_key: str,
        url: str,
        model: str = "drum-generator",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.url = url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.BaseTransport] = None) -> "DrumProviderClient":
        return cls(
            api_key=settings.DRUM_PROVIDER_API_KEY,
            url=settings.DRUM_PROVIDER_URL,
            model=settings.DRUM_PROVIDER_MODEL,
            timeout=settings.DRUM_PROVIDER_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def generate(self, prompt: str, bpm: Optional[int] = None) -> ProviderOutcome:
        if not self.configured:
            return ProviderFailure("provider not configured")

        body = {
            "model": self.model,
            "input": {"prompt": build_provider_prompt(prompt, bpm), "seed": "-1"},
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(self.url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            return ProviderFailure(f"timeout after {self.timeout}s: {e}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return ProviderFailure(f"transport error: {e}")
        except Exception as e:
            log.exception("[provider] Unexpected error calling provider")
            return ProviderFailure(f"unexpected error: {e}")

        if not r.is_success:
            return ProviderFailure(f"HTTP {r.status_code}: {r.text[:200]}")
        try:
            data = r.json()
        except ValueError:
            return ProviderFailure("response was not JSON")

        audio_url = _extract_audio_url(data)
        if not audio_url:
            return ProviderFailure("response carried no audio url")
        log.info("[provider] Generation succeeded")
        return ProviderSuccess(audio_url)


__all__ = [
    "DEFAULT_DEMO_URL",
    "ProviderSuccess",
    "ProviderFailure",
    "ProviderOutcome",
    "DrumProviderClient",
    "build_provider_prompt",
    "demo_url_for_prompt",
    "resolve_audio_url",
]
