"""Judge gateways: the only network boundary of the harness."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

try:
    from google import genai  # type: ignore
    from google.genai import types  # type: ignore
except Exception:  # pragma: no cover
    genai = None  # type: ignore
    types = None  # type: ignore

from .config import DEFAULT_JUDGE_TIMEOUT_S, DEFAULT_MODEL, JudgeSettings
from .context_builder import JudgeRequest
from .errors import ConfigurationError, TransportError
from .evidence import Video
from .verdict import ZERO_USAGE, TokenUsage, Verdict, parse_usage, parse_verdict, transport_failure


@dataclass(frozen=True)
class GatewayResult:
    text: str
    usage: TokenUsage = ZERO_USAGE
    error: str | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class JudgeGateway(Protocol):
    name: str

    async def invoke(self, request: JudgeRequest) -> GatewayResult:
        ...


class GeminiJudgeGateway:
    """Single-shot multimodal call to Gemini in JSON response mode.

    The credential is checked at construction, before any client exists. Every
    failure after that point is returned as a ``GatewayResult`` carrying the
    error message; nothing is retried here.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = DEFAULT_MODEL,
        timeout_s: float = DEFAULT_JUDGE_TIMEOUT_S,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        if not api_key or not str(api_key).strip():
            raise ConfigurationError("GEMINI_API_KEY or GOOGLE_API_KEY not set.")
        if client_factory is None and genai is None:
            raise ConfigurationError("google-genai package not installed. Run: pip install google-genai")
        self._api_key = str(api_key).strip()
        self.model = model
        self.timeout_s = timeout_s
        self._client_factory = client_factory or _default_client
        self._client: Any = None
        self._client_loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_settings(cls, settings: JudgeSettings, **kwargs: Any) -> "GeminiJudgeGateway":
        return cls(settings.api_key, model=settings.model, timeout_s=settings.judge_timeout_s, **kwargs)

    async def invoke(self, request: JudgeRequest) -> GatewayResult:
        started = time.monotonic()
        try:
            client = self._client_for(asyncio.get_running_loop())
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=build_contents(request),
                    config=_build_config(),
                ),
                timeout=self.timeout_s,
            )
            text = _response_text(response)
            if not text:
                raise TransportError("Judge returned an empty response.")
        except asyncio.TimeoutError:
            return GatewayResult(
                text="",
                error=f"Judge call timeout after {self.timeout_s:g}s.",
                elapsed_ms=_elapsed_ms(started),
            )
        except Exception as exc:
            return GatewayResult(text="", error=describe_error(exc), elapsed_ms=_elapsed_ms(started))
        usage = parse_usage(_usage_mapping(response))
        return GatewayResult(text=text, usage=usage, elapsed_ms=_elapsed_ms(started))

    def _client_for(self, loop: asyncio.AbstractEventLoop) -> Any:
        # The SDK's async transport pools connections on the loop that first used it.
        if self._client is None or self._client_loop is not loop:
            self._client = self._client_factory(self._api_key)
            self._client_loop = loop
        return self._client


class DryRunJudgeGateway:
    """Offline gateway that answers every request with a canned verdict."""

    name = "dryrun"

    def __init__(
        self,
        responses: list[str] | None = None,
        *,
        usage: Mapping[str, Any] | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._usage = parse_usage(usage)
        self.requests: list[JudgeRequest] = []

    async def invoke(self, request: JudgeRequest) -> GatewayResult:
        self.requests.append(request)
        if self._responses:
            text = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        else:
            text = json.dumps(
                {
                    "status": "PASS",
                    "certainty": 1.0,
                    "reasoning": f"dryrun: {len(request.evidence.media_parts())} media part(s) not inspected.",
                }
            )
        return GatewayResult(text=text, usage=self._usage)


def build_gateway(settings: JudgeSettings) -> JudgeGateway:
    if settings.dryrun:
        return DryRunJudgeGateway()
    return GeminiJudgeGateway.from_settings(settings)


async def judge(gateway: JudgeGateway, request: JudgeRequest) -> Verdict:
    """Invoke the gateway and normalize whatever comes back into a Verdict.

    Configuration problems propagate; every other gateway failure degrades to
    a FAIL verdict carrying the error text.
    """
    try:
        result = await gateway.invoke(request)
    except ConfigurationError:
        raise
    except Exception as exc:
        return transport_failure(describe_error(exc))
    if not result.ok:
        return transport_failure(str(result.error))
    return parse_verdict(result.text, result.usage)


def build_contents(request: JudgeRequest) -> list[Any]:
    parts: list[Any] = []
    for data, mime_type in request.evidence.media_parts():
        part_kwargs: dict[str, Any] = {"inline_data": types.Blob(data=data, mime_type=mime_type)}
        if isinstance(request.evidence, Video):
            part_kwargs["video_metadata"] = types.VideoMetadata(fps=request.evidence.fps)
        parts.append(types.Part(**part_kwargs))
    parts.append(types.Part(text=request.instructions))
    return [types.Content(role="user", parts=parts)]


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        return type(exc).__name__
    return message


def _default_client(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


def _build_config() -> Any:
    return types.GenerateContentConfig(response_mime_type="application/json", candidate_count=1)


def _response_text(response: Any) -> str:
    try:
        text = getattr(response, "text", None)
    except Exception:
        text = None
    if isinstance(text, str):
        return text.strip()
    return ""


def _usage_mapping(response: Any) -> Mapping[str, Any] | None:
    for key in ("usage_metadata", "usageMetadata", "usage"):
        raw = response.get(key) if isinstance(response, Mapping) else getattr(response, key, None)
        if raw is None:
            continue
        if isinstance(raw, Mapping):
            return raw
        if hasattr(raw, "model_dump"):
            dumped = raw.model_dump()
            if isinstance(dumped, Mapping):
                return dumped
        if hasattr(raw, "__dict__"):
            return {str(k): v for k, v in raw.__dict__.items() if not str(k).startswith("_")}
    return None


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
