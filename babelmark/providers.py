"""Translation provider abstractions."""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import requests

from .errors import (
    ConfigurationError,
    MissingCredentialError,
    TranslationProviderError,
)


class TranslationProvider(ABC):
    """Abstract adapter for remote batch translation services."""

    name = "provider"

    @abstractmethod
    def translate_batch(
        self,
        strings: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        """Translate ``strings`` and return results in the same order."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate_batch(
        self,
        strings: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        return list(strings)


class DeepLTranslationProvider(TranslationProvider):
    """Translation provider backed by the DeepL REST API."""

    name = "deepl"

    FREE_SERVER_URL = "https://api-free.deepl.com"
    PRO_SERVER_URL = "https://api.deepl.com"
    TIMEOUT_SECONDS = 60

    def __init__(
        self,
        *,
        auth_key: str | None,
        server_url: str | None = None,
        debug: bool = False,
    ) -> None:
        if not auth_key:
            raise MissingCredentialError(
                "DeepL configuration missing. Set DEEPL_AUTH_KEY or run in offline mode."
            )
        self.auth_key = auth_key
        self.debug = debug
        if server_url:
            self.server_url = server_url.rstrip("/")
        elif auth_key.endswith(":fx"):
            self.server_url = self.FREE_SERVER_URL
        else:
            self.server_url = self.PRO_SERVER_URL

    def translate_batch(
        self,
        strings: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        if not strings:
            return []

        payload: Dict[str, Any] = {
            "text": list(strings),
            "target_lang": target_language.upper(),
            "tag_handling": "html",
            "split_sentences": "nonewlines",
        }
        if source_language:
            payload["source_lang"] = source_language.split("-")[0].upper()
        headers = {
            "Authorization": f"DeepL-Auth-Key {self.auth_key}",
            "Content-Type": "application/json",
        }
        _log_debug(self.debug, "provider.request.payload", payload)

        try:
            response = requests.post(
                f"{self.server_url}/v2/translate",
                json=payload,
                headers=headers,
                timeout=self.TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as exc:
            raise TranslationProviderError(
                f"Translation service unavailable: {exc}"
            ) from exc

        if response.status_code == 456:
            raise TranslationProviderError("DeepL quota exceeded.")
        if response.status_code != 200:
            raise TranslationProviderError(
                f"DeepL error {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
            translated = [item["text"] for item in data["translations"]]
        except (ValueError, KeyError, TypeError) as exc:
            raise TranslationProviderError(
                "Translation provider response malformed: missing translations."
            ) from exc
        _log_debug(self.debug, "provider.response.items", translated)
        return translated


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str | None = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self._client, default_model = self._build_client(api_key)
        self.model = model or default_model

    def _build_client(self, api_key: str | None) -> tuple[Any, str]:
        if not api_key:
            raise MissingCredentialError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        return OpenAI(api_key=api_key), self.DEFAULT_MODEL

    def translate_batch(
        self,
        strings: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        if not strings:
            return []

        payload = [
            {"id": str(index), "text": text}
            for index, text in enumerate(strings)
        ]
        system_prompt = (
            "You are a professional translator. Return only JSON. "
            "Translate the provided text segments into the requested language. "
            "Preserve formatting, placeholders, numbers, HTML tags and comments. "
            "Respond strictly with an object shaped as "
            '{"translations": [{"id": "...", "translated": "..."}]}. '
            "Keep line breaks inside a segment where they are. "
            "Do not add commentary. Do not wrap the JSON in markdown code fences."
        )
        user_prompt = {
            "target_language": target_language,
            "source_language": source_language,
            "segments": payload,
        }
        _log_debug(self.debug, "provider.request.system_prompt", system_prompt)
        _log_debug(self.debug, "provider.request.payload", user_prompt)

        response_items = self._invoke_model(
            system_prompt=system_prompt,
            user_payload=user_prompt,
            model=self.model,
        )
        _log_debug(self.debug, "provider.response.items", response_items)

        mapping: Dict[str, str] = {}
        for item in response_items:
            if not isinstance(item, dict):
                raise TranslationProviderError(
                    "Translation provider response malformed: expected objects."
                )
            segment_id = item.get("id")
            translated = item.get("translated")
            if not isinstance(segment_id, str) or not isinstance(translated, str):
                raise TranslationProviderError(
                    "Translation provider response malformed: missing fields."
                )
            mapping[segment_id] = translated

        missing = [entry["id"] for entry in payload if entry["id"] not in mapping]
        if missing:
            raise TranslationProviderError(
                "Translation output missing expected segments: " + ", ".join(missing)
            )
        return [mapping[entry["id"]] for entry in payload]

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> list[dict[str, Any]]:
        """Call the OpenAI Responses API and return structured JSON data."""

        try:
            response = self._client.responses.create(
                model=model,
                input=[
                    {
                        "role": "system",
                        "content": [
                            {"type": "input_text", "text": system_prompt},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "input_text",
                                "text": json.dumps(user_payload, ensure_ascii=False),
                            }
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service unavailable: {exc}"
            ) from exc
        _log_debug(self.debug, "provider.response.raw", _safe_dump_response(response))
        return self._extract_translations(response)

    def _extract_translations(self, response: Any) -> list[dict[str, Any]]:
        """Extract the structured translation list from a Responses API result."""

        content = getattr(response, "output", None)
        if content:
            for item in content:
                parts = getattr(item, "content", None) or []
                for part in parts:
                    text_value = getattr(part, "text", None)
                    if hasattr(text_value, "value"):
                        text_value = text_value.value
                    if text_value:
                        try:
                            return _normalise_translations(str(text_value))
                        except TranslationProviderError:
                            continue

        output_text = getattr(response, "output_text", None)
        if output_text:
            return _normalise_translations(str(output_text))

        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )


class AzureOpenAITranslationProvider(OpenAITranslationProvider):
    """OpenAI provider variant talking to an Azure OpenAI deployment."""

    name = "azure_openai"

    def __init__(
        self,
        *,
        api_key: str | None,
        endpoint: str | None,
        api_version: str | None,
        deployment_name: str | None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": api_key,
                "AZURE_OPENAI_ENDPOINT": endpoint,
                "AZURE_OPENAI_API_VERSION": api_version,
                "AZURE_OPENAI_DEPLOYMENT_NAME": deployment_name,
            }.items()
            if not value
        ]
        if missing:
            raise MissingCredentialError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )

        try:
            from openai import AzureOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        self._client = AzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=endpoint,
        )
        self.model = deployment_name  # type: ignore[assignment]


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Translation provider that uses the Chat Completions API for compatibility."""

    name = "legacy_openai"

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> list[dict[str, Any]]:
        """Call the Chat Completions API and return structured JSON data."""

        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service unavailable: {exc}"
            ) from exc
        _log_debug(self.debug, "provider.response.raw", _safe_dump_response(response))

        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                return _normalise_translations(str(message_content))

        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )


def _log_debug(enabled: bool, label: str, payload: Any) -> None:
    """Emit structured debug information when enabled."""

    if not enabled:
        return
    try:
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
    except (TypeError, ValueError):
        message = repr(payload)
    print(f"[babelmark][provider-debug] {label}:\n{message}", file=sys.stderr)


def _safe_dump_response(response: Any) -> Any:
    """Best-effort conversion of SDK response objects into JSON-friendly data."""

    dump = getattr(response, "model_dump", None)
    if callable(dump):
        try:
            return dump()
        except Exception:  # pragma: no cover - debug output only
            pass
    return str(response)


def _strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def _normalise_translations(payload: Any) -> list[dict[str, Any]]:
    """Normalise raw payloads into a list of translation dictionaries."""

    if isinstance(payload, str):
        try:
            payload = json.loads(_strip_code_fence(payload))
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

    if isinstance(payload, dict):
        translations = payload.get("translations")
        if isinstance(translations, list):
            return translations

    if isinstance(payload, list):
        return payload

    raise TranslationProviderError(
        "Translation provider response malformed: could not find translations list."
    )


def build_provider(
    name: str | None,
    *,
    settings: Any = None,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name from runtime settings."""

    normalized = (name or "deepl").strip().lower().replace("-", "_")

    def setting(key: str) -> Any:
        return getattr(settings, key, None) if settings is not None else None

    if normalized in {"deepl", "default"}:
        return DeepLTranslationProvider(
            auth_key=setting("DEEPL_AUTH_KEY"),
            server_url=setting("DEEPL_SERVER_URL"),
            debug=debug,
        )
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationProvider(
            api_key=setting("OPENAI_API_KEY"),
            model=setting("OPENAI_MODEL"),
            debug=debug,
        )
    if normalized in {"legacy_openai", "legacy", "openai_legacy"}:
        return LegacyOpenAITranslationProvider(
            api_key=setting("OPENAI_API_KEY"),
            model=setting("OPENAI_MODEL"),
            debug=debug,
        )
    if normalized in {"azure_openai", "azure"}:
        return AzureOpenAITranslationProvider(
            api_key=setting("AZURE_OPENAI_API_KEY"),
            endpoint=setting("AZURE_OPENAI_ENDPOINT"),
            api_version=setting("AZURE_OPENAI_API_VERSION"),
            deployment_name=setting("AZURE_OPENAI_DEPLOYMENT_NAME"),
            debug=debug,
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise ConfigurationError(f"Unknown translation provider '{name}'.")
