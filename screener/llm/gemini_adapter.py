"""
screener/llm/gemini_adapter.py
Google Gemini backend adapter (Generative Language REST API).

The system prompt goes in systemInstruction and
generationConfig.responseMimeType=application/json asks the service for
structured JSON only. Requires an API key (GEMINI_API_KEY).
"""

import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict

from screener.errors import ConfigError, RemoteClassificationFailure
from screener.llm.base import SYSTEM_PROMPT, ClassifierAdapter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://generativelanguage.googleapis.com/v1beta'


class GeminiAdapter(ClassifierAdapter):

    name = 'gemini'

    def __init__(
        self,
        api_key:           str,
        model:             str   = 'gemini-2.5-flash',
        base_url:          str   = DEFAULT_BASE_URL,
        timeout_sec:       int   = 60,
        temperature:       float = 0.1,
        max_retries:       int   = 0,
        retry_backoff_sec: float = 1.0,
    ):
        if not api_key:
            raise ConfigError("GEMINI_API_KEY is not set in environment variables or config.")
        super().__init__(
            model             = model,
            timeout_sec       = timeout_sec,
            temperature       = temperature,
            max_retries       = max_retries,
            retry_backoff_sec = retry_backoff_sec,
        )
        self.api_key  = api_key
        self.base_url = base_url.rstrip('/')

    def _headers(self) -> Dict[str, str]:
        return {
            'Content-Type':   'application/json',
            'x-goog-api-key': self.api_key,
        }

    def is_available(self) -> bool:
        """Look the model up — confirms both the key and the model name."""
        req = urllib.request.Request(
            f"{self.base_url}/models/{self.model}",
            headers = self._headers(),
            method  = 'GET',
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return resp.status == 200
        except urllib.error.HTTPError as e:
            logger.warning(f"Gemini model lookup failed: HTTP {e.code} for '{self.model}'")
            return False
        except Exception as e:
            logger.warning(f"Gemini not reachable: {e}")
            return False

    def build_request(self, text: str) -> Dict[str, Any]:
        return {
            'systemInstruction': {'parts': [{'text': SYSTEM_PROMPT}]},
            'contents': [{'role': 'user', 'parts': [{'text': text}]}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'temperature':      self.temperature,
            },
        }

    def _generate(self, text: str) -> str:
        payload = json.dumps(self.build_request(text)).encode('utf-8')
        req = urllib.request.Request(
            f"{self.base_url}/models/{self.model}:generateContent",
            data    = payload,
            headers = self._headers(),
            method  = 'POST',
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                data = json.loads(resp.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            detail = _error_message(e)
            raise RemoteClassificationFailure(f"Gemini HTTP {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise RemoteClassificationFailure(f"Gemini request failed: {e.reason}") from e
        except (OSError, http.client.HTTPException) as e:
            raise RemoteClassificationFailure(f"Gemini request failed: {e!r}") from e
        except json.JSONDecodeError as e:
            raise RemoteClassificationFailure(f"Gemini returned non-JSON envelope: {e}") from e

        return _response_text(data)


def _error_message(err: urllib.error.HTTPError) -> str:
    try:
        body = json.loads(err.read().decode('utf-8'))
        return body.get('error', {}).get('message') or err.reason
    except Exception:
        return str(err.reason)


def _response_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get('candidates') or []
    if not candidates:
        reason = (data.get('promptFeedback') or {}).get('blockReason', 'no candidates')
        raise RemoteClassificationFailure(f"Gemini returned no answer: {reason}")

    parts = (candidates[0].get('content') or {}).get('parts') or []
    text  = ''.join(p.get('text', '') for p in parts if isinstance(p, dict))
    if not text.strip():
        reason = candidates[0].get('finishReason', 'empty response')
        raise RemoteClassificationFailure(f"Gemini returned empty text: {reason}")
    return text
