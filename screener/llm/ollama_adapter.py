"""
screener/llm/ollama_adapter.py
Ollama backend adapter — local models, no API key.
Supports any model pulled via `ollama pull <model>`.

Uses Ollama JSON mode (format=json) so the reply is a single JSON object.
"""

import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import List

from screener.errors import RemoteClassificationFailure
from screener.llm.base import SYSTEM_PROMPT, ClassifierAdapter

logger = logging.getLogger(__name__)


class OllamaAdapter(ClassifierAdapter):

    name = 'ollama'

    def __init__(
        self,
        model:             str   = 'llama3.1:8b',
        host:              str   = 'http://localhost:11434',
        timeout_sec:       int   = 120,
        temperature:       float = 0.1,
        max_retries:       int   = 0,
        retry_backoff_sec: float = 1.0,
    ):
        super().__init__(
            model             = model,
            timeout_sec       = timeout_sec,
            temperature       = temperature,
            max_retries       = max_retries,
            retry_backoff_sec = retry_backoff_sec,
        )
        self.host = host.rstrip('/')

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_available(self) -> bool:
        """Ping Ollama and confirm the configured model is pulled."""
        try:
            models = self._fetch_models()
        except urllib.error.URLError:
            logger.warning(
                "Ollama not reachable at " + self.host +
                ". Start Ollama or check if it's running."
            )
            return False
        except Exception as e:
            logger.warning(f"Ollama availability check failed: {e}")
            return False

        # Prefix match: "llama3.1" matches "llama3.1:8b"
        available = any(
            m == self.model or m.startswith(self.model.split(':')[0])
            for m in models
        )
        if not available:
            logger.warning(
                f"Model '{self.model}' not found in Ollama. "
                f"Available: {models}. "
                f"Run: ollama pull {self.model}"
            )
        return available

    # ── CLASSIFICATION REQUEST ───────────────────────────────
    def _generate(self, text: str) -> str:
        payload = json.dumps({
            'model':  self.model,
            'system': SYSTEM_PROMPT,
            'prompt': text,
            'stream': False,
            'options': {
                'temperature': self.temperature,
                'num_predict': 300,
            },
            'format': 'json',
        }).encode('utf-8')

        req = urllib.request.Request(
            f"{self.host}/api/generate",
            data    = payload,
            headers = {'Content-Type': 'application/json'},
            method  = 'POST',
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                data = json.loads(resp.read().decode('utf-8'))
        except (OSError, http.client.HTTPException) as e:
            raise RemoteClassificationFailure(f"Ollama request failed: {e!r}") from e
        except json.JSONDecodeError as e:
            raise RemoteClassificationFailure(f"Ollama returned non-JSON envelope: {e}") from e

        if 'error' in data:
            raise RemoteClassificationFailure(f"Ollama error: {data['error']}")
        return str(data.get('response', ''))

    # ── MODEL MANAGEMENT HELPERS ─────────────────────────────
    def _fetch_models(self) -> List[str]:
        req = urllib.request.Request(f"{self.host}/api/tags", method='GET')
        with urllib.request.urlopen(req, timeout=5) as resp:
            data = json.loads(resp.read().decode())
        return [m['name'] for m in data.get('models', [])]

    def list_available_models(self) -> List[str]:
        """Return list of locally available Ollama model names."""
        try:
            return self._fetch_models()
        except Exception as e:
            logger.warning(f"Could not list Ollama models: {e}")
            return []
