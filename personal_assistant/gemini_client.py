"""
Gemini generateContent client

One blocking HTTP round trip per call: no retries, no request coalescing.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = 'https://generativelanguage.googleapis.com/v1beta'
DEFAULT_MODEL = 'gemini-3-flash-preview'


class GenerationResponse:
    """Outcome of a generateContent call"""

    def __init__(self, ok: bool, status_code: int, text: str = '', error: Any = None):
        self.ok = ok
        self.status_code = status_code
        self.text = text
        self.error = error

    def __repr__(self):
        return f"GenerationResponse(ok={self.ok}, status_code={self.status_code})"


def extract_text(data: Dict[str, Any]) -> str:
    """First candidate's first text part, or an empty string"""
    try:
        return data['candidates'][0]['content']['parts'][0].get('text') or ''
    except (KeyError, IndexError, TypeError, AttributeError):
        return ''


def user_content(text: str) -> Dict[str, Any]:
    return {'role': 'user', 'parts': [{'text': text}]}


class GeminiClient:
    """Thin wrapper over the REST endpoint"""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL,
                 api_base: str = DEFAULT_API_BASE, timeout: float = 30):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def build_payload(self, contents: List[Dict[str, Any]], system_instruction: Optional[str] = None,
                      temperature: float = 0.7, max_output_tokens: int = 1024) -> Dict[str, Any]:
        payload = {
            'contents': contents,
            'generationConfig': {
                'temperature': temperature,
                'maxOutputTokens': max_output_tokens,
            }
        }
        if system_instruction:
            payload['systemInstruction'] = {'parts': [{'text': system_instruction}]}
        return payload

    def generate_content(self, contents: List[Dict[str, Any]], system_instruction: Optional[str] = None,
                         temperature: float = 0.7, max_output_tokens: int = 1024) -> GenerationResponse:
        """
        Call generateContent

        Args:
            contents: Conversation turns ({role, parts:[{text}]})
            system_instruction: Optional persona/system text
            temperature: Sampling temperature
            max_output_tokens: Output length bound

        Returns:
            GenerationResponse; a non-2xx upstream status is reported, not raised

        Raises:
            requests.RequestException on network failure
        """
        payload = self.build_payload(contents, system_instruction, temperature, max_output_tokens)
        response = requests.post(
            self.endpoint,
            json=payload,
            headers={
                'Content-Type': 'application/json',
                'x-goog-api-key': self.api_key,
            },
            timeout=self.timeout,
        )

        if not response.ok:
            try:
                error = response.json()
            except ValueError:
                error = {'message': response.text}
            logger.error("Gemini API error %s: %s", response.status_code, error)
            return GenerationResponse(False, response.status_code, error=error)

        try:
            data = response.json()
        except ValueError:
            logger.error("Gemini API returned a non-JSON body")
            data = {}
        return GenerationResponse(True, response.status_code, text=extract_text(data))
