"""
AI proxy handlers

Each endpoint reshapes a client request into a Gemini generateContent call
and normalizes the reply. The extraction endpoints always answer 200 with a
well-formed object so the client flow is never interrupted.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import requests
from flask import Blueprint, current_app, jsonify, request

from .extraction import (
    Fallback, NO_TASKS, NO_UPDATE, clean_profile_result, clean_task_result, parse_model_json,
)
from .gemini_client import GeminiClient, user_content
from .prompts import PERSONA, build_profile_update_prompt, build_task_extraction_prompt
from .store import CONTEXT_WINDOW

logger = logging.getLogger(__name__)

ai_bp = Blueprint('ai', __name__)

CHAT_TEMPERATURE = 0.9
CHAT_MAX_OUTPUT_TOKENS = 1000
EXTRACTION_TEMPERATURE = 0.3
EXTRACTION_MAX_OUTPUT_TOKENS = 1024
NO_REPLY_TEXT = '応答を取得できませんでした。'


def _today() -> date:
    return date.today()


def to_gemini_contents(messages: List[Dict[str, Any]], limit: int = CONTEXT_WINDOW) -> List[Dict[str, Any]]:
    """Last ``limit`` chat messages as Gemini turns; assistant maps to model"""
    contents = []
    for message in messages[-limit:]:
        role = 'model' if message.get('role') == 'assistant' else 'user'
        contents.append({'role': role, 'parts': [{'text': message.get('content', '')}]})
    return contents


def chat_reply(client: GeminiClient, messages: List[Dict[str, Any]],
               system_prompt: Optional[str] = None) -> Tuple[Dict[str, Any], int]:
    """
    Conversational reply

    Returns:
        (body, status). An upstream failure is passed through with its status.
    """
    result = client.generate_content(
        to_gemini_contents(messages),
        system_instruction=system_prompt or PERSONA,
        temperature=CHAT_TEMPERATURE,
        max_output_tokens=CHAT_MAX_OUTPUT_TOKENS,
    )
    if not result.ok:
        return {'error': 'AI API error', 'details': result.error}, result.status_code
    return {'response': result.text or NO_REPLY_TEXT}, 200


def _structured_call(client: GeminiClient, prompt: str, default: Dict[str, Any]):
    try:
        result = client.generate_content(
            [user_content(prompt)],
            temperature=EXTRACTION_TEMPERATURE,
            max_output_tokens=EXTRACTION_MAX_OUTPUT_TOKENS,
        )
    except requests.RequestException as e:
        logger.error("Gemini request failed: %s", e)
        return Fallback(dict(default), 'network error')

    if not result.ok:
        return Fallback(dict(default), f"upstream status {result.status_code}")

    parsed = parse_model_json(result.text, default)
    if isinstance(parsed, Fallback):
        logger.warning("JSON parse error (%s), raw text: %.500s", parsed.reason, parsed.raw)
    return parsed


def extract_tasks(client: GeminiClient, user_message: str, current_tasks: Any,
                  today: Optional[date] = None) -> Dict[str, Any]:
    """Tasks mentioned in a user message, or {"hasTasks": false}"""
    today = today or _today()
    prompt = build_task_extraction_prompt(user_message, current_tasks, today)
    parsed = _structured_call(client, prompt, NO_TASKS)
    if isinstance(parsed, Fallback):
        return parsed.value
    return clean_task_result(parsed.value, current_tasks, today)


def extract_profile_updates(client: GeminiClient, user_message: str,
                            current_profile: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Profile deltas mentioned in a user message, or {"hasUpdate": false}"""
    prompt = build_profile_update_prompt(user_message, current_profile)
    parsed = _structured_call(client, prompt, NO_UPDATE)
    if isinstance(parsed, Fallback):
        return parsed.value
    return clean_profile_result(parsed.value)


def make_client(config) -> Optional[GeminiClient]:
    """Client from Flask config, or None when no API key is configured"""
    api_key = config.get('GEMINI_API_KEY')
    if not api_key:
        return None
    return GeminiClient(
        api_key,
        model=config.get('GEMINI_MODEL'),
        api_base=config.get('GEMINI_API_BASE'),
        timeout=config.get('GEMINI_TIMEOUT'),
    )


def _json_body() -> Optional[Dict[str, Any]]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _missing_key_response():
    logger.error("GEMINI_API_KEY is not configured")
    return jsonify({'error': 'API key not configured'}), 500


def _valid_messages(messages) -> bool:
    if not isinstance(messages, list):
        return False
    return all(
        isinstance(m, dict) and isinstance(m.get('content'), str)
        for m in messages
    )


@ai_bp.route('/api/chat', methods=['POST'])
def chat():
    """Conversational proxy"""
    data = _json_body()
    if not data or not _valid_messages(data.get('messages')):
        return jsonify({'error': 'Invalid request'}), 400

    system_prompt = data.get('systemPrompt')
    if system_prompt is not None and not isinstance(system_prompt, str):
        return jsonify({'error': 'Invalid request'}), 400

    try:
        client = make_client(current_app.config)
        if client is None:
            return _missing_key_response()
        body, status = chat_reply(client, data['messages'], system_prompt)
        return jsonify(body), status
    except Exception as e:
        logger.exception("Chat API error")
        return jsonify({'error': 'Internal server error', 'message': str(e)}), 500


@ai_bp.route('/api/extract-tasks', methods=['POST'])
def extract_tasks_endpoint():
    """Task extraction proxy"""
    data = _json_body()
    if not data or not isinstance(data.get('userMessage'), str) or not data['userMessage'].strip():
        return jsonify({'error': 'Invalid request'}), 400

    current_tasks = data.get('currentTasks') or []
    if not isinstance(current_tasks, list):
        return jsonify({'error': 'Invalid request'}), 400

    try:
        client = make_client(current_app.config)
        if client is None:
            return _missing_key_response()
        return jsonify(extract_tasks(client, data['userMessage'], current_tasks, _today()))
    except Exception:
        logger.exception("Task extraction error")
        return jsonify(NO_TASKS)


@ai_bp.route('/api/update-profile', methods=['POST'])
def update_profile_endpoint():
    """Profile update proxy"""
    data = _json_body()
    if not data or not isinstance(data.get('userMessage'), str) or not data['userMessage'].strip():
        return jsonify({'error': 'Invalid request'}), 400

    current_profile = data.get('currentProfile') or {}
    if not isinstance(current_profile, dict):
        return jsonify({'error': 'Invalid request'}), 400

    try:
        client = make_client(current_app.config)
        if client is None:
            return _missing_key_response()
        return jsonify(extract_profile_updates(client, data['userMessage'], current_profile))
    except Exception:
        logger.exception("Profile update error")
        return jsonify(NO_UPDATE)
