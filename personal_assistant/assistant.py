"""
Conversation flow

A user message is stored, answered through the chat handler, and then mined
for tasks and profile facts which are merged back into the store.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from .ai_handlers import chat_reply, extract_profile_updates, extract_tasks
from .aggregation import task_view
from .gemini_client import GeminiClient
from .prompts import build_persona_prompt
from .store import AppStore, CONTEXT_WINDOW

logger = logging.getLogger(__name__)

ERROR_REPLY_TEXT = 'エラーが発生しました。もう一度お試しください。'


class AssistantService:
    """Runs one chat turn against the store"""

    def __init__(self, store: AppStore, client: GeminiClient,
                 extract_tasks_enabled: bool = True, update_profile_enabled: bool = True):
        self.store = store
        self.client = client
        self.extract_tasks_enabled = extract_tasks_enabled
        self.update_profile_enabled = update_profile_enabled

    def _reply(self, today: date) -> str:
        system_prompt = build_persona_prompt(
            self.store.projects_for_prompt(), self.store.tasks_for_prompt(), today
        )
        history = [m.to_dict() for m in self.store.recent_messages(CONTEXT_WINDOW)]
        try:
            body, status = chat_reply(self.client, history, system_prompt)
        except Exception:
            logger.exception("Chat error")
            return ERROR_REPLY_TEXT
        if status != 200:
            return ERROR_REPLY_TEXT
        return body['response']

    def _extract_tasks(self, content: str, today: date):
        try:
            result = extract_tasks(self.client, content, self.store.tasks_for_prompt(), today)
        except Exception:
            logger.exception("Task extraction error")
            return []
        if not result.get('hasTasks'):
            return []
        return self.store.add_extracted_tasks(result.get('tasks') or [])

    def _update_profile(self, content: str) -> bool:
        try:
            result = extract_profile_updates(self.client, content, self.store.profile)
        except Exception:
            logger.exception("Profile update error")
            return False
        if not result.get('hasUpdate'):
            return False
        self.store.apply_profile_updates(result.get('updates') or {})
        return True

    def send_message(self, content: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Handle one user message

        Args:
            content: User text
            today: Reference date for prompts and derived tiers

        Returns:
            Dict with the stored user and assistant messages, tasks created
            from the message and whether the profile changed

        Raises:
            ValueError: Empty message
        """
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Message content is required")
        today = today or date.today()

        user_message = self.store.append_message('user', content)
        reply = self._reply(today)
        assistant_message = self.store.append_message('assistant', reply)

        created = self._extract_tasks(content, today) if self.extract_tasks_enabled else []
        profile_updated = self._update_profile(content) if self.update_profile_enabled else False

        return {
            'userMessage': user_message.to_dict(),
            'assistantMessage': assistant_message.to_dict(),
            'createdTasks': [task_view(t, today) for t in created],
            'profileUpdated': profile_updated
        }
