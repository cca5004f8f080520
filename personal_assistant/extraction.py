"""Parsing and clean-up of structured model output."""

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)

NO_TASKS = {'hasTasks': False}
NO_UPDATE = {'hasUpdate': False}
TASK_PRIORITIES = ('high', 'medium', 'low')

_FENCE_OPEN = re.compile(r'```[A-Za-z]*\n?')
_FENCE_CLOSE = re.compile(r'```\n?')

# Ignored when counting shared words between two titles
STOP_WORDS = {
    'the', 'a', 'an', 'to', 'for', 'and', 'or', 'of', 'in', 'on', 'with',
    'from', 'by', 'up',
}
MIN_CONTAINED_LENGTH = 3
# Containment only counts when the shorter title covers most of the longer one
MIN_CONTAINED_RATIO = 0.8
SHARED_WORDS_FOR_DUPLICATE = 3


@dataclass(frozen=True)
class Parsed:
    value: Dict[str, Any]


@dataclass(frozen=True)
class Fallback:
    value: Dict[str, Any]
    reason: str
    raw: str = field(default='', repr=False)


ParseResult = Union[Parsed, Fallback]


def strip_code_fence(text: str) -> str:
    """Remove markdown code fences (```json ... ```) around model output."""
    text = _FENCE_OPEN.sub('', text or '')
    return _FENCE_CLOSE.sub('', text).strip()


def parse_model_json(text: str, default: Dict[str, Any]) -> ParseResult:
    """
    Parse a JSON object out of free-form model output.

    Never raises: anything that is not a JSON object after fence stripping
    (and, failing that, after cutting from the first '{' to the last '}')
    yields a Fallback carrying a copy of ``default``.
    """
    clean = strip_code_fence(text)
    candidates = [clean]
    start, end = clean.find('{'), clean.rfind('}')
    if start != -1 and end > start and (start, end) != (0, len(clean) - 1):
        candidates.append(clean[start:end + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return Parsed(value)
        return Fallback(dict(default), f"expected a JSON object, got {type(value).__name__}", text)

    return Fallback(dict(default), 'invalid JSON', text)


def _normalize(text: str) -> str:
    text = unicodedata.normalize('NFKC', text or '').casefold()
    text = ''.join(' ' if unicodedata.category(ch).startswith('P') else ch for ch in text)
    return ' '.join(text.split())


def _significant_words(normalized: str) -> set:
    return {word for word in normalized.split() if word not in STOP_WORDS}


def is_duplicate_title(title: str, other: str) -> bool:
    """
    Fuzzy title match.

    Two titles match when their normalized, space-free forms are equal, one
    contains the other (the shorter being at least three characters long
    and at least 80% of the longer one), or they share three or more
    significant words.
    """
    a, b = _normalize(title), _normalize(other)
    compact_a, compact_b = a.replace(' ', ''), b.replace(' ', '')
    if not compact_a or not compact_b:
        return False
    if compact_a == compact_b:
        return True
    shorter, longer = sorted((compact_a, compact_b), key=len)
    if (len(shorter) >= MIN_CONTAINED_LENGTH and shorter in longer
            and len(shorter) >= MIN_CONTAINED_RATIO * len(longer)):
        return True
    shared = _significant_words(a) & _significant_words(b)
    return len(shared) >= SHARED_WORDS_FOR_DUPLICATE


def dedupe_tasks(candidates: List[Dict[str, Any]], existing: List[Any]) -> List[Dict[str, Any]]:
    """Drop candidates whose title duplicates an existing or earlier candidate title."""
    seen = [
        item['title'] for item in existing
        if isinstance(item, dict) and isinstance(item.get('title'), str)
    ]
    kept = []
    for candidate in candidates:
        title = candidate.get('title')
        if not isinstance(title, str) or not title.strip():
            continue
        if any(is_duplicate_title(title, other) for other in seen):
            logger.info("Skipping duplicate task: %s", title)
            continue
        seen.append(title)
        kept.append(candidate)
    return kept


def normalize_due_date(value: Any, today: date) -> Optional[str]:
    """
    Coerce a model-supplied due date to YYYY-MM-DD.

    A date whose year lies before the current one is treated as year drift
    and moved to the current year, or the next if that is still past.
    """
    if not value or not isinstance(value, str) or value.strip().lower() in ('null', 'none'):
        return None
    default = datetime(today.year, today.month, today.day)
    try:
        due = dateparser.parse(value.strip(), default=default).date()
    except (ValueError, OverflowError, TypeError):
        logger.info("Dropping unparseable due date: %r", value)
        return None

    if due.year < today.year:
        try:
            shifted = due.replace(year=today.year)
            if shifted < today:
                shifted = due.replace(year=today.year + 1)
            due = shifted
        except ValueError:
            # Feb 29 into a non-leap year
            pass
    return due.isoformat()


def clean_task_result(result: Dict[str, Any], current_tasks: Any, today: date) -> Dict[str, Any]:
    """Sanitize and de-duplicate a parsed task-extraction result."""
    if result.get('hasTasks') is not True or not isinstance(result.get('tasks'), list):
        return dict(NO_TASKS)

    cleaned = []
    for item in result['tasks']:
        if not isinstance(item, dict):
            continue
        title = item.get('title')
        if not isinstance(title, str) or not title.strip():
            continue
        task = dict(item)
        if task.get('priority') not in TASK_PRIORITIES:
            task['priority'] = 'medium'
        task['projectId'] = None
        task['dueDate'] = normalize_due_date(task.get('dueDate'), today)
        cleaned.append(task)

    # completed tasks do not block a recurring task with the same title
    existing = [
        t for t in (current_tasks if isinstance(current_tasks, list) else [])
        if not (isinstance(t, dict) and t.get('completed'))
    ]
    kept = dedupe_tasks(cleaned, existing)
    if not kept:
        return dict(NO_TASKS)
    return {**result, 'tasks': kept}


def clean_profile_result(result: Dict[str, Any]) -> Dict[str, Any]:
    if result.get('hasUpdate') is not True or not isinstance(result.get('updates'), dict):
        return dict(NO_UPDATE)
    return result
