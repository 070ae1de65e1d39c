"""
Progress events emitted by a run, and their JSON-lines transport.

Event types:
- phase: human-readable status text
- info: non-fatal notice
- result: one skill's running or final statistics
- error: scenario-level or per-skill failure
- complete: final result list, sorted by efficiency
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .types import SkillResult

logger = logging.getLogger(__name__)

EVENT_TYPES = ('phase', 'info', 'result', 'error', 'complete')


@dataclass
class ProgressEvent:
    """One progress event; only the field matching `type` is set."""
    type: str
    phase: Optional[str] = None
    info: Optional[str] = None
    result: Optional[SkillResult] = None
    results: Optional[List[SkillResult]] = None
    error: Optional[str] = None
    skill: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValueError(
                f"Unknown event type '{self.type}'. Expected one of: {', '.join(EVENT_TYPES)}"
            )

    @classmethod
    def phase_event(cls, text: str) -> 'ProgressEvent':
        return cls('phase', phase=text)

    @classmethod
    def info_event(cls, text: str) -> 'ProgressEvent':
        return cls('info', info=text)

    @classmethod
    def result_event(cls, result: SkillResult) -> 'ProgressEvent':
        return cls('result', result=result, skill=result.skill)

    @classmethod
    def error_event(cls, text: str, skill: Optional[str] = None) -> 'ProgressEvent':
        return cls('error', error=text, skill=skill)

    @classmethod
    def complete_event(cls, results: List[SkillResult]) -> 'ProgressEvent':
        return cls('complete', results=list(results))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to serializable dict."""
        data: Dict[str, Any] = {'type': self.type}
        if self.phase is not None:
            data['phase'] = self.phase
        if self.info is not None:
            data['info'] = self.info
        if self.result is not None:
            data['result'] = self.result.to_dict()
        if self.results is not None:
            data['results'] = [r.to_dict() for r in self.results]
        if self.error is not None:
            data['error'] = self.error
        if self.skill is not None:
            data['skill'] = self.skill
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProgressEvent':
        result = data.get('result')
        results = data.get('results')
        return cls(
            type=data['type'],
            phase=data.get('phase'),
            info=data.get('info'),
            result=SkillResult.from_dict(result) if result is not None else None,
            results=[SkillResult.from_dict(r) for r in results] if results is not None else None,
            error=data.get('error'),
            skill=data.get('skill'),
        )

    def to_json(self) -> str:
        """Single-line JSON encoding."""
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_progress_line(line: str) -> Optional[ProgressEvent]:
    """
    Decode one JSON-lines progress message.

    Malformed input is logged and dropped; this never raises.

    Returns:
        ProgressEvent, or None for blank or malformed lines
    """
    text = line.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("progress message is not a JSON object")
        return ProgressEvent.from_dict(data)
    except (ValueError, KeyError, TypeError, RecursionError) as e:
        logger.warning(f"Ignoring malformed progress message: {e}")
        return None
