"""
Progress notification: per-session event history plus an optional webhook
"""

import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

import requests

from .logger import get_logger


class ProgressNotifier:
    """Record analysis progress events and forward them to a webhook"""

    def __init__(self, webhook_url: Optional[str] = None, history_size: int = 200, timeout: float = 10):
        self.webhook_url = webhook_url
        self.history_size = history_size
        self.timeout = timeout
        self.logger = get_logger(__name__)
        self._history: Dict[str, Deque[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def notify(self, session_id: str, step: str, current: int, total: int, status: str) -> Dict[str, Any]:
        """Store one event and push it to the webhook if one is configured"""
        event = {
            'session_id': session_id,
            'step': step,
            'current': current,
            'total': total,
            'status': status,
            'percentage': round(current / total * 100) if total else 100,
            'timestamp': datetime.now().isoformat(),
        }

        with self._lock:
            history = self._history.setdefault(session_id, deque(maxlen=self.history_size))
            history.append(event)

        if self.webhook_url:
            self._send_webhook(event)
        return event

    def sink_for(self, session_id: str) -> Callable[[str, int, int, str], None]:
        """Progress callback bound to one session"""
        def sink(step: str, current: int, total: int, status: str):
            self.notify(session_id, step, current, total, status)
        return sink

    def get_history(self, session_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history.get(session_id, ()))

    def clear(self, session_id: str):
        with self._lock:
            self._history.pop(session_id, None)

    def _send_webhook(self, event: Dict[str, Any]) -> bool:
        """Deliver an event; failures are logged, never raised"""
        try:
            response = requests.post(self.webhook_url, json=event, timeout=self.timeout)
            if response.status_code >= 400:
                self.logger.warning(f"Progress webhook failed: {response.status_code} {response.text[:200]}")
                return False
            return True
        except Exception as e:
            self.logger.warning(f"Progress webhook error: {e}")
            return False
