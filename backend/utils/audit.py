"""
Structured audit logging for authentication and account events.

Events go to a dedicated 'audit' logger as one JSON object per line.
The request id and authenticated actor are carried across awaits with
``contextvars`` so nested calls do not need to pass them around.

Passwords, hashes, tokens and verification codes are never recorded.
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)

_actor_context: ContextVar[Optional[str]] = ContextVar(
    'actor', default=None
)


class AuditLogger:
    """Writes structured audit events to the 'audit' logger."""

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: str) -> None:
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        return _request_id_context.get()

    def set_actor(self, actor: Optional[str]) -> None:
        """Set the authenticated user for this request context."""
        _actor_context.set(actor)

    def get_actor(self) -> Optional[str]:
        return _actor_context.get()

    def log(
        self,
        action: str,
        actor: str,
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Core method to log a structured audit event.

        Args:
            action: What happened (e.g. 'REGISTER', 'LOGIN', 'ACCESS_DENIED')
            actor: Who did it; 'user' resolves to the current request's actor
            resource: Type of resource affected (e.g. 'User', 'Restaurant')
            resource_id: Identifier of the affected resource
            status: 'success' or 'failure'
            details: Optional extra context
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            'actor': actor if actor != 'user' else (self.get_actor() or 'user'),
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': details or {},
        }
        self.logger.info(json.dumps(event, default=str))

    def log_account_event(
        self,
        action: str,
        status: str,
        user_id: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        """Log a registration, login, verification or profile change."""
        details = {'error': error} if error else {}
        self.log(
            action=action,
            actor='user',
            resource='User',
            resource_id=str(user_id) if user_id is not None else 'unknown',
            status=status,
            details=details,
        )


# Global audit logger instance for convenient import
audit = AuditLogger()
