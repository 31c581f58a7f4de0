from quizdeck.models.user import User, UserRole
from quizdeck.models.quiz import Question, Quiz
from quizdeck.models.attempt import Attempt, AttemptAnswer
from quizdeck.models.security_audit import SecurityAuditEvent

__all__ = [
    "User",
    "UserRole",
    "Quiz",
    "Question",
    "Attempt",
    "AttemptAnswer",
    "SecurityAuditEvent",
]
