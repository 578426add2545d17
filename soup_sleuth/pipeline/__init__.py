"""Question pipeline: validate → judge → validate judgment → fallback → reduce → persist.

See orchestrator.run_turn for the full turn flow. Failures raise one of:
  QuestionError           bad player input, nothing was sent to the judge
  JudgeError              judge unreachable, timed out or returned garbage (retryable)
  JudgmentError           judge output failed validation (retryable)
  SessionNotFoundError    explicit session id does not exist for this owner/puzzle
  SessionCompleteError    the session is already solved
"""

from .orchestrator import (  # noqa: F401
    MAX_QUESTION_LENGTH,
    QuestionError,
    SessionCompleteError,
    SessionLocks,
    SessionNotFoundError,
    reset_session,
    run_turn,
    validate_question,
)
