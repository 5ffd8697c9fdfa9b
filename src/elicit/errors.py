"""
Elicit Error Hierarchy

Standardized error handling for all elicit modules.
All exceptions inherit from ElicitError for consistent handling.
"""


class ElicitError(Exception):
    """Base exception for all elicit errors."""

    def __init__(self, message: str, code: str = "ELICIT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to response dict for MCP tool returns."""
        return {
            "success": False,
            "error": self.message,
            "code": self.code
        }


# =============================================================================
# Template Errors
# =============================================================================

class TemplateSourceError(ElicitError):
    """Raised when the template catalog cannot be loaded."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            f"Question templates at {path} are invalid: {detail}",
            "TEMPLATES_INVALID"
        )
        self.path = path
        self.detail = detail


class TemplatesNotFoundError(ElicitError):
    """Raised when the template file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            f"Question templates not found at {path}",
            "TEMPLATES_NOT_FOUND"
        )
        self.path = path


class UnknownPhaseError(ElicitError):
    """Raised when a phase has no entry in the phase transitions."""

    def __init__(self, phase: str):
        super().__init__(
            f"No phase requirements for {phase}",
            "UNKNOWN_PHASE"
        )
        self.phase = phase


# =============================================================================
# Session Errors
# =============================================================================

class EngineNotInitializedError(ElicitError):
    """Raised when the engine is used before initialize()."""

    def __init__(self, operation: str):
        super().__init__(
            f"Question engine not initialized; call initialize() before {operation}",
            "ENGINE_NOT_INITIALIZED"
        )
        self.operation = operation


class SessionNotFoundError(ElicitError):
    """Raised when a questioning session ID doesn't exist."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} not found",
            "SESSION_NOT_FOUND"
        )
        self.session_id = session_id


class SessionAlreadyExistsError(ElicitError):
    """Raised when trying to create a duplicate session."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} already exists",
            "SESSION_EXISTS"
        )
        self.session_id = session_id


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(ElicitError):
    """Raised when input validation fails."""

    def __init__(self, field: str, message: str):
        super().__init__(
            f"Validation error for '{field}': {message}",
            "VALIDATION_ERROR"
        )
        self.field = field


class InvalidConfidenceError(ValidationError):
    """Raised when confidence is outside 0.0-1.0 range."""

    def __init__(self, field: str, value: float):
        super().__init__(
            field,
            f"Confidence must be 0.0-1.0, got {value}"
        )
        self.value = value


class InvalidWeightsError(ValidationError):
    """Raised when factor weights cannot be normalized."""

    def __init__(self, detail: str):
        super().__init__("weights", detail)


# =============================================================================
# Persistence Errors
# =============================================================================

class PersistenceError(ElicitError):
    """Raised when a question store operation fails."""

    def __init__(self, operation: str, detail: str):
        super().__init__(
            f"Store operation '{operation}' failed: {detail}",
            "PERSISTENCE_ERROR"
        )
        self.operation = operation
        self.detail = detail
