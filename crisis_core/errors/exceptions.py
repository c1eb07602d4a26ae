# =============================================================================
# crisis_core/errors/exceptions.py
# Custom Exception Hierarchy for Family Crisis Hub
# =============================================================================

from typing import Optional, Dict, Any


class CrisisHubError(Exception):
    """
    Base exception for all Family Crisis Hub errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "CIRCLE_404")
        details: Additional context as a dictionary
        recoverable: Whether the user can retry the action
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "CH_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# AGGREGATE STORE EXCEPTIONS
# =============================================================================

class NotFoundError(CrisisHubError):
    """Raised when an update targets a circle or member that does not exist"""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        if entity_id:
            details["entity_id"] = entity_id

        super().__init__(
            message=message,
            code="CIRCLE_404",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# CONNECTIVITY EXCEPTIONS
# =============================================================================

class OfflineError(CrisisHubError):
    """Raised before attempting an action that needs connectivity while offline"""

    def __init__(
        self,
        message: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if action:
            details["action"] = action

        if message is None:
            label = action or "This action"
            message = f"{label} is unavailable offline. Reconnect and try again."

        super().__init__(
            message=message,
            code="NET_OFFLINE",
            details=details,
            **kwargs,
        )


# =============================================================================
# AI PROVIDER EXCEPTIONS
# =============================================================================

class AIGenerationError(CrisisHubError):
    """Raised when the generative-AI provider call fails"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if model:
            details["model"] = model

        super().__init__(
            message=message,
            code="AI_001",
            details=details,
            **kwargs,
        )


class InvalidResponseError(CrisisHubError):
    """Raised when the AI payload does not match its declared schema"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        errors: Optional[list] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if errors:
            details["errors"] = errors

        super().__init__(
            message=message,
            code="AI_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# DATA SOURCE / RENDERING EXCEPTIONS
# =============================================================================

class HazardFetchError(CrisisHubError):
    """Raised inside hazard connectors; never escapes the fetcher boundary"""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        unreachable: bool = False,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        if status_code is not None:
            details["status_code"] = status_code
        if unreachable:
            details["unreachable"] = True
        self.unreachable = unreachable

        super().__init__(
            message=message,
            code="HAZARD_001",
            details=details,
            **kwargs,
        )


class MapRenderError(CrisisHubError):
    """Raised when the map figure cannot be initialised"""

    def __init__(self, message: str, style: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if style:
            details["style"] = style

        super().__init__(
            message=message,
            code="MAP_001",
            details=details,
            **kwargs,
        )


class PersistenceError(CrisisHubError):
    """Raised by storage backends when a value cannot be written"""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code="STATE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(CrisisHubError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
