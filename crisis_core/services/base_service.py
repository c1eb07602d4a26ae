# =============================================================================
# crisis_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass

from crisis_core.logging import get_logger, LogContext
from crisis_core.errors import CrisisHubError


@dataclass
class ServiceResult:
    """
    Standard result container for service operations.

    Provides consistent structure for all service and controller action returns.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        """Create a successful result"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        """Create a failed result"""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )

    @classmethod
    def from_exception(cls, e: Exception) -> ServiceResult:
        """Create a failed result from an exception"""
        if isinstance(e, CrisisHubError):
            return cls(
                success=False,
                error=e.message,
                error_code=e.code,
                metadata=e.details,
            )
        return cls(
            success=False,
            error=str(e),
            error_code="EXCEPTION",
        )


class BaseService(ABC):
    """
    Abstract base class for services.

    Provides common functionality:
    - Logging
    - Error handling
    - Result standardization

    Usage:
        class VoiceNoteService(BaseService):
            ...

        result = voice_notes.safe_execute("Removing voice note file", voice_notes.delete, url)
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Removing voice note file"):
                path.unlink()
        """
        return LogContext(self.logger, operation)

    def safe_execute(
        self,
        operation: str,
        func: Callable[..., Any],
        *args,
        **kwargs
    ) -> ServiceResult:
        """
        Execute a function with error handling and logging.

        Args:
            operation: Description of the operation
            func: Function to execute
            *args, **kwargs: Arguments to pass to func

        Returns:
            ServiceResult with success/failure status
        """
        try:
            with self.log_operation(operation):
                result = func(*args, **kwargs)
            return ServiceResult.ok(result)
        except CrisisHubError as e:
            self.logger.warning(f"{operation} failed: [{e.code}] {e.message}")
            return ServiceResult.from_exception(e)
        except Exception as e:
            self.logger.error(f"{operation} failed: {e}", exc_info=True)
            return ServiceResult.fail(str(e), error_code="EXCEPTION")
