"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Specific permission denied"""
    error_code = "PERMISSION_DENIED"


class TransitionNotAllowedError(AuthorizationError):
    """Requested transition does not exist, or the actor's role may not take it"""
    error_code = "TRANSITION_NOT_ALLOWED"

    @property
    def reason(self) -> Optional[str]:
        return self.details.get("reason")


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowDefinitionNotFoundError(NotFoundError):
    """Workflow definition not found"""
    error_code = "WORKFLOW_DEFINITION_NOT_FOUND"


class WorkflowInstanceNotFoundError(NotFoundError):
    """Workflow instance not found"""
    error_code = "WORKFLOW_INSTANCE_NOT_FOUND"


class MissionNotFoundError(NotFoundError):
    """Mission not found"""
    error_code = "MISSION_NOT_FOUND"


class RecommendationNotFoundError(NotFoundError):
    """Recommendation not found"""
    error_code = "RECOMMENDATION_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrentModificationError(ConflictError):
    """Optimistic concurrency conflict - re-read and retry"""
    error_code = "CONCURRENT_MODIFICATION"


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Storage Errors
class StorageUnavailableError(DomainError):
    """Underlying persistence failed; the enclosing operation did not happen"""
    error_code = "STORAGE_UNAVAILABLE"
    http_status = 503
