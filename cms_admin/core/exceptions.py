"""Custom exception classes for the CMS admin panel."""

from fastapi import status


class CMSAdminError(Exception):
    """Base exception for the admin panel.

    Every subclass carries the HTTP status the API boundary reports it with.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(CMSAdminError):
    """Raised when a credential is missing, expired or rejected."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(CMSAdminError):
    """Raised when an authenticated actor lacks a capability."""
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(CMSAdminError):
    """Raised when input validation fails."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidInvitationError(ValidationError):
    """Unknown, malformed or already used invitation token."""

    def __init__(self, message: str = "Invalid or expired invitation link"):
        super().__init__(message)


class InvitationExpiredError(ValidationError):
    """Authentic invitation token past its validity window."""
    status_code = status.HTTP_410_GONE

    def __init__(self, message: str = "This invitation has expired. Please request a new invitation."):
        super().__init__(message)


class ResourceNotFoundError(CMSAdminError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(CMSAdminError):
    """Raised when a resource already exists or is still referenced."""
    status_code = status.HTTP_409_CONFLICT


class IdentityError(CMSAdminError):
    """Identity service refused an operation."""
    status_code = status.HTTP_502_BAD_GATEWAY


class IdentityUnavailableError(IdentityError):
    """Identity service could not be reached."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Authentication service unavailable"):
        super().__init__(message)


class AcceptInvitationError(CMSAdminError):
    """Generic failure of the multi-step invitation acceptance."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
