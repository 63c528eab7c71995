"""
Custom exceptions for the dependency bumper.
"""

from typing import Optional, Dict, Any, List


class DependencyBumperError(Exception):
    """
    Base exception for all dependency bumper errors.

    This is the root exception class that all other custom exceptions
    inherit from, providing common functionality and attributes.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize dependency bumper error.

        Args:
            message: Error message
            error_code: Optional error code for categorization
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.cause:
            parts.append(f"Caused by: {self.cause}")

        return " | ".join(parts)


class ConfigError(DependencyBumperError):
    """
    Exception for configuration errors.

    Raised when credentials are missing before a network command runs, or
    when configuration values fail validation. Fatal to the run.
    """

    def __init__(
        self,
        message: str,
        config_section: Optional[str] = None,
        missing_fields: Optional[List[str]] = None,
        **kwargs
    ):
        context = kwargs.get('context', {})
        if config_section:
            context['config_section'] = config_section
        if missing_fields:
            context['missing_fields'] = missing_fields

        kwargs['context'] = context
        super().__init__(message, **kwargs)

        self.config_section = config_section
        self.missing_fields = missing_fields or []


class ParameterResolutionError(DependencyBumperError):
    """Raised when the branch, library or version of a run cannot be resolved."""

    def __init__(self, message: str, missing: Optional[List[str]] = None, **kwargs):
        context = kwargs.get('context', {})
        if missing:
            context['missing'] = missing

        kwargs['context'] = context
        super().__init__(message, **kwargs)

        self.missing = missing or []


class DirectoryClientError(DependencyBumperError):
    """
    Base exception for repository directory (Bitbucket API) failures.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_count: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize directory client error.

        Args:
            message: Error message
            url: URL that caused the error
            status_code: HTTP status code if applicable
            retry_count: Number of retries attempted
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if url:
            context['url'] = url
        if status_code:
            context['status_code'] = status_code
        if retry_count:
            context['retry_count'] = retry_count

        kwargs['context'] = context
        super().__init__(message, **kwargs)

        self.url = url
        self.status_code = status_code
        self.retry_count = retry_count


class AuthError(DirectoryClientError):
    """Raised when the remote service rejects the configured credentials."""
    pass


class TransportError(DirectoryClientError):
    """Raised on network failures or unexpected responses from the remote service."""
    pass


class RepoOperationError(DependencyBumperError):
    """
    Exception for git working-copy failures.

    Raised when cloning, checking out, committing or pushing a single
    repository fails. The run continues with the next repository.
    """

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize repository operation error.

        Args:
            message: Error message
            repository: Full name of the repository that caused the error
            operation: Operation that failed (clone, checkout, commit, push)
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if repository:
            context['repository'] = repository
        if operation:
            context['operation'] = operation

        kwargs['context'] = context
        super().__init__(message, **kwargs)

        self.repository = repository
        self.operation = operation


class ManifestParseError(DependencyBumperError):
    """
    Exception for malformed manifest files.

    Treated like a repository operation failure: fatal to that repository only.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        line_number: Optional[int] = None,
        **kwargs
    ):
        context = kwargs.get('context', {})
        if file_path:
            context['file_path'] = file_path
        if line_number:
            context['line_number'] = line_number

        kwargs['context'] = context
        super().__init__(message, **kwargs)

        self.file_path = file_path
        self.line_number = line_number
