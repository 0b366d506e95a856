"""Custom exceptions for face registration."""

from __future__ import annotations


class FaceRegisterError(Exception):
    """Base exception for all face registration errors."""

    pass


class ValidationError(FaceRegisterError):
    """Input validation error."""

    pass


class InvalidTargetError(FaceRegisterError):
    """Target region is malformed (non-positive width or height)."""

    pass


class RegistryError(FaceRegisterError):
    """Face registry operation error."""

    pass


class EmptyNameError(RegistryError, ValidationError):
    """A face name was empty or whitespace only."""

    def __init__(self, message: str = "Please enter a name for the face.") -> None:
        super().__init__(message)


class InvalidCommandError(FaceRegisterError):
    """Command is not accepted in the current session state."""

    pass


class SessionNotFoundError(FaceRegisterError):
    """Unknown registration session identifier."""

    pass


class StorageError(FaceRegisterError):
    """Registry persistence error."""

    pass
