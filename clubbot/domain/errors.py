# clubbot/domain/errors.py
from __future__ import annotations


class ClubError(Exception):
    """Erreur métier: le message est destiné à l'utilisateur."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClubError, ValueError):
    pass


class ConflictError(ClubError):
    """Condition attendue (doublon, déjà traité...), pas un échec."""


class AlreadyResolved(ConflictError):
    def __init__(self, what: str, status: str):
        super().__init__(f"⚠️ {what} est déjà **{status}**.")
        self.status = status


class CapacityReached(ConflictError):
    pass


class NotFound(ClubError):
    pass


class Forbidden(ClubError, PermissionError):
    def __init__(self, message: str, capability: str = ""):
        super().__init__(message)
        self.capability = capability


class CollaboratorError(ClubError):
    pass


class ProvisioningError(CollaboratorError):
    def __init__(self, reason: str):
        super().__init__(f"❌ Échec de création de l'infrastructure du club : {reason}")
        self.reason = reason
