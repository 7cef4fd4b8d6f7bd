"""Application errors.

Service functions raise these; the handlers registered in ``main`` turn them
into ``{"detail": message}`` responses with the matching status code.
"""


class AppError(Exception):
    status_code = 500
    message = "Erreur interne du serveur"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    message = "Données invalides"


class MissingFile(ValidationError):
    message = "Le fichier PDF est requis"


class DuplicateEmail(AppError):
    status_code = 400
    message = "Cet email est déjà utilisé"


class Unauthenticated(AppError):
    status_code = 401
    message = "Non authentifié"


class UserGone(Unauthenticated):
    message = "Utilisateur non trouvé"


class InvalidCredentials(AppError):
    status_code = 401
    message = "Email ou mot de passe incorrect"


class Forbidden(AppError):
    status_code = 403
    message = "Accès refusé"


class RoleMismatch(Forbidden):
    pass


class NotFound(AppError):
    status_code = 404
    message = "Ressource introuvable"


class InvalidTransition(AppError):
    status_code = 409
    message = "Transition non autorisée"


class ServiceUnavailable(AppError):
    status_code = 503
    message = "Service indisponible"
