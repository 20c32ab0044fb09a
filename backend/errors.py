"""
EcoProRenov - Erreurs applicatives

Chaque erreur porte son code HTTP. Les routes laissent remonter ces
erreurs: le handler de server.py les convertit en {"message": ...}.
"""


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    """Entrée invalide, transition de statut refusée, URL webhook invalide"""
    status_code = 400


class UnauthorizedError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    """Opération interdite dans l'état courant de l'entité"""
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class UnprocessableError(ApiError):
    """Contenu présent mais inexploitable (ex: devis sans lignes pour le PDF)"""
    status_code = 422


class ConfigurationError(ApiError):
    """Configuration serveur manquante (variables d'environnement)"""
    status_code = 500


class UnexpectedError(ApiError):
    status_code = 500

    def __init__(self, message: str = "Une erreur inattendue est survenue"):
        super().__init__(message)
