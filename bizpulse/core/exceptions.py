"""
Application exceptions

Services raise these; the handlers registered in ``main.create_app`` turn
them into the standard response envelope.
"""
from typing import Any, Dict, List, Optional


class AppException(Exception):
    status_code = 500

    def __init__(self, message: str, validation_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.validation_errors = validation_errors


class ValidationException(AppException):
    """Malformed or missing input"""
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        errors = None
        if field:
            error = {"field": field, "message": message}
            if value is not None:
                error["value"] = value
            errors = [error]
        super().__init__(message, errors)


class AuthenticationException(AppException):
    status_code = 401


class NotFoundException(AppException):
    """Resource absent, or owned by another business"""
    status_code = 404


class DomainRuleException(AppException):
    status_code = 400


class InsufficientStockException(DomainRuleException):
    pass


class AmountMismatchException(DomainRuleException):
    pass


class DuplicateResourceException(DomainRuleException):
    pass
