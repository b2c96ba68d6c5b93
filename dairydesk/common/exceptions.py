"""
Errores de dominio del motor financiero

Todos heredan de HTTPException para que los servicios los lancen directamente
y los routers los devuelvan sin traducción:

- ValidationError: montos, cantidades o porcentajes inválidos (422)
- NotFoundError: producto, parte o documento inexistente (404)
- ConflictError: transición de estado inválida (doble undo, doble vínculo) (409)
- ConsistencyError: el estado calculado contradice los recibos (500)
"""

from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class ConsistencyError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
