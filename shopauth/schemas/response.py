# shopauth/schemas/response.py
from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shopauth.core.errors import ServiceError


class ServiceResponse(BaseModel):
    """Uniform envelope returned by every service operation."""

    success: bool
    message: str
    data: Any = None
    statusCode: int

    @classmethod
    def ok(cls, message: str, data: Any = None, status_code: int = status.HTTP_200_OK) -> "ServiceResponse":
        return cls(success=True, message=message, data=data, statusCode=status_code)

    @classmethod
    def failure(
        cls, message: str, data: Any = None, status_code: int = status.HTTP_400_BAD_REQUEST
    ) -> "ServiceResponse":
        return cls(success=False, message=message, data=data, statusCode=status_code)

    @classmethod
    def from_error(cls, error: ServiceError, data: Any = None) -> "ServiceResponse":
        return cls.failure(error.message, data, error.status_code)

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.statusCode, content=jsonable_encoder(self))
