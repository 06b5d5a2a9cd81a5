from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
from pydantic import BaseModel

from app.utils.exceptions import CustomException


class APIResponse(BaseModel):
    """Standard API response model."""

    success: bool = True
    message: str = "Success"
    data: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class PaginatedResponse(BaseModel):
    """Paginated response model."""

    success: bool = True
    message: str = "Success"
    data: list[Any] = []
    pagination: Dict[str, Any] = {}


def _json(status_code: int, payload: BaseModel) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload.model_dump())
    )


def success_response(
    data: Any = None,
    message: str = "Success",
    status_code: int = 200,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Create a success response.

    Args:
        data: Response data
        message: Success message
        status_code: HTTP status code
        details: Additional details

    Returns:
        JSONResponse: Success response
    """
    return _json(status_code, APIResponse(
        success=True,
        message=message,
        data=data,
        details=details
    ))


def error_response(
    message: str = "Error",
    status_code: int = 400,
    error: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Create an error response.

    Args:
        message: Error message
        status_code: HTTP status code
        error: Error code
        details: Additional details

    Returns:
        JSONResponse: Error response
    """
    return _json(status_code, APIResponse(
        success=False,
        message=message,
        error=error,
        details=details or None
    ))


def exception_response(exc: CustomException) -> JSONResponse:
    """Render an application exception with its own status and code."""
    return error_response(
        message=exc.message,
        status_code=exc.status_code,
        error=exc.error_code,
        details=exc.details
    )


def paginated_response(
    data: list[Any],
    page: int = 1,
    per_page: int = 20,
    total: int = 0,
    message: str = "Success"
) -> JSONResponse:
    """
    Create a paginated response.

    Args:
        data: List of data items
        page: Current page number
        per_page: Items per page
        total: Total number of items
        message: Success message

    Returns:
        JSONResponse: Paginated response
    """
    pages = (total + per_page - 1) // per_page if total > 0 else 0

    return _json(200, PaginatedResponse(
        success=True,
        message=message,
        data=data,
        pagination={
            "page": page,
            "per_page": per_page,
            "total": total,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1
        }
    ))


def created_response(
    data: Any = None,
    message: str = "Resource created successfully"
) -> JSONResponse:
    """Create a 201 Created response."""
    return success_response(data=data, message=message, status_code=201)


def updated_response(
    data: Any = None,
    message: str = "Resource updated successfully"
) -> JSONResponse:
    """Create a 200 OK response for updates."""
    return success_response(data=data, message=message, status_code=200)


def deleted_response(
    data: Any = None,
    message: str = "Resource deleted successfully"
) -> JSONResponse:
    """Create a 200 OK response for deletions."""
    return success_response(data=data, message=message, status_code=200)
