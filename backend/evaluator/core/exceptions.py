from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

class EvaluatorException(Exception):
    """Base exception for the evaluator application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class EvaluationNotFoundError(EvaluatorException):
    """Raised when an evaluation record does not exist"""
    def __init__(self, message: str = "Evaluation not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class DocumentNotFoundError(EvaluatorException):
    """Raised when an uploaded document or its stored bytes cannot be found"""
    def __init__(self, message: str = "Document not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class ValidationError(EvaluatorException):
    """Raised when request validation fails"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class InvalidStatusTransitionError(EvaluatorException):
    """Raised when an evaluation is moved to a status its current status does not allow"""
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition evaluation from '{current}' to '{target}'",
            status.HTTP_409_CONFLICT
        )

async def evaluator_exception_handler(request: Request, exc: EvaluatorException):
    """Handle application exceptions"""
    logger.error(f"Evaluator exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )

async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database exceptions"""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
