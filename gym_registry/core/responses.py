from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

T = TypeVar("T")

class ResponseBase(BaseModel, Generic[T]):
    data: Optional[T] = None
    message: Optional[str] = None
    success: bool = True

class OperationResult(ResponseBase[T], Generic[T]):
    # False when the in-memory change could not be flushed to storage
    persisted: bool = True
    error: Optional[str] = None
