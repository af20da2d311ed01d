"""
Pydantic models for Task Notes request/response validation.

Provides row models for tasks and categories, input models for the
create/update calls, locally stored drafts, and error response formatting.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator


class CategoryInput(BaseModel):
    """Request model for creating or renaming a category."""

    name: str = Field(min_length=1, max_length=100, description="Category display name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Strip surrounding whitespace and reject blank names."""
        v = v.strip()
        if not v:
            raise ValueError("Category name cannot be empty")
        return v


class Category(BaseModel):
    """A stored category row."""

    id: str
    name: str
    created_at: str


class TaskInput(BaseModel):
    """Request model for creating or updating a task."""

    title: Optional[str] = Field("", description="Task title, blank for default")
    content: Optional[str] = Field("", description="Rich-text HTML content")
    category_id: Optional[str] = Field(None, description="Category ID, omit for uncategorized")

    @field_validator("category_id")
    @classmethod
    def validate_category_id(cls, v):
        """Treat an empty category id as uncategorized."""
        if v is not None and not v.strip():
            return None
        return v


class Task(BaseModel):
    """A stored task row."""

    id: str
    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
    is_deleted: bool = False


class Draft(BaseModel):
    """Unsaved editor state kept in local storage."""

    title: str = ""
    content: str = ""
    category_id: Optional[str] = None
    saved_at: str


class TaskListResponse(BaseModel):
    """Response model for task listings."""

    tasks: List[Task]
    total_count: int
    category_id: Optional[str] = None


class CategoryListResponse(BaseModel):
    """Response model for category listings."""

    categories: List[Category]
    total_count: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    database_connected: bool
    active_websocket_connections: int
    task_counts: Optional[Dict[str, int]] = None
    timestamp: str


class ConnectionCheckResponse(BaseModel):
    """Response model for the connection self-test."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


# Utility function to create consistent error responses
def create_error_response(
    message: str, code: Optional[int] = None, details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create a standardized error response dictionary."""
    return {"success": False, "error": message, "code": code, "details": details}


# Utility function to create consistent success responses
def create_success_response(message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create a standardized success response dictionary."""
    return {"success": True, "message": message, "data": data}
