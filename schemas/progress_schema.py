# progress_schema.py
from pydantic import BaseModel, Field
from typing import List, Optional

from models.models import TaskStatus


class ProgressUpdate(BaseModel):
    progress: Optional[float] = None
    status: Optional[TaskStatus] = None
    remaining_hours: Optional[float] = None


class BulkProgressItem(ProgressUpdate):
    task_id: int


class BulkProgressRequest(BaseModel):
    updates: List[BulkProgressItem] = Field(..., min_length=1, max_length=100)
