from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ImportState(str, Enum):
    """Lifecycle of a batch import run"""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SaveResult(BaseModel):
    """Outcome of saving a single carrier envelope.

    ``cancelled`` is its own outcome, neither a success nor an error.
    """

    success: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    dot_number: Optional[str] = None
    action: Optional[str] = Field(None, description="'inserted', 'updated' or 'touched'")


class ImportStatus(BaseModel):
    """Snapshot of the batch importer progress"""

    state: ImportState = ImportState.IDLE
    is_saving: bool = False
    is_saved: bool = False
    processing_progress: int = 0
    total_to_process: int = 0
    succeeded: int = 0
    failed: int = 0
    save_error: Optional[str] = None
    existing_carriers: Dict[str, bool] = Field(default_factory=dict)
    rejected: bool = Field(False, description="Set when a run was refused because another is active")
