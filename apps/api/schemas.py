"""
Request bodies for the workbench API.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AuditDetailsIn(BaseModel):
    name: Optional[str] = None
    framework: Optional[str] = None
    areas: Optional[List[str]] = None
    due_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    description: Optional[str] = None


class ReviewActionIn(BaseModel):
    comment: Optional[str] = None


class CommentsIn(BaseModel):
    comments: str = ""


class ChecklistCheckIn(BaseModel):
    checked: bool


class NotesIn(BaseModel):
    notes: str = ""


class ConfirmClassificationIn(BaseModel):
    category: Optional[str] = None


class ReportRequestIn(BaseModel):
    template_id: str = "executive"
    sections: Dict[str, bool] = Field(default_factory=dict)


class DiscussionIn(BaseModel):
    author: str = ""
    text: str
    kind: str = Field(default="comment", description="comment | issue | observation")


class TaskIn(BaseModel):
    title: str
    assignee: str
    priority: str = Field(default="Medium", description="High | Medium | Low")
    due_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")


class TaskStatusIn(BaseModel):
    status: str = Field(description="Pending | In Progress | Complete")


class DocumentTextIn(BaseModel):
    name: str
    text: str = ""


class RuleTestIn(BaseModel):
    documents: List[DocumentTextIn] = Field(default_factory=list)
