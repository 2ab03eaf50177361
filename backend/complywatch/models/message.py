"""
ComplyWatch Message Data Models

Pydantic models for inbound messages and the employee they belong to.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


class SourcePlatform(str, Enum):
    """Platform a message was collected from."""
    EMAIL = "email"
    SLACK = "slack"
    TEAMS = "teams"


class AttachmentInfo(BaseModel):
    """Attachment metadata."""
    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Attachment filename")
    size: int = Field(0, ge=0, description="File size in bytes")
    content_type: Optional[str] = Field(None, description="Declared MIME type")

    @property
    def extension(self) -> str:
        """Lowercased extension including the dot, or empty string."""
        if "." not in self.filename:
            return ""
        return "." + self.filename.rsplit(".", 1)[1].lower()


class Message(BaseModel):
    """Single message to classify. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., description="Platform-specific id, unique within its source")
    source: SourcePlatform = Field(SourcePlatform.EMAIL, description="Source platform")
    subject: str = Field("", description="Subject line")
    body: str = Field("", description="Plain body text")
    sender: str = Field("", description="Sender address")
    recipients: List[str] = Field(default_factory=list, description="Recipient addresses")
    sent_at: Optional[datetime] = Field(None, description="Time the message was sent")
    attachments: List[AttachmentInfo] = Field(default_factory=list)
    headers: Dict[str, str] = Field(default_factory=dict, description="Transport headers")

    @property
    def content(self) -> str:
        """Subject and body joined the way the detectors read them."""
        return f"{self.subject} {self.body}"


class EmployeeContext(BaseModel):
    """Employee the message is attributed to."""
    model_config = ConfigDict(frozen=True)

    employee_id: int = Field(..., description="Employee id")
    name: str = Field("", description="Display name")
    email: str = Field("", description="Work address")
    department: Optional[str] = Field(None, description="Department name")
    role: Optional[str] = Field(None, description="Job title")
    risk_score: int = Field(0, ge=0, le=100, description="Baseline risk score")
    compliance_profile_id: Optional[int] = Field(None, description="Assigned compliance profile")
