"""Pydantic models for bulkgraph data structures."""

import json
import re
from enum import Enum
from typing import Any, ClassVar, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

NODE_BATCH_SIZE = 1000
RELATIONSHIP_BATCH_SIZE = 5000

LABEL_COLUMN = "LABEL"
TYPE_COLUMN = "TYPE"
RELATIONSHIP_COLUMNS = ["TYPE", "FROM_LABEL", "FROM_ID", "TO_LABEL", "TO_ID"]

CONNECTION_URL_PATTERN = re.compile(r"^(neo4j|neo4j\+s|neo4j\+ssc|bolt|bolt\+s|bolt\+ssc)://.+")


class EntityKind(str, Enum):
    """Kind of graph entity a CSV file describes."""

    NODE = "node"
    RELATIONSHIP = "relationship"

    @property
    def grouping_column(self) -> str:
        """Column whose value selects the label (nodes) or type (relationships)."""
        return LABEL_COLUMN if self is EntityKind.NODE else TYPE_COLUMN

    @property
    def required_columns(self) -> List[str]:
        """Columns that must appear in the header row."""
        if self is EntityKind.NODE:
            return [LABEL_COLUMN]
        return list(RELATIONSHIP_COLUMNS)

    @property
    def batch_size(self) -> int:
        """Rows per write transaction."""
        return NODE_BATCH_SIZE if self is EntityKind.NODE else RELATIONSHIP_BATCH_SIZE


class ConnectionDescriptor(BaseModel):
    """Credentials for one graph store endpoint, passed into every run."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(default="", description="Bolt/neo4j connection URI")
    username: str = Field(default="", description="Database principal")
    password: str = Field(default="", repr=False, description="Database secret")

    @property
    def is_complete(self) -> bool:
        """Whether URI, username and password are all non-empty."""
        return bool(self.uri and self.username and self.password)


class CheckConnectionRequest(BaseModel):
    """Validated connection-check request body."""

    model_config = ConfigDict(populate_by_name=True)

    connection_url: str = Field(..., alias="connectionUrl")
    username: str = Field(...)
    password: str = Field(..., repr=False)

    @field_validator("connection_url")
    @classmethod
    def check_connection_url(cls, value: str) -> str:
        if not value:
            raise ValueError("Connection URL is required")
        if not CONNECTION_URL_PATTERN.match(value):
            raise ValueError("Invalid Neo4j connection URL format")
        return value

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        if not value:
            raise ValueError("Username is required")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value

    def to_descriptor(self) -> ConnectionDescriptor:
        return ConnectionDescriptor(
            uri=self.connection_url, username=self.username, password=self.password
        )


class RawFile(BaseModel):
    """An uploaded file: its name and undecoded bytes."""

    name: str = Field(..., description="Original file name")
    content: bytes = Field(..., repr=False, description="Raw file bytes")


class ParsedTable(BaseModel):
    """Header and data rows recovered from one CSV file."""

    file_name: str = Field(..., description="Source file name")
    headers: List[str] = Field(..., description="Trimmed header names in file order")
    rows: List[Dict[str, str]] = Field(
        default_factory=list, description="Data rows as header -> raw string"
    )

    @property
    def row_count(self) -> int:
        return len(self.rows)


class BatchResult(BaseModel):
    """Outcome of one write transaction."""

    key: str = Field(..., description="Label or relationship type of the group")
    size: int = Field(..., description="Rows submitted in the batch")
    created: int = Field(..., description="Entities the store reported as created")


class ProgressUpdate(BaseModel):
    """Non-terminal progress event."""

    percent: int = Field(..., ge=0, le=100)
    message: str

    is_terminal: ClassVar[bool] = False

    def to_wire(self) -> Dict[str, Any]:
        return {"progress": self.percent, "message": self.message}

    def to_json_line(self) -> str:
        return json.dumps(self.to_wire()) + "\n"


class UploadFailure(BaseModel):
    """Terminal error event."""

    message: str
    details: List[str] = Field(default_factory=list)

    is_terminal: ClassVar[bool] = True

    def to_wire(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"message": self.message}
        if self.details:
            error["details"] = list(self.details)
        return {"error": {"error": error}}

    def to_json_line(self) -> str:
        return json.dumps(self.to_wire()) + "\n"


class UploadSummary(BaseModel):
    """Terminal success event."""

    processed_files: int
    total_rows: int
    message: str

    is_terminal: ClassVar[bool] = True

    def to_wire(self) -> Dict[str, Any]:
        return {
            "data": {
                "success": True,
                "processedFiles": self.processed_files,
                "totalRows": self.total_rows,
                "message": self.message,
            }
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_wire()) + "\n"


ProgressEvent = Union[ProgressUpdate, UploadFailure, UploadSummary]
