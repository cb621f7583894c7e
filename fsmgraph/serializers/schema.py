"""
Project Document: pydantic models for the saved `.fsm.json` file.

    {
      "projectMetadata": {"savedAt": "2024-05-01T12:00:00.000Z",
                          "appName": "0xFSM", "appVersion": "1.0.0"},
      "files":  [{"name": "main", "type": "client"}],
      "graphs": {
        "client/main":   {"nodes": [{"id": "print", "message": "hi"}], "scope": "client"},
        "func:onTick":   {"nodes": [], "parameters": ["dt"], "scope": "server"},
        "event:joined":  {"nodes": [], "argumentNames": ["source"], "scope": "server"}
      }
    }

Only the three top-level sections are validated as a whole. File entries,
graph records and node records are checked one at a time at decode time, so
a single malformed element is dropped with a warning instead of failing the
load. Which node keys are meaningful is decided by the registry.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_SECTIONS = ("projectMetadata", "files", "graphs")


class ProjectMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    savedAt: Optional[str] = None
    appName: Optional[str] = None
    appVersion: Optional[str] = None


class FileRecord(BaseModel):
    name: str
    type: Literal["client", "server"]


class GraphRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nodes: List[Any] = Field(default_factory=list)
    parameters: Optional[List[str]] = None
    argumentNames: Optional[List[str]] = None
    scope: Optional[str] = None


class ProjectDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    projectMetadata: ProjectMetadata
    files: List[Any]
    graphs: Dict[str, Any]
