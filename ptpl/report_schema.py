"""
Схема JSON-отчётов CLI (pydantic v2).

Поля сериализуются в camelCase через alias; дамп — model_dump(by_alias=True).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RenderSection(_Model):
    output: str
    render_time_ms: float = Field(..., alias="renderTimeMs")
    used_variables: List[str] = Field(default_factory=list, alias="usedVariables")
    missing_variables: List[str] = Field(default_factory=list, alias="missingVariables")
    error: Optional[str] = None
    error_code: Optional[str] = Field(None, alias="errorCode")


class ProcessSection(_Model):
    lex_time_ms: float = Field(..., alias="lexTimeMs")
    parse_time_ms: float = Field(..., alias="parseTimeMs")
    compile_time_ms: float = Field(..., alias="compileTimeMs")
    total_time_ms: float = Field(..., alias="totalTimeMs")
    token_count: int = Field(..., alias="tokenCount")
    node_count: int = Field(..., alias="nodeCount")
    dependency_count: int = Field(..., alias="dependencyCount")
    cached: bool


class RunReport(_Model):
    format_version: int = Field(1, alias="formatVersion")
    tool_version: str = Field(..., alias="toolVersion")
    template_id: Optional[str] = Field(None, alias="templateId")
    dependencies: List[str] = Field(default_factory=list)
    encoder: str
    prompt_tokens: int = Field(..., alias="promptTokens")
    render: RenderSection
    process: Optional[ProcessSection] = None


class ValidationSection(_Model):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    token_count: Optional[int] = Field(None, alias="tokenCount")
    node_count: Optional[int] = Field(None, alias="nodeCount")


class TokenStatsSection(_Model):
    total_tokens: int = Field(..., alias="totalTokens")
    token_counts: Dict[str, int] = Field(default_factory=dict, alias="tokenCounts")


class AstStatsSection(_Model):
    total_nodes: int = Field(..., alias="totalNodes")
    node_counts: Dict[str, int] = Field(default_factory=dict, alias="nodeCounts")
    max_depth: int = Field(..., alias="maxDepth")


class InspectReport(_Model):
    format_version: int = Field(1, alias="formatVersion")
    template_id: str = Field(..., alias="templateId")
    tokens: TokenStatsSection
    ast: AstStatsSection
    dependencies: List[str] = Field(default_factory=list)
    tree: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "RenderSection",
    "ProcessSection",
    "RunReport",
    "ValidationSection",
    "TokenStatsSection",
    "AstStatsSection",
    "InspectReport",
]
