"""Domain models for template materialization."""

from __future__ import annotations

from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_EXPRESSION_MARKERS = ("{{", "{%", "{#")


class VariableKind(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    ENUMERATION = "enumeration"


class VariableSpec(BaseModel):
    """A single template variable declared by the manifest."""

    name: str = Field(..., min_length=1, description="Variable name")
    kind: VariableKind = Field(default=VariableKind.STRING)
    default: Any = Field(default=None, description="Literal or Jinja expression")
    choices: list[str] = Field(
        default_factory=list, description="Ordered choices for enumerations"
    )
    choice_labels: dict[str, str] | None = Field(
        default=None, description="Human-friendly label per choice value"
    )
    prompt: str | None = Field(default=None, description="Prompt text override")

    @property
    def is_expression(self) -> bool:
        """True when the default must be rendered against other bindings."""
        return isinstance(self.default, str) and any(
            marker in self.default for marker in _EXPRESSION_MARKERS
        )

    def fallback_value(self) -> Any:
        """Value asserted for a spec that is unbound."""
        if self.default is not None:
            return self.default
        if self.kind is VariableKind.BOOLEAN:
            return False
        if self.kind is VariableKind.INTEGER:
            return 0
        if self.kind is VariableKind.ENUMERATION and self.choices:
            return self.choices[0]
        return ""

    def label_for(self, choice: str) -> str:
        if self.choice_labels:
            return self.choice_labels.get(choice, choice)
        return choice


class Manifest(BaseModel):
    """Parsed template manifest."""

    variables: list[VariableSpec] = Field(default_factory=list)
    copy_without_render: list[str] = Field(default_factory=list)

    def spec(self, name: str) -> VariableSpec | None:
        return next((v for v in self.variables if v.name == name), None)


class TemplateItem(BaseModel):
    """A discovered template file and where it lands in the output tree."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Rendered '/'-joined name, arena key")
    output_path: PurePosixPath = Field(..., description="Rendered relative path")
    source_path: Path = Field(..., description="Template file on disk")
    copy_raw: bool = Field(default=False, description="Copy bytes verbatim")


class HookFile(BaseModel):
    path: str = Field(..., description="Path relative to the project directory")
    content: str = Field(default="")


class HookResult(BaseModel):
    """Outcome of one hook invocation."""

    vars: dict[str, Any] | None = None
    files: list[HookFile] = Field(default_factory=list)


class RunState(str, Enum):
    INIT = "init"
    RESOLVE_VARIABLES = "resolve_variables"
    REGISTER_TEMPLATES = "register_templates"
    STAGE_RENDER = "stage_render"
    PROMOTE = "promote"
    DONE = "done"
    ABORTED = "aborted"


class MaterializeResult(BaseModel):
    """Summary of a completed run."""

    output_root: Path
    project_dir: str
    files: list[PurePosixPath] = Field(default_factory=list)
    bindings: dict[str, Any] = Field(default_factory=dict)
