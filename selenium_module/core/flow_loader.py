from __future__ import annotations

"""Flow schema and loader
-------------------------
Defines the pydantic models for flow steps and loads YAML flows, including
multi-doc files and ${ENV_VAR} substitution in string values.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional, Union
import os
import re

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from selenium_module.selectors.locator import FindCriteria, resolve_by


# ---------- Core enums ----------


class ActionName(str, Enum):
    get = "get"
    get_current_url = "get_current_url"
    get_title = "get_title"
    find_element = "find_element"
    find_elements = "find_elements"
    click = "click"
    submit = "submit"
    send_keys = "send_keys"
    clear = "clear"
    get_tag_name = "get_tag_name"
    get_attribute = "get_attribute"
    is_selected = "is_selected"
    is_enabled = "is_enabled"
    get_text = "get_text"
    is_displayed = "is_displayed"
    get_location = "get_location"
    get_size = "get_size"
    until = "until"
    expect = "expect"
    wait = "wait"


# ---------- Step models (union by 'action') ----------


class StepBase(BaseModel):
    action: ActionName
    name: Optional[str] = Field(default=None, description="Human-friendly step label")
    after_wait_ms: Optional[int] = Field(default=None, ge=0)
    optional: bool = Field(default=False, description="If true, log failure and continue")


class StepGet(StepBase):
    action: Literal[ActionName.get]
    url: str = Field(..., description="Absolute URL")

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("get.url must be an absolute http(s) URL")
        return v


class StepGetCurrentUrl(StepBase):
    action: Literal[ActionName.get_current_url]


class StepGetTitle(StepBase):
    action: Literal[ActionName.get_title]


class _FindStep(StepBase):
    by: FindCriteria

    @field_validator("by")
    @classmethod
    def _exactly_one(cls, v: FindCriteria) -> FindCriteria:
        resolve_by(v)
        return v


class StepFindElement(_FindStep):
    action: Literal[ActionName.find_element]


class StepFindElements(_FindStep):
    action: Literal[ActionName.find_elements]


class StepClick(StepBase):
    action: Literal[ActionName.click]


class StepSubmit(StepBase):
    action: Literal[ActionName.submit]


class StepSendKeys(StepBase):
    action: Literal[ActionName.send_keys]
    keys: str


class StepClear(StepBase):
    action: Literal[ActionName.clear]


class StepGetTagName(StepBase):
    action: Literal[ActionName.get_tag_name]


class StepGetAttribute(StepBase):
    action: Literal[ActionName.get_attribute]
    attribute: str = Field(..., min_length=1)


class StepIsSelected(StepBase):
    action: Literal[ActionName.is_selected]


class StepIsEnabled(StepBase):
    action: Literal[ActionName.is_enabled]


class StepGetText(StepBase):
    action: Literal[ActionName.get_text]


class StepIsDisplayed(StepBase):
    action: Literal[ActionName.is_displayed]


class StepGetLocation(StepBase):
    action: Literal[ActionName.get_location]


class StepGetSize(StepBase):
    action: Literal[ActionName.get_size]


class StepUntil(StepBase):
    action: Literal[ActionName.until]
    timeout_ms: Optional[int] = Field(default=None, ge=0, description="Defaults to UNTIL_TIMEOUT_MS")
    condition: list[Step] = Field(..., min_length=1, description="Steps whose final payload is the condition")


class StepExpect(StepBase):
    action: Literal[ActionName.expect]
    equals: Optional[str] = None
    contains: Optional[str] = None
    matches: Optional[str] = Field(default=None, description="Regular expression searched in the payload")
    ignore_case: bool = False

    @model_validator(mode="after")
    def _one_check(self) -> "StepExpect":
        given = [v for v in (self.equals, self.contains, self.matches) if v is not None]
        if len(given) != 1:
            raise ValueError("expect needs exactly one of equals/contains/matches")
        if self.matches is not None:
            re.compile(self.matches)
        return self


class StepWait(StepBase):
    action: Literal[ActionName.wait]
    ms: int = Field(..., ge=0)


Step = Union[
    StepGet,
    StepGetCurrentUrl,
    StepGetTitle,
    StepFindElement,
    StepFindElements,
    StepClick,
    StepSubmit,
    StepSendKeys,
    StepClear,
    StepGetTagName,
    StepGetAttribute,
    StepIsSelected,
    StepIsEnabled,
    StepGetText,
    StepIsDisplayed,
    StepGetLocation,
    StepGetSize,
    StepUntil,
    StepExpect,
    StepWait,
]

StepUntil.model_rebuild()


# ---------- Flow model ----------


class Flow(BaseModel):
    version: str = Field(default="1")
    name: str = Field(..., description="Flow name, used for the run directory")
    description: Optional[str] = None
    driver: Optional[str] = Field(default=None, description="Overrides SELENIUM_DRIVER")
    tags: list[str] = Field(default_factory=list)

    steps: list[Step] = Field(..., min_length=1)

    default_after_wait_ms: Optional[int] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


# ---------- Helpers ----------

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _subst_env(obj: Any) -> Any:
    """Replace ${VAR} in every string; unknown variables are left as-is."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _validate(data: dict, path: Path, doc: Optional[int] = None) -> Flow:
    try:
        return Flow.model_validate(_subst_env(data))
    except ValidationError as ve:
        where = f" (document {doc})" if doc is not None else ""
        lines = [f"Invalid flow '{path}'{where}:"]
        for e in ve.errors():
            loc = ".".join(str(p) for p in e.get("loc", []))
            msg = e.get("msg", "invalid value")
            lines.append(f"  - {loc}: {msg}")
        raise ValueError("\n".join(lines)) from ve


# ---------- Public API ----------


def load_flow(path: Path | str) -> Flow:
    """Load a single-document flow file. The flow name defaults to the file stem."""
    flow_path = Path(path)
    if not flow_path.exists():
        raise FileNotFoundError(f"Flow file not found: {flow_path}")
    try:
        data = yaml.safe_load(flow_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {flow_path}: {ye}") from ye
    if not isinstance(data, dict):
        raise ValueError("Flow YAML must define a mapping/object at the top level.")
    data.setdefault("name", flow_path.stem)
    return _validate(data, flow_path)


def load_flows_file(path: Path | str) -> list[Flow]:
    """Load one or more flows from a YAML file (supports multi-document)."""
    flow_path = Path(path)
    if not flow_path.exists():
        raise FileNotFoundError(f"Flow file not found: {flow_path}")
    try:
        docs = list(yaml.safe_load_all(flow_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {flow_path}: {ye}") from ye

    out: list[Flow] = []
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(f"Document {idx} in {flow_path} must be a mapping/object.")
        if len(docs) == 1:
            data.setdefault("name", flow_path.stem)
        out.append(_validate(data, flow_path, doc=idx))
    if not out:
        raise ValueError(f"No valid flow documents found in {flow_path}")
    return out


def find_flow_files(root: Path, recursive: bool = True) -> list[Path]:
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))


__all__ = [
    "ActionName",
    "Step",
    "Flow",
    "load_flow",
    "load_flows_file",
    "find_flow_files",
]
