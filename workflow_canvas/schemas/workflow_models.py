"""
Workflow Document Models
Typed representation of the parsed workflow tree: steps, modules, triggers and decision rules
"""
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from workflow_canvas.core.constants import DocumentKind, StepType
from workflow_canvas.core.logging import get_logger
from workflow_canvas.validator.errors import DocumentParseException

logger = get_logger(__name__)


# ============================================================================
# DECISION RULES
# ============================================================================

class DecisionRule(BaseModel):
    """One `{condition, next}` entry of a list-form decision (first match wins)"""
    model_config = ConfigDict(extra="allow")

    condition: str = ""
    next: str = ""


class SwitchTarget(BaseModel):
    """Target of a switch case; `goto` wins over `next`"""
    model_config = ConfigDict(extra="allow")

    goto: Optional[str] = None
    next: Optional[str] = None

    @property
    def target(self) -> str:
        if isinstance(self.goto, str) and self.goto:
            return self.goto
        if isinstance(self.next, str):
            return self.next
        return ""


class SwitchDecision(BaseModel):
    """`{switch, cases, default}` decision"""
    model_config = ConfigDict(extra="allow")

    switch: str
    cases: Dict[str, SwitchTarget] = Field(default_factory=dict)
    default: Optional[SwitchTarget] = None

    @field_validator("cases", mode="before")
    @classmethod
    def stringify_case_keys(cls, value: Any) -> Any:
        # YAML turns `1:` and `true:` into non-string keys
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        return value


Decision = Union[List[DecisionRule], SwitchDecision]


def coerce_decision(value: Any) -> Any:
    """
    Drop decision shapes that are neither a rule list nor a switch

    Non-mapping entries of a rule list are dropped as well.
    """
    if value is None:
        return None
    if isinstance(value, list):
        return [rule for rule in value if isinstance(rule, dict)]
    if isinstance(value, dict) and isinstance(value.get("switch"), str) and isinstance(value.get("cases"), dict):
        return value
    logger.warning(f"Ignoring unrecognised decision shape: {type(value).__name__}")
    return None


# ============================================================================
# STEPS
# ============================================================================

class StepBase(BaseModel):
    """Fields shared by every step kind"""
    model_config = ConfigDict(extra="allow")

    name: str
    type: str
    timeout: Optional[Any] = None
    pre_condition: Optional[str] = None
    exports: Optional[Dict[str, Any]] = None
    decision: Optional[Decision] = None
    log: Optional[str] = None
    depends_on: Optional[List[Any]] = None
    on_success: Optional[List[Any]] = None
    on_error: Optional[List[Any]] = None

    @field_validator("decision", mode="before")
    @classmethod
    def drop_unknown_decision(cls, value: Any) -> Any:
        return coerce_decision(value)

    def to_raw(self) -> Dict[str, Any]:
        """Plain mapping for side panels and YAML previews"""
        return self.model_dump(exclude_none=True)


class CommandStep(StepBase):
    """bash / remote-bash / container"""
    type: Literal["bash", "remote-bash", "container"]
    command: Optional[str] = None
    commands: Optional[List[Any]] = None
    parallel_commands: Optional[List[Any]] = None
    speed_args: Optional[str] = None
    config_args: Optional[str] = None
    input_args: Optional[str] = None
    output_args: Optional[str] = None
    step_runner: Optional[str] = None
    step_runner_config: Optional[Dict[str, Any]] = None
    std_file: Optional[str] = None
    step_remote_file: Optional[str] = None
    host_output_file: Optional[str] = None

    @property
    def has_structured_args(self) -> bool:
        return any(
            value is not None
            for value in (self.speed_args, self.config_args, self.input_args, self.output_args)
        )


class ParallelStep(StepBase):
    """parallel / parallel-steps; nested steps stay inside this node"""
    type: Literal["parallel", "parallel-steps"]
    parallel_steps: Optional[List[Any]] = None


class FunctionStep(StepBase):
    type: Literal["function"]
    function: Optional[str] = None
    functions: Optional[List[Any]] = None
    parallel_functions: Optional[List[Any]] = None


class ForeachStep(StepBase):
    type: Literal["foreach"]
    input: Optional[str] = None
    variable: Optional[str] = None
    threads: Optional[Any] = None
    step: Optional[Dict[str, Any]] = None


class HttpStep(StepBase):
    type: Literal["http"]
    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    request_body: Optional[Any] = None


class LlmStep(StepBase):
    type: Literal["llm"]
    messages: Optional[List[Any]] = None
    embedding_input: Optional[List[Any]] = None
    is_embedding: bool = False
    tools: Optional[List[Any]] = None
    tool_choice: Optional[Any] = None
    llm_config: Optional[Dict[str, Any]] = None
    extra_llm_parameters: Optional[Dict[str, Any]] = None


class OverrideStep(StepBase):
    type: Literal["override"]
    params: Optional[Dict[str, Any]] = None


class UnknownStep(StepBase):
    """
    A step whose type is not understood, or whose payload did not parse

    Rendered as a generic container with no summary.
    """
    type: str = ""


Step = Union[
    CommandStep,
    ParallelStep,
    FunctionStep,
    ForeachStep,
    HttpStep,
    LlmStep,
    OverrideStep,
    UnknownStep,
]

STEP_MODELS = {
    StepType.BASH.value: CommandStep,
    StepType.REMOTE_BASH.value: CommandStep,
    StepType.CONTAINER.value: CommandStep,
    StepType.PARALLEL.value: ParallelStep,
    StepType.PARALLEL_STEPS.value: ParallelStep,
    StepType.FUNCTION.value: FunctionStep,
    StepType.FOREACH.value: ForeachStep,
    StepType.HTTP.value: HttpStep,
    StepType.LLM.value: LlmStep,
    StepType.OVERRIDE.value: OverrideStep,
}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


# Fields that identify an entity; a payload failing on one of these is not salvaged
IDENTITY_FIELDS = frozenset({"name", "type"})


def validate_omitting_invalid(model: type, raw: Dict[str, Any], label: str) -> BaseModel:
    """
    Validate a raw mapping, dropping only the top-level fields that fail

    A malformed optional field is omitted; every other field (decision,
    depends_on, nested step) is kept.

    Args:
        model: Pydantic model to validate against
        raw: Mapping with string keys
        label: Entity description for log messages

    Returns:
        Model instance

    Raises:
        ValidationError: If an identity field is invalid or no field can be blamed
    """
    data = dict(raw)
    while True:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            invalid = {err["loc"][0] for err in e.errors() if err["loc"]} & set(data)
            if not invalid or invalid & IDENTITY_FIELDS:
                raise
            logger.warning(f"{label}: ignoring invalid field(s) {', '.join(sorted(invalid))}")
            for key in invalid:
                del data[key]


def parse_step(raw: Any) -> Step:
    """
    Parse one raw step mapping into its typed variant

    Never raises: malformed optional fields are omitted, and unknown types or
    payloads with an unusable name degrade to UnknownStep.

    Args:
        raw: Step mapping from the parsed document

    Returns:
        Typed step
    """
    if not isinstance(raw, dict):
        logger.warning(f"Step entry is not a mapping: {type(raw).__name__}")
        return UnknownStep(name="", type="")
    raw = {k: v for k, v in raw.items() if isinstance(k, str)}
    label = f"Step '{_text(raw.get('name'))}' ({raw.get('type')})"

    model = STEP_MODELS.get(_text(raw.get("type")))
    if model is not None:
        try:
            return validate_omitting_invalid(model, raw, label)
        except ValidationError as e:
            logger.warning(f"{label} did not parse, rendering as container: {e.error_count()} issue(s)")

    cleaned = {**raw, "name": _text(raw.get("name")), "type": _text(raw.get("type"))}
    return validate_omitting_invalid(UnknownStep, cleaned, label)


def is_degraded(step: Step) -> bool:
    """True when the step renders as a generic container"""
    return isinstance(step, UnknownStep)


# ============================================================================
# MODULES
# ============================================================================

class OnAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    action: Optional[str] = None
    message: Optional[str] = None
    name: Optional[str] = None
    condition: Optional[str] = None


class Module(BaseModel):
    """A sub-workflow reference inside a flow; compiled as one opaque node"""
    model_config = ConfigDict(extra="allow")

    name: str
    path: Optional[str] = None
    extends: Optional[str] = None
    depends_on: Optional[List[str]] = None
    params: Optional[Dict[str, Any]] = None
    condition: Optional[str] = None
    decision: Optional[Decision] = None
    on_success: Optional[List[OnAction]] = None
    on_error: Optional[List[OnAction]] = None

    @field_validator("depends_on", mode="before")
    @classmethod
    def keep_string_dependencies(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [d for d in value if isinstance(d, str)]
        return value

    @field_validator("decision", mode="before")
    @classmethod
    def drop_unknown_decision(cls, value: Any) -> Any:
        return coerce_decision(value)

    def to_raw(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def parse_module(raw: Any) -> Module:
    """Parse one raw module mapping; malformed optional fields are omitted"""
    if not isinstance(raw, dict):
        logger.warning(f"Module entry is not a mapping: {type(raw).__name__}")
        return Module(name="")
    raw = {k: v for k, v in raw.items() if isinstance(k, str)}

    name = _text(raw.get("name"))
    return validate_omitting_invalid(Module, {**raw, "name": name}, f"Module '{name}'")


# ============================================================================
# TRIGGERS
# ============================================================================

class TriggerEvent(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    topic: Optional[str] = None
    filters: List[Any] = Field(default_factory=list)
    filter_functions: List[Any] = Field(default_factory=list, alias="filterFunctions")


class Trigger(BaseModel):
    """A rule that starts a run: cron schedule, filesystem watch or event subscription"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    on: str = ""
    enabled: Optional[bool] = None
    schedule: Optional[str] = None
    path: Optional[str] = None
    event: Optional[TriggerEvent] = None

    def to_raw(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, by_alias=True)


def parse_trigger(raw: Any) -> Trigger:
    if not isinstance(raw, dict):
        return Trigger()

    if "on" not in raw and True in raw:
        # YAML 1.1 reads a bare `on:` key as boolean true
        raw = {**raw, "on": raw[True]}
    raw = {k: v for k, v in raw.items() if isinstance(k, str)}

    name = _text(raw.get("name"))
    return validate_omitting_invalid(
        Trigger,
        {**raw, "name": name, "on": _text(raw.get("on"))},
        f"Trigger '{name}'"
    )


# ============================================================================
# DOCUMENT
# ============================================================================

class WorkflowDocument(BaseModel):
    """
    Root input of one compilation pass

    Build with `WorkflowDocument.from_raw()`; the instance is not mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    kind: DocumentKind = DocumentKind.MODULE
    name: str = ""
    description: str = ""
    steps: List[Step] = Field(default_factory=list)
    modules: List[Module] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)
    override: Optional[Dict[str, Any]] = None

    @property
    def is_flow(self) -> bool:
        return self.kind == DocumentKind.FLOW

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> "WorkflowDocument":
        """
        Build a document from an already-parsed tree

        Args:
            raw: Mapping produced by a YAML/JSON parser (None means empty)

        Returns:
            WorkflowDocument

        Raises:
            DocumentParseException: If the tree is not a mapping
        """
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise DocumentParseException(
                f"workflow document must be a mapping, got {type(raw).__name__}"
            )

        kind = DocumentKind.FLOW if raw.get("kind") == DocumentKind.FLOW.value else DocumentKind.MODULE
        steps = raw.get("steps") if isinstance(raw.get("steps"), list) else []
        modules = raw.get("modules") if isinstance(raw.get("modules"), list) else []
        override = raw.get("override") if isinstance(raw.get("override"), dict) else None

        return cls(
            kind=kind,
            name=_text(raw.get("name")),
            description=_text(raw.get("description")),
            steps=[parse_step(s) for s in steps],
            modules=[parse_module(m) for m in modules],
            triggers=[parse_trigger(t) for t in _raw_triggers(raw)],
            override=override,
        )


def _raw_triggers(raw: Mapping[str, Any]) -> List[Any]:
    """Triggers may be declared as `triggers: [...]` or `trigger: [...] | {...}`"""
    for key in ("triggers", "trigger"):
        value = raw.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            return [value]
    return []
