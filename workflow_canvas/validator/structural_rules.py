"""
Structural Validation Rules
Name uniqueness, reserved ids, reference existence and nested-step checks (no semantics)
"""
from typing import Any, List, Sequence, Set

from workflow_canvas.core.constants import END_NODE_ID, RESERVED_NODE_IDS, StepType
from workflow_canvas.schemas.workflow_models import (
    Module,
    SwitchDecision,
    UnknownStep,
    WorkflowDocument,
)
from workflow_canvas.validator.errors import (
    ValidationError,
    degraded_warning,
    duplicate_name_error,
    missing_name_error,
    missing_nested_step_error,
    reference_error,
    reserved_name_error,
)
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)


def _entities(document: WorkflowDocument) -> Sequence[Any]:
    return document.modules if document.is_flow else document.steps


def _entity_label(document: WorkflowDocument) -> str:
    return "module" if document.is_flow else "step"


def _collection(document: WorkflowDocument) -> str:
    return "modules" if document.is_flow else "steps"


def decision_targets(decision: Any) -> List[str]:
    """Every non-empty target named by a decision, in declaration order"""
    if decision is None:
        return []
    if isinstance(decision, SwitchDecision):
        targets = [case.target for key, case in decision.cases.items() if key.strip()]
        if decision.default is not None:
            targets.append(decision.default.target)
        return [t for t in targets if t.strip()]
    return [rule.next for rule in decision if rule.next.strip()]


# ============================================================================
# NAMES
# ============================================================================

def validate_names(document: WorkflowDocument) -> List[ValidationError]:
    """
    Ensure every compiled entity has a unique, non-reserved name

    CRITICAL: names become node ids; a collision would merge two unrelated nodes
    """
    errors = []
    entity = _entity_label(document)
    collection = _collection(document)

    seen: Set[str] = set()
    reported: Set[str] = set()
    for index, item in enumerate(_entities(document)):
        location = f"{collection}[{index}]"
        name = item.name.strip() if isinstance(item.name, str) else ""

        if not name:
            errors.append(missing_name_error(location, entity))
            continue

        if item.name in RESERVED_NODE_IDS:
            errors.append(reserved_name_error(location, entity, item.name))
            continue

        if item.name in seen and item.name not in reported:
            errors.append(duplicate_name_error(location, entity, item.name))
            reported.add(item.name)
        seen.add(item.name)

    return errors


# ============================================================================
# REFERENCES
# ============================================================================

def validate_references(document: WorkflowDocument) -> List[ValidationError]:
    """
    Ensure decision targets and depends_on entries name existing nodes

    `_end` is always a valid decision target.
    """
    errors = []
    collection = _collection(document)
    entities = _entities(document)
    known = {item.name for item in entities if item.name}

    for index, item in enumerate(entities):
        location = f"{collection}[{index}]"

        for target in decision_targets(item.decision):
            if target != END_NODE_ID and target not in known:
                errors.append(reference_error(f"{location}.decision", item.name, target, "decision"))

        if isinstance(item, Module):
            for dependency in item.depends_on or []:
                if dependency not in known:
                    errors.append(reference_error(f"{location}.depends_on", item.name, dependency, "depends_on"))

    return errors


# ============================================================================
# NESTED STEPS
# ============================================================================

def validate_foreach_steps(document: WorkflowDocument) -> List[ValidationError]:
    """A foreach step is meaningless without the step it repeats"""
    if document.is_flow:
        return []

    errors = []
    for index, step in enumerate(document.steps):
        if step.type != StepType.FOREACH.value:
            continue
        nested = getattr(step, "step", None)
        if not isinstance(nested, dict) or not nested:
            errors.append(missing_nested_step_error(f"steps[{index}].step", step.name))

    return errors


# ============================================================================
# DEGRADATIONS (warnings only)
# ============================================================================

def validate_step_types(document: WorkflowDocument) -> List[ValidationError]:
    """Warn about steps that will render as generic containers"""
    if document.is_flow:
        return []

    known_types = {t.value for t in StepType}
    warnings = []
    for index, step in enumerate(document.steps):
        if not isinstance(step, UnknownStep) or not step.name:
            continue
        if step.type in known_types:
            message = f"step '{step.name}' ({step.type}) could not be parsed; rendered as container"
        else:
            message = f"step '{step.name}' has unsupported type '{step.type}'; rendered as container"
        warnings.append(degraded_warning(location=f"steps[{index}]", message=message))

    return warnings


def run_all_structural_validations(document: WorkflowDocument) -> List[ValidationError]:
    """
    Run every structural rule

    Args:
        document: Parsed workflow document

    Returns:
        Blocking errors and warnings, in rule order
    """
    all_errors: List[ValidationError] = []

    all_errors.extend(validate_names(document))
    all_errors.extend(validate_references(document))
    all_errors.extend(validate_foreach_steps(document))
    all_errors.extend(validate_step_types(document))

    logger.debug(f"Structural validation: {len(all_errors)} issue(s)")

    return all_errors
