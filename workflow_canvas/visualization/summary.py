"""
Summary Builder
Turns a step, module or trigger configuration into short, redacted display lines
"""
import json
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from workflow_canvas.core.constants import SENSITIVE_KEY_MARKERS, SummaryLimits
from workflow_canvas.schemas.workflow_models import (
    CommandStep,
    ForeachStep,
    FunctionStep,
    HttpStep,
    LlmStep,
    Module,
    OverrideStep,
    ParallelStep,
    Trigger,
    UnknownStep,
)

MAX_LEN = SummaryLimits.MAX_LINE_LENGTH

_WHITESPACE = re.compile(r"\s+")


# ============================================================================
# TEXT PRIMITIVES
# ============================================================================

def normalize_inline_text(text: str) -> str:
    """Collapse every whitespace run to one space and trim"""
    return _WHITESPACE.sub(" ", text).strip()


def truncate_text(text: str, max_len: int = MAX_LEN) -> str:
    """
    Cut a line to at most `max_len` characters

    The cut point is right-trimmed before the ellipsis is appended.
    """
    text = text.strip()
    if len(text) <= max_len:
        return text
    return text[:max(0, max_len - 1)].rstrip() + SummaryLimits.ELLIPSIS


def is_sensitive_key(key: Any) -> bool:
    k = str(key).lower()
    return any(marker in k for marker in SENSITIVE_KEY_MARKERS)


def redact(value: Any) -> Any:
    """
    Replace values under sensitive keys with ***, at any depth

    Args:
        value: Mapping, list or scalar

    Returns:
        A redacted copy (the input is not modified)
    """
    if isinstance(value, dict):
        return {
            k: SummaryLimits.REDACTED if is_sensitive_key(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def _to_json(value: Any) -> str:
    try:
        return json.dumps(redact(value), ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return ""


def redact_json_text(text: str) -> str:
    """Redact a string that happens to hold a JSON object or array"""
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return text
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return text
    return _to_json(parsed)


def stringify_inline_value(value: Any) -> str:
    """Render a parameter value on one line"""
    if value is None:
        return "null"
    if isinstance(value, str):
        return normalize_inline_text(redact_json_text(value))
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return normalize_inline_text(_to_json(value))


def cap_lines(items: Sequence[str], budget: int, max_len: int = MAX_LEN) -> List[str]:
    """
    Apply the line budget to a list of already-normalized items

    At most `budget` item lines are kept; if items were dropped a final
    `+<N> more` line reports how many.
    """
    lines = [truncate_text(item, max_len) for item in items[:budget]]
    remaining = len(items) - budget
    if remaining > 0:
        lines.append(f"+{remaining} more")
    return lines


def _inline_list(values: Sequence[str], suffix_word: str = "") -> str:
    shown = ", ".join(values[:SummaryLimits.MAX_INLINE_ITEMS])
    remaining = len(values) - SummaryLimits.MAX_INLINE_ITEMS
    if remaining <= 0:
        return shown
    more = f" {suffix_word}" if suffix_word else ""
    return f"{shown} (+{remaining}{more})"


def _text(value: Any) -> str:
    return normalize_inline_text(value) if isinstance(value, str) else ""


# ============================================================================
# PER-KIND SUMMARIZERS
# ============================================================================

def build_command_line(step: CommandStep) -> str:
    """
    Resolve the command a bash-like step will run

    `command` wins; structured args are appended to it when present.
    Otherwise the first of `commands` / `parallel_commands` is shown with a
    `(+N)` count of the rest.
    """
    command = _text(step.command)
    if command:
        if step.has_structured_args:
            parts = [command] + [
                _text(p) for p in (step.speed_args, step.config_args, step.input_args, step.output_args)
            ]
            return " ".join(p for p in parts if p)
        return command

    for batch in (step.commands, step.parallel_commands):
        if not batch:
            continue
        first = normalize_inline_text(str(batch[0] or ""))
        if not first:
            return ""
        if len(batch) == 1:
            return first
        return f"{first} (+{len(batch) - 1})"

    return ""


def summarize_command(step: CommandStep, max_len: int = MAX_LEN) -> List[str]:
    line = build_command_line(step)
    return [truncate_text(line, max_len)] if line else []


def summarize_function(step: FunctionStep, max_len: int = MAX_LEN) -> List[str]:
    items: List[str] = []

    if _text(step.function):
        items.append(f"fn: {_text(step.function)}")
    for fn in step.functions or []:
        if _text(fn):
            items.append(f"fn: {_text(fn)}")
    for fn in step.parallel_functions or []:
        if _text(fn):
            items.append(f"pfn: {_text(fn)}")

    return cap_lines(items, SummaryLimits.MAX_LINES, max_len)


def summarize_http(step: HttpStep, max_len: int = MAX_LEN) -> List[str]:
    lines: List[str] = []

    url = _text(step.url)
    if url:
        method = _text(step.method).upper() or "HTTP"
        lines.append(truncate_text(f"{method} {url}", max_len))

    if isinstance(step.headers, dict):
        keys = [str(k) for k in step.headers if k]
        if keys:
            lines.append(truncate_text(f"headers: {_inline_list(keys)}", max_len))

    if isinstance(step.request_body, str) and step.request_body.strip():
        body = normalize_inline_text(redact_json_text(step.request_body))
        lines.append(truncate_text(f"body: {body}", max_len))

    return lines[:SummaryLimits.MAX_LINES]


def extract_message_content(content: Any) -> str:
    """
    Pull readable text out of a chat message `content`

    Handles plain strings, arrays of parts and single part objects; anything
    else falls back to a (redacted) JSON rendering.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
                continue
            if not isinstance(item, dict):
                continue
            for key in ("text", "content", "input"):
                if isinstance(item.get(key), str):
                    parts.append(item[key])
                    break
        if parts:
            return " ".join(parts)
        return _to_json(content)

    if isinstance(content, dict):
        for key in ("text", "content"):
            if isinstance(content.get(key), str):
                return content[key]
        return _to_json(content)

    return "" if content is None else str(content)


def summarize_llm(step: LlmStep, max_len: int = MAX_LEN) -> List[str]:
    if step.is_embedding:
        inputs = step.embedding_input or []
        if not inputs:
            return []
        first = normalize_inline_text(str(inputs[0] if inputs[0] is not None else ""))
        suffix = f" (+{len(inputs) - 1})" if len(inputs) > 1 else ""
        return [truncate_text(f"input: {first}{suffix}", max_len)]

    messages = step.messages or []
    if not messages:
        return []

    budget = SummaryLimits.MAX_LINES
    lines: List[str] = []
    for message in messages[:budget]:
        if not isinstance(message, dict):
            continue
        role = message.get("role") if isinstance(message.get("role"), str) else "message"
        name = message.get("name") if isinstance(message.get("name"), str) else ""
        label = f"{role}[{name}]" if name else role
        content = normalize_inline_text(redact_json_text(extract_message_content(message.get("content"))))
        lines.append(truncate_text(f"{label}: {content}" if content else label, max_len))

    remaining = len(messages) - budget
    if remaining > 0:
        lines.append(f"+{remaining} more")
    return lines


def format_params(params: Dict[str, Any]) -> str:
    """`k=v` pairs with sensitive values replaced by ***"""
    entries = [(str(k), v) for k, v in params.items() if k]
    rendered = []
    for key, value in entries:
        if is_sensitive_key(key):
            rendered.append(f"{key}={SummaryLimits.REDACTED}")
            continue
        value_text = stringify_inline_value(value)
        rendered.append(f"{key}={value_text}" if value_text else key)
    return _inline_list(rendered, "more")


def summarize_module(module: Module, max_len: int = MAX_LEN) -> List[str]:
    lines: List[str] = []

    if _text(module.extends):
        lines.append(truncate_text(f"extends: {_text(module.extends)}", max_len))

    if _text(module.path):
        lines.append(truncate_text(f"path: {_text(module.path)}", max_len))

    if module.depends_on:
        lines.append(truncate_text(f"depends: {_inline_list(module.depends_on, 'more')}", max_len))

    if module.params:
        lines.append(truncate_text(f"params: {format_params(module.params)}", max_len))

    return lines[:SummaryLimits.MAX_LINES]


def summarize_override(params: Optional[Dict[str, Any]], max_len: int = MAX_LEN) -> List[str]:
    if not params:
        return []
    return [truncate_text(f"params: {format_params(params)}", max_len)]


def summarize_override_step(step: OverrideStep, max_len: int = MAX_LEN) -> List[str]:
    return summarize_override(step.params, max_len)


def summarize_override_block(override: Dict[str, Any], max_len: int = MAX_LEN) -> List[str]:
    """Summary of a flow-level `override` mapping"""
    params = override.get("params")
    lines = summarize_override(params if isinstance(params, dict) else None, max_len)
    others = [str(k) for k in override if k != "params"]
    if others:
        lines.append(truncate_text(f"overrides: {_inline_list(others, 'more')}", max_len))
    return lines[:SummaryLimits.MAX_LINES]


def summarize_foreach(step: ForeachStep, max_len: int = MAX_LEN) -> List[str]:
    lines: List[str] = []

    source = _text(step.input)
    variable = _text(step.variable)
    if source:
        lines.append(truncate_text(f"each {variable} in {source}" if variable else f"in: {source}", max_len))

    if step.threads is not None:
        lines.append(truncate_text(f"threads: {normalize_inline_text(str(step.threads))}", max_len))

    nested = step.step or {}
    nested_name = _text(nested.get("name"))
    if nested_name:
        nested_type = _text(nested.get("type"))
        label = f"{nested_name} ({nested_type})" if nested_type else nested_name
        lines.append(truncate_text(f"step: {label}", max_len))

    return lines[:SummaryLimits.MAX_LINES]


def summarize_parallel(step: ParallelStep, max_len: int = MAX_LEN) -> List[str]:
    items: List[str] = []
    for nested in step.parallel_steps or []:
        if not isinstance(nested, dict):
            continue
        name = _text(nested.get("name"))
        if not name:
            continue
        nested_type = _text(nested.get("type"))
        items.append(f"{name} ({nested_type})" if nested_type else name)
    return cap_lines(items, SummaryLimits.MAX_LINES, max_len)


def trigger_title(trigger: Trigger) -> str:
    title = _text(trigger.name) or "trigger"
    if _text(trigger.on):
        title = f"{title} ({_text(trigger.on)})"
    if trigger.enabled is False:
        title = f"{title} disabled"
    return title


def summarize_trigger(trigger: Trigger, max_len: int = MAX_LEN) -> List[str]:
    """
    Detail panel lines for one trigger

    Title first, then the schedule/path/topic line for its `on`, then one
    line per event filter and filter function. Budget is five lines.
    """
    items = [trigger_title(trigger)]

    if trigger.on == "cron" and _text(trigger.schedule):
        items.append(f"schedule: {_text(trigger.schedule)}")
    elif trigger.on == "watch" and _text(trigger.path):
        items.append(f"path: {_text(trigger.path)}")
    elif trigger.on == "event" and trigger.event is not None:
        if _text(trigger.event.topic):
            items.append(f"topic: {_text(trigger.event.topic)}")
        items.extend(f"filter: {_text(f)}" for f in trigger.event.filters if _text(f))
        items.extend(f"fn: {_text(f)}" for f in trigger.event.filter_functions if _text(f))

    return cap_lines(items, SummaryLimits.MAX_TRIGGER_LINES, max_len)


def summarize_triggers(triggers: Sequence[Trigger], max_len: int = MAX_LEN) -> List[str]:
    """On-canvas summary of the aggregated trigger node: one title per trigger"""
    return cap_lines([trigger_title(t) for t in triggers], SummaryLimits.MAX_LINES, max_len)


def summarize_unknown(step: UnknownStep, max_len: int = MAX_LEN) -> List[str]:
    return []


# ============================================================================
# DISPATCH
# ============================================================================

Summarizer = Callable[..., List[str]]

SUMMARIZERS: Dict[type, Summarizer] = {
    CommandStep: summarize_command,
    ParallelStep: summarize_parallel,
    FunctionStep: summarize_function,
    ForeachStep: summarize_foreach,
    HttpStep: summarize_http,
    LlmStep: summarize_llm,
    OverrideStep: summarize_override_step,
    UnknownStep: summarize_unknown,
    Module: summarize_module,
    Trigger: summarize_trigger,
}


def summarize(entity: Any, max_len: int = MAX_LEN) -> List[str]:
    """
    Summary lines for any step, module or trigger

    Total: entities without a summarizer produce no lines.

    Args:
        entity: Parsed step, module or trigger
        max_len: Longest allowed line before the ellipsis

    Returns:
        Ordered display lines
    """
    summarizer = SUMMARIZERS.get(type(entity))
    if summarizer is None:
        return []
    return summarizer(entity, max_len)


def has_structured_args(entity: Any) -> bool:
    """Whether the "args" badge applies"""
    return isinstance(entity, CommandStep) and entity.has_structured_args
