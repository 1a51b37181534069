#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Inter-step variable resolution.

Step parameters may reference the output of earlier steps or the active
editor state. String leaves are tokenized into references, and each
reference is resolved against an ``ExecutionHistory``:

    $PREVIOUS_STEP.<prop>             property of the last result
    $STEP[<n>].<prop>[<index>]        property of the n-th result (0-based)
    $SELECTED_FILE / $SELECTED_TEXT   active editor state
    $CONTENT_OF_SELECTED_FILE

A reference that cannot be resolved is left in place unchanged and logged.
Resolution never raises and never mutates its inputs.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from taskpilot.debug_logger import get_logger
from taskpilot.models.context import EditorContext
from taskpilot.models.results import StepResult


SAFE_NOOP_COMMAND = 'echo "No command specified"'

# Tried in order when the requested property is absent from a result
ALTERNATIVE_PROPERTIES: Dict[str, List[str]] = {
    "paths": ["matches", "files", "results", "found"],
    "path": ["filePath", "sourcePath", "file", "matches", "output"],
    "content": ["text", "data", "source", "output"],
    "result": ["output", "data", "value", "matches"],
}

# Sentinel strings -> EditorContext attribute
SENTINELS: Dict[str, str] = {
    "$SELECTED_FILE": "file_path",
    "path_to_selected_file": "file_path",
    "$CONTENT_OF_SELECTED_FILE": "content",
    "content_of_the_file": "content",
    "$SELECTED_TEXT": "selection",
    "selected_text": "selection",
}

# Natural-language stand-ins for "$PREVIOUS_STEP.content"
PREVIOUS_CONTENT_EXACT = {"$PREVIOUS_STEP.content", "$PREVIOUS_RESULT.content"}
PREVIOUS_CONTENT_FUZZY = [
    re.compile(r"contenido.*le[ií]do.*paso anterior", re.IGNORECASE),
    re.compile(r"content.*from.*previous step", re.IGNORECASE),
    re.compile(r"content.*of.*file", re.IGNORECASE),
]
# Phrases that fall back to the editor content when there is no prior content
PREVIOUS_CONTENT_EDITOR_FALLBACK = {"content from previous step"}
# Fuzzy phrases are only recognized in short single-line values, never in file bodies
FUZZY_PHRASE_MAX_CHARS = 100

COMMAND_PLACEHOLDERS = ("comando_o_accion", "$COMMAND")

REFERENCE_RE = re.compile(
    r"\$PREVIOUS_STEP\.(?P<prev>\w+)"
    r"|\$STEP\[(?P<step>\d+)\]\.(?P<prop>\w+)(?:\[(?P<index>\d+)\])?"
)

FILE_PATH_KEYS = ("filePath", "sourcePath", "path")
ANALYSIS_HINT_KEYS = ("focus", "language", "query")


class RefKind(Enum):
    LITERAL = "literal"
    PREVIOUS_STEP_REF = "previousStepRef"
    INDEXED_STEP_REF = "indexedStepRef"
    SENTINEL = "sentinel"
    COMMAND_PLACEHOLDER = "commandPlaceholder"


@dataclass(frozen=True)
class Token:
    """One piece of a tokenized parameter string."""

    kind: RefKind
    text: str
    prop: Optional[str] = None
    step_index: Optional[int] = None
    item_index: Optional[int] = None
    # EditorContext attribute for sentinels, or the fallback for fuzzy refs
    editor_field: Optional[str] = None


class _Unresolved:
    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = _Unresolved()


def _is_short_phrase(text: str) -> bool:
    return "\n" not in text and len(text) <= FUZZY_PHRASE_MAX_CHARS


class ExecutionHistory:
    """Read-only view of the step results of one execution attempt."""

    def __init__(self, results: Optional[Iterable[StepResult]] = None):
        self._results: List[StepResult] = list(results or [])

    @classmethod
    def of(cls, history: Union['ExecutionHistory', Iterable[StepResult], None]) -> 'ExecutionHistory':
        if isinstance(history, ExecutionHistory):
            return history
        return cls(history)

    @property
    def results(self) -> List[StepResult]:
        return list(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self):
        return iter(self._results)

    def payload(self, index: int) -> Any:
        """The ``result`` object of the index-th result, or UNRESOLVED."""
        if index < 0 or index >= len(self._results):
            return UNRESOLVED
        return self._results[index].result

    def last_payload(self) -> Any:
        if not self._results:
            return UNRESOLVED
        return self._results[-1].result


def tokenize(text: str) -> List[Token]:
    """Split a parameter string into literal and reference tokens."""
    stripped = text.strip()

    if stripped in SENTINELS:
        return [Token(RefKind.SENTINEL, text, editor_field=SENTINELS[stripped])]

    if stripped in PREVIOUS_CONTENT_EXACT or (_is_short_phrase(stripped)
                                             and any(p.search(stripped) for p in PREVIOUS_CONTENT_FUZZY)):
        fallback = "content" if stripped.lower() in PREVIOUS_CONTENT_EDITOR_FALLBACK else None
        return [Token(RefKind.PREVIOUS_STEP_REF, text, prop="content", editor_field=fallback)]

    tokens: List[Token] = []
    position = 0
    for match in REFERENCE_RE.finditer(text):
        if match.start() > position:
            tokens.append(Token(RefKind.LITERAL, text[position:match.start()]))
        if match.group("prev"):
            tokens.append(Token(RefKind.PREVIOUS_STEP_REF, match.group(0), prop=match.group("prev")))
        else:
            index = match.group("index")
            tokens.append(Token(
                RefKind.INDEXED_STEP_REF,
                match.group(0),
                prop=match.group("prop"),
                step_index=int(match.group("step")),
                item_index=int(index) if index is not None else None,
            ))
        position = match.end()

    if tokens:
        if position < len(text):
            tokens.append(Token(RefKind.LITERAL, text[position:]))
        return tokens

    if any(placeholder in text for placeholder in COMMAND_PLACEHOLDERS):
        return [Token(RefKind.COMMAND_PLACEHOLDER, text)]

    return [Token(RefKind.LITERAL, text)]


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return " ".join(_stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


class VariableResolver:
    """Substitutes step references and editor sentinels in step parameters."""

    def __init__(self, editor_context: Union[EditorContext, Callable[[], Any], Dict[str, Any], None] = None):
        self._editor_source = editor_context

    def _editor(self, override: Any = None) -> EditorContext:
        source = override if override is not None else self._editor_source
        if callable(source) and not isinstance(source, EditorContext):
            source = source()
        if isinstance(source, EditorContext):
            return source
        if isinstance(source, dict):
            return EditorContext.from_context(source)
        return EditorContext()

    def resolve(self, params: Dict[str, Any], history: Any, editor: Any = None) -> Dict[str, Any]:
        """Return a copy of ``params`` with every resolvable reference substituted.

        Args:
            params: Step parameters (nested dicts and lists are walked)
            history: ExecutionHistory or list of StepResult from this attempt
            editor: Optional EditorContext overriding the resolver's accessor
        """
        history = ExecutionHistory.of(history)
        editor_context = self._editor(editor)
        return self._resolve_value(params or {}, history, editor_context)

    def _resolve_value(self, value: Any, history: ExecutionHistory, editor: EditorContext) -> Any:
        if isinstance(value, dict):
            return {key: self._resolve_value(item, history, editor) for key, item in value.items()}
        if isinstance(value, list):
            return [self._resolve_value(item, history, editor) for item in value]
        if isinstance(value, str):
            return self._resolve_string(value, history, editor)
        return value

    def _resolve_string(self, text: str, history: ExecutionHistory, editor: EditorContext) -> Any:
        tokens = tokenize(text)

        if len(tokens) == 1:
            token = tokens[0]
            if token.kind is RefKind.LITERAL:
                return text
            value = self._resolve_token(token, history, editor)
            return text if value is UNRESOLVED else value

        parts = []
        for token in tokens:
            if token.kind is RefKind.LITERAL:
                parts.append(token.text)
                continue
            value = self._resolve_token(token, history, editor)
            parts.append(token.text if value is UNRESOLVED else _stringify(value))
        return "".join(parts)

    def _resolve_token(self, token: Token, history: ExecutionHistory, editor: EditorContext) -> Any:
        if token.kind is RefKind.SENTINEL:
            value = getattr(editor, token.editor_field, None)
            return UNRESOLVED if value is None else value

        if token.kind is RefKind.COMMAND_PLACEHOLDER:
            get_logger().log("variables", "COMMAND_PLACEHOLDER_REPLACED", {"value": token.text}, "WARNING")
            return SAFE_NOOP_COMMAND

        if token.kind is RefKind.PREVIOUS_STEP_REF:
            value = self._previous_step_value(token, history)
            if value is UNRESOLVED and token.editor_field:
                editor_value = getattr(editor, token.editor_field, None)
                value = UNRESOLVED if editor_value is None else editor_value
            if value is UNRESOLVED:
                self._log_unresolved(token, "no previous step value", len(history))
            return value

        if token.kind is RefKind.INDEXED_STEP_REF:
            return self._indexed_step_value(token, history)

        return token.text

    def _previous_step_value(self, token: Token, history: ExecutionHistory) -> Any:
        payload = history.last_payload()
        if not isinstance(payload, dict):
            return UNRESOLVED
        value = payload.get(token.prop)
        # Empty content is treated as absent
        if token.prop == "content":
            return value if value else UNRESOLVED
        return UNRESOLVED if value is None else value

    def _indexed_step_value(self, token: Token, history: ExecutionHistory) -> Any:
        payload = history.payload(token.step_index)
        if payload is UNRESOLVED:
            self._log_unresolved(token, "step index out of range", len(history))
            return UNRESOLVED
        if not isinstance(payload, dict):
            self._log_unresolved(token, "step result is not an object", len(history))
            return UNRESOLVED

        value = payload.get(token.prop)
        if value is None:
            for alternative in ALTERNATIVE_PROPERTIES.get(token.prop, []):
                if payload.get(alternative) is not None:
                    value = payload[alternative]
                    get_logger().log("variables", "ALTERNATIVE_PROPERTY_USED", {
                        "reference": token.text,
                        "property": alternative,
                    }, "DEBUG")
                    break
        if value is None and len(payload) == 1:
            value = next(iter(payload.values()))
        if value is None:
            self._log_unresolved(token, f"property '{token.prop}' not found", len(history),
                                 available=list(payload.keys()))
            return UNRESOLVED

        if token.item_index is not None:
            if isinstance(value, (list, tuple)) and token.item_index < len(value):
                return value[token.item_index]
            self._log_unresolved(token, f"index {token.item_index} out of range", len(history))
            return UNRESOLVED

        if isinstance(value, (list, tuple)) and len(value) == 1:
            return value[0]
        return value

    def _log_unresolved(self, token: Token, reason: str, history_size: int, **extra: Any) -> None:
        data = {"reference": token.text, "reason": reason, "results_available": history_size}
        data.update(extra)
        get_logger().log("variables", "UNRESOLVED_REFERENCE", data, "WARNING")

    def enrich_with_file_info(self, params: Dict[str, Any], history: Any, editor: Any = None) -> Dict[str, Any]:
        """Attach ``sourcePath``/``filePath`` to parameters that carry bare content.

        The most recent result that produced the same content supplies the
        path (its own path fields first, then its step's params). Steps that
        look like code analysis fall back to the active editor file.
        """
        enriched = dict(params or {})
        if "content" not in enriched or enriched.get("sourcePath") or enriched.get("filePath"):
            return enriched

        history = ExecutionHistory.of(history)
        content = enriched.get("content")

        if content not in (None, ""):
            for step_result in reversed(history.results):
                path = self._provenance_path(step_result, content)
                if path:
                    enriched["sourcePath"] = path
                    enriched["filePath"] = path
                    get_logger().log("variables", "FILE_INFO_ENRICHED", {
                        "path": path,
                        "from_step": step_result.step.description,
                    }, "DEBUG")
                    return enriched

        if any(key in enriched for key in ANALYSIS_HINT_KEYS):
            editor_path = self._editor(editor).file_path
            if editor_path:
                enriched["sourcePath"] = editor_path
                enriched["filePath"] = editor_path

        return enriched

    @staticmethod
    def _provenance_path(step_result: StepResult, content: Any) -> Optional[str]:
        payload = step_result.result
        if not isinstance(payload, dict):
            return None
        if payload.get("content") != content and not any(value == content for value in payload.values()):
            return None
        for source in (payload, step_result.step.params or {}):
            for key in FILE_PATH_KEYS:
                if isinstance(source.get(key), str) and source.get(key):
                    return source[key]
        return None
