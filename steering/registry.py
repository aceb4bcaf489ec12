"""Registry of plugin-contributed steering documents.

Steering documents are guidance templates. ALWAYS documents apply to every
request, CONDITIONAL documents apply when one of their regular expression
patterns matches the file being worked on, and MANUAL documents are only returned through
explicit lookup.

Templates use ``{{ name }}`` placeholders for variables and
``{{ @context.attr }}`` for attributes of the SteeringContext.
"""

import itertools
import logging
import re
from dataclasses import replace
from typing import Any

from core.errors import SteeringRenderFailedError

from .base import (
    SteeringContext,
    SteeringDocument,
    SteeringDocumentType,
    SteeringMode,
    SteeringResult,
)

logger = logging.getLogger(__name__)

MIN_PRIORITY = 0
MAX_PRIORITY = 1000

# Documents of the same type this close in priority are reported as conflicting
CONFLICT_PRIORITY_WINDOW = 10

_CONTEXT_PATTERN = re.compile(r"\{\{\s*@context\.(\w+)\s*\}\}")
_VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][\w.-]*)\s*\}\}")


def matches_patterns(path: str | None, patterns: list[str]) -> bool:
    """Check a file path against regular expression patterns.

    Patterns are searched anywhere in the forward-slash path, so anchor them
    (``r"\\.py$"``, ``r"^src/api/"``) to match a suffix or prefix.
    """
    if not path:
        return False
    normalized = path.replace("\\", "/")
    return any(re.search(p, normalized) for p in patterns)


def render_template(document: SteeringDocument, context: SteeringContext) -> tuple[str, dict[str, Any]]:
    """Render a document against a context.

    Variable values come from ``context.variables``, then the declared
    default, then ``context.metadata``. Placeholders with no value and no
    declaration are left as written.

    Returns:
        Tuple of (rendered content, resolved declared variables)

    Raises:
        SteeringRenderFailedError: If a required variable has no value
    """
    resolved = resolve_variables(document, context)

    def context_value(match: re.Match) -> str:
        value = getattr(context, match.group(1), None)
        return match.group(0) if value is None else str(value)

    def variable_value(match: re.Match) -> str:
        key = match.group(1)
        if resolved.get(key) is not None:
            return str(resolved[key])
        if context.variables.get(key) is not None:
            return str(context.variables[key])
        if key in context.metadata:
            return str(context.metadata[key])
        return match.group(0)

    content = _CONTEXT_PATTERN.sub(context_value, document.template)
    content = _VARIABLE_PATTERN.sub(variable_value, content)
    return content, resolved


def resolve_variables(document: SteeringDocument, context: SteeringContext) -> dict[str, Any]:
    """Resolve declared variables, falling back to their defaults.

    Raises:
        SteeringRenderFailedError: If a required variable has no value
    """
    resolved: dict[str, Any] = {}
    missing = []
    for variable in document.variables:
        value = context.variables.get(variable.name)
        if value is None:
            value = variable.default
        if value is None and variable.required:
            missing.append(variable.name)
        resolved[variable.name] = value

    if missing:
        raise SteeringRenderFailedError(
            f"Steering document {document.id} is missing required variable(s): {', '.join(missing)}",
            document_id=document.id,
            missing=missing,
        )
    return resolved


class SteeringRegistry:
    """Steering documents keyed by ``"<plugin_id>:<name>"``."""

    def __init__(self) -> None:
        self._documents: dict[str, SteeringDocument] = {}
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()
        self._render_counts: dict[str, int] = {}
        self._error_counts: dict[str, int] = {}

    def register_steering_document(self, plugin_id: str, document: SteeringDocument) -> None:
        """Register a document for ``plugin_id``, replacing one with the same name.

        Raises:
            ValueError: If the document is malformed
        """
        self._validate(document)
        document = replace(document, plugin_id=plugin_id)
        doc_id = document.id

        if doc_id in self._documents:
            logger.warning("Steering document %s already registered, replacing", doc_id)
        else:
            self._sequence[doc_id] = next(self._counter)

        self._documents[doc_id] = document
        logger.info(
            "Registered steering document: %s (mode=%s, type=%s, priority=%d)",
            doc_id,
            document.mode.value,
            document.type.value,
            document.priority,
        )

    def _validate(self, document: SteeringDocument) -> None:
        if not document.name or not document.name.strip():
            raise ValueError("Steering document name is required")
        if not MIN_PRIORITY <= document.priority <= MAX_PRIORITY:
            raise ValueError(
                f"Steering document {document.name} priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
            )
        if document.mode == SteeringMode.CONDITIONAL and not document.patterns:
            raise ValueError(f"Conditional steering document {document.name} must specify at least one pattern")
        for pattern in document.patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Steering document {document.name} has an invalid pattern {pattern!r}: {e}") from e

    def unregister_steering_document(self, plugin_id: str, name: str) -> bool:
        doc_id = f"{plugin_id}:{name}"
        if self._documents.pop(doc_id, None) is None:
            logger.warning("Steering document %s not registered, nothing to unregister", doc_id)
            return False
        self._sequence.pop(doc_id, None)
        logger.info("Unregistered steering document: %s", doc_id)
        return True

    def is_applicable(self, document: SteeringDocument, context: SteeringContext) -> bool:
        if document.mode == SteeringMode.ALWAYS:
            return True
        if document.mode == SteeringMode.CONDITIONAL:
            return matches_patterns(context.current_file, document.patterns)
        return False

    def get_applicable_steering_documents(self, context: SteeringContext) -> list[SteeringResult]:
        """Render every document that applies to ``context``.

        A document that fails to render is logged and left out; the rest are
        still returned.

        Returns:
            Rendered documents, highest priority first. Equal priorities keep
            registration order.
        """
        candidates = sorted(
            (d for d in self._documents.values() if self.is_applicable(d, context)),
            key=lambda d: (-d.priority, self._sequence[d.id]),
        )

        results: list[SteeringResult] = []
        for document in candidates:
            try:
                result = self._render(document, context)
            except SteeringRenderFailedError as e:
                logger.error("Dropping steering document %s (plugin=%s): %s", document.id, document.plugin_id, e)
                self._error_counts[document.id] = self._error_counts.get(document.id, 0) + 1
                continue

            result.conflicts_with = [
                earlier.document_id
                for earlier in results
                if earlier.type == document.type
                and abs(earlier.priority - document.priority) <= CONFLICT_PRIORITY_WINDOW
            ]
            results.append(result)

        logger.debug(
            "Found %d applicable steering document(s) for %s (of %d registered)",
            len(results),
            context.current_file or "<no file>",
            len(self._documents),
        )
        return results

    def _render(self, document: SteeringDocument, context: SteeringContext) -> SteeringResult:
        content, resolved = render_template(document, context)
        self._render_counts[document.id] = self._render_counts.get(document.id, 0) + 1
        return SteeringResult(
            document_id=document.id,
            plugin_id=document.plugin_id,
            name=document.name,
            type=document.type,
            mode=document.mode,
            priority=document.priority,
            content=content,
            variables=resolved,
        )

    def get_steering_document(self, plugin_id: str, name: str) -> SteeringDocument | None:
        return self._documents.get(f"{plugin_id}:{name}")

    def render_document(self, plugin_id: str, name: str, context: SteeringContext) -> SteeringResult:
        """Render one document by identity, regardless of its mode.

        Raises:
            KeyError: If the document is not registered
            SteeringRenderFailedError: If a required variable has no value
        """
        document = self.get_steering_document(plugin_id, name)
        if document is None:
            raise KeyError(f"{plugin_id}:{name}")
        return self._render(document, context)

    def get_steering_documents_by_mode(self, mode: SteeringMode | str) -> list[SteeringDocument]:
        mode = SteeringMode(mode)
        return [d for d in self._documents.values() if d.mode == mode]

    def get_steering_documents_by_plugin(self, plugin_id: str) -> list[SteeringDocument]:
        return [d for d in self._documents.values() if d.plugin_id == plugin_id]

    def get_all_steering_documents(self) -> list[SteeringDocument]:
        return list(self._documents.values())

    def clear_steering_documents(self, plugin_id: str | None = None) -> int:
        """Remove all documents, or only those owned by ``plugin_id``.

        Returns:
            Number of documents removed
        """
        doc_ids = [i for i, d in self._documents.items() if plugin_id is None or d.plugin_id == plugin_id]
        for doc_id in doc_ids:
            del self._documents[doc_id]
            self._sequence.pop(doc_id, None)
        return len(doc_ids)

    def get_steering_statistics(self) -> dict[str, Any]:
        by_mode = {mode.value: 0 for mode in SteeringMode}
        by_type = {doc_type.value: 0 for doc_type in SteeringDocumentType}
        by_plugin: dict[str, int] = {}
        for document in self._documents.values():
            by_mode[document.mode.value] += 1
            by_type[document.type.value] += 1
            by_plugin[document.plugin_id] = by_plugin.get(document.plugin_id, 0) + 1

        return {
            "total_documents": len(self._documents),
            "documents_by_mode": by_mode,
            "documents_by_type": by_type,
            "documents_by_plugin": by_plugin,
            "render_count": sum(self._render_counts.values()),
            "render_errors": sum(self._error_counts.values()),
        }
