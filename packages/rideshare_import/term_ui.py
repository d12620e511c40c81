"""Tiny terminal UI helpers (prompt_toolkit-based).

Interactive prompts for the two user decisions the import pipeline cannot
make on its own: which merge policy to apply to an already-imported batch,
and whether to keep a manual value or accept the imported one when they
disagree. Kept apart from the workflows so they are easy to test in
isolation with pipe input.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator

from .errors import ReconciliationConflict
from .models import ConflictChoice, MergeDecision

_FIELD_LABELS = {
    "tips": "Tips",
    "tolls_reimbursed": "Tolls reimbursed",
}


def describe_conflict(conflict: ReconciliationConflict, *, shift_start: datetime | None = None) -> str:
    """One-line summary shown above the prompt."""

    label = _FIELD_LABELS.get(conflict.field, conflict.field)
    when = f" ({shift_start:%a %b %d, %Y %I:%M %p})" if shift_start is not None else ""
    return (
        f"Shift {str(conflict.shift_id)[:8]}{when}: {label} manual ${conflict.manual:.2f} "
        f"vs imported ${conflict.imported:.2f} (diff ${conflict.difference:.2f})"
    )


class _OptionValidator(Validator):
    def __init__(self, options: dict[str, str]) -> None:
        self._options = options

    def validate(self, document) -> None:
        if _resolve(document.text, self._options) is None:
            raise ValidationError(message="Choose one of: " + ", ".join(self._options.values()))


def _resolve(text: str, options: dict[str, str]) -> str | None:
    """Map typed text (full value or unique prefix) to a canonical option."""

    typed = text.strip().lower()
    if not typed:
        return None
    if typed in options:
        return options[typed]
    hits = [v for k, v in options.items() if k.startswith(typed)]
    return hits[0] if len(hits) == 1 else None


def _choose(
    values: Sequence[str],
    *,
    default: str,
    message: str,
    session: PromptSession | None,
) -> str | None:
    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    options = {v.lower(): v for v in values}
    completer = WordCompleter(list(values), ignore_case=True, sentence=True)

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    result = sess.prompt(
        message,
        default=default,
        completer=completer,
        validator=_OptionValidator(options),
        validate_while_typing=False,
    )
    if result is None:
        return None
    return _resolve(result, options)


def select_conflict_choice(
    conflict: ReconciliationConflict,
    *,
    default: ConflictChoice = ConflictChoice.KEEP_MANUAL,
    session: PromptSession | None = None,
    message: str = "Keep manual or accept imported? (Enter to accept • Esc to skip): ",
) -> ConflictChoice | None:
    """Ask how to settle one conflict; ``None`` when skipped with Esc."""

    value = _choose(
        [c.value for c in ConflictChoice],
        default=default.value,
        message=message,
        session=session,
    )
    return ConflictChoice(value) if value is not None else None


def select_merge_decision(
    *,
    default: MergeDecision = MergeDecision.REPLACE_ALL,
    session: PromptSession | None = None,
    message: str = "Already imported. replace-all / add-missing / merge (Esc to cancel): ",
) -> MergeDecision | None:
    """Ask which duplicate policy applies to the whole batch."""

    value = _choose(
        [d.value for d in MergeDecision],
        default=default.value,
        message=message,
        session=session,
    )
    return MergeDecision(value) if value is not None else None


__all__ = [
    "describe_conflict",
    "select_conflict_choice",
    "select_merge_decision",
]
