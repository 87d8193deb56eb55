"""User-facing copy builders for command-line errors and results."""

from __future__ import annotations


def _ensure_sentence(text: str) -> str:
    """Return text with terminal sentence punctuation."""
    cleaned = text.strip()
    if not cleaned:
        return ""
    if cleaned.endswith((".", "!", "?")):
        return cleaned
    return f"{cleaned}."


def build_next_step_hint(next_step: str) -> str:
    return f"Next step: {_ensure_sentence(next_step)}"


def build_actionable_error(
    action: str,
    *,
    next_step: str,
    why: str | None = None,
) -> str:
    """Build a 2-3 line actionable error message."""
    lines = [f"Could not {action.strip()}."]
    if why:
        lines.append(f"Why: {_ensure_sentence(why)}")
    lines.append(build_next_step_hint(next_step))
    return "\n".join(lines)


def build_actionable_success(message: str, *, detail: str | None = None) -> str:
    lines = [_ensure_sentence(message)]
    if detail:
        lines.append(_ensure_sentence(detail))
    return "\n".join(lines)


def build_export_progress_line(progress: int) -> str:
    """Progress line rewritten in place while an export runs."""
    return f"Exporting... {max(0, min(progress, 100))}%"


__all__ = [
    "build_actionable_error",
    "build_actionable_success",
    "build_export_progress_line",
    "build_next_step_hint",
]
