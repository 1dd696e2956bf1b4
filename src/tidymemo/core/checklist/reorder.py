"""Checklist reordering: keep pending lines above done lines on every toggle."""

from dataclasses import dataclass


class ChecklistIndexError(IndexError):
    """Raised when a toggle targets a line that does not exist."""


@dataclass(frozen=True)
class ChecklistState:
    """Lines of a checklist with their index-aligned check flags."""

    lines: tuple[str, ...]
    checks: tuple[bool, ...]

    @property
    def content(self) -> str:
        return "\n".join(self.lines)


@dataclass
class _Item:
    text: str
    checked: bool
    is_target: bool


def split_lines(content: str) -> list[str]:
    """Split a note body into checklist lines. An empty body is one empty line."""
    return content.split("\n")


def aligned_checks(content: str, stored: list[bool] | tuple[bool, ...] | None) -> list[bool]:
    """Project stored check flags onto the current lines of ``content``.

    Pads with False when there are more lines than flags and truncates when
    there are fewer. The stored list itself is left alone.
    """
    count = len(split_lines(content))
    raw = list(stored or ())
    if len(raw) >= count:
        return raw[:count]
    return raw + [False] * (count - len(raw))


def reorder_on_toggle(
    lines: list[str] | tuple[str, ...],
    checks: list[bool] | tuple[bool, ...],
    index: int | None,
) -> ChecklistState:
    """Flip the check at ``index`` and regroup the lines.

    With ``index=None`` nothing is flipped and the lines are only regrouped,
    which leaves an already grouped list unchanged.

    Unchecked lines come first, checked lines after, each group keeping the
    relative order of the lines that were not toggled. A line that just got
    checked goes to the front of the checked group; a line that just got
    unchecked goes to the end of the unchecked group.

    Raises:
        ChecklistIndexError: ``index`` is outside the current lines.
    """
    if index is not None and not 0 <= index < len(lines):
        msg = f"line index {index} out of range for {len(lines)} line(s)"
        raise ChecklistIndexError(msg)

    items = [
        _Item(
            text=text,
            checked=checks[i] if i < len(checks) else False,
            is_target=i == index,
        )
        for i, text in enumerate(lines)
    ]
    unchecked = [it for it in items if not it.checked and not it.is_target]
    checked = [it for it in items if it.checked and not it.is_target]
    if index is not None:
        target = items[index]
        target.checked = not target.checked
        if target.checked:
            checked.insert(0, target)
        else:
            unchecked.append(target)

    ordered = unchecked + checked
    return ChecklistState(
        lines=tuple(it.text for it in ordered),
        checks=tuple(it.checked for it in ordered),
    )
