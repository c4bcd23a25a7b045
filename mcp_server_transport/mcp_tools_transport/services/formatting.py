from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from ..core.schemas import ParsedInstruction


def format_simple(inst: ParsedInstruction) -> str:
    return inst.instruction


def format_navigation(inst: ParsedInstruction) -> str:
    line = f"{inst.step}. {inst.instruction}"
    if inst.distance > 0:
        line += f" ({_number(inst.distance)}m)"
    return line


def format_detailed(inst: ParsedInstruction) -> str:
    line = f"Step {inst.step}: {inst.instruction}"

    if inst.duration:
        minutes, seconds = divmod(int(round(inst.duration)), 60)
        line += f" ({minutes}min {seconds}s)" if minutes else f" ({seconds}s)"

    if inst.service and inst.operator:
        line += f" [{inst.service} - {inst.operator}]"

    if inst.estimated_context is not None and inst.estimated_context.area:
        line += f" - {inst.estimated_context.area}"

    return line


FORMATTERS: Dict[str, Callable[[ParsedInstruction], str]] = {
    "simple": format_simple,
    "navigation": format_navigation,
    "detailed": format_detailed,
}


def format_instructions(instructions: Sequence[ParsedInstruction], style: str = "detailed") -> List[str]:
    """Render instructions as text lines; unknown styles fall back to ``detailed``."""
    formatter = FORMATTERS.get(style, format_detailed)
    return [formatter(inst) for inst in instructions]


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"
