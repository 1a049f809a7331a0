"""
Pipeline stages and the table of legal moves between them.

Forward moves along the pipeline and the "declined" side-exit from any open
stage are always legal. Everything else (moving backward, reopening a funded
or declined deal, sending a deal back to draft) needs an explicit override.
"""
from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    DRAFT = "draft"
    NEW = "new"
    APPLICATION = "application"
    REVIEW = "review"
    APPROVED = "approved"
    FUNDED = "funded"
    DECLINED = "declined"


PIPELINE_ORDER: tuple[Stage, ...] = (
    Stage.DRAFT,
    Stage.NEW,
    Stage.APPLICATION,
    Stage.REVIEW,
    Stage.APPROVED,
    Stage.FUNDED,
)

TERMINAL_STAGES = frozenset({Stage.FUNDED, Stage.DECLINED})

# Stages offered by the broker's stage picker; draft is only reachable by saving a draft.
PICKER_STAGES: tuple[Stage, ...] = (
    Stage.NEW,
    Stage.APPLICATION,
    Stage.REVIEW,
    Stage.APPROVED,
    Stage.FUNDED,
    Stage.DECLINED,
)

# Stages in which the owning vendor may still edit deal fields.
VENDOR_EDITABLE_STAGES = frozenset({Stage.DRAFT, Stage.NEW})


def _build_transitions() -> dict[Stage, frozenset[Stage]]:
    table: dict[Stage, frozenset[Stage]] = {}
    for i, stage in enumerate(PIPELINE_ORDER):
        if stage in TERMINAL_STAGES:
            table[stage] = frozenset()
            continue
        forward = set(PIPELINE_ORDER[i + 1:])
        forward.add(Stage.DECLINED)
        table[stage] = frozenset(forward)
    table[Stage.DECLINED] = frozenset()
    return table


LEGAL_TRANSITIONS: dict[Stage, frozenset[Stage]] = _build_transitions()


def is_legal_transition(current: Stage, target: Stage) -> bool:
    """True if current -> target is allowed without an override."""
    return target in LEGAL_TRANSITIONS.get(current, frozenset())


def parse_stage(value: str) -> Stage:
    try:
        return Stage(value)
    except ValueError:
        raise ValueError(f"Unknown stage '{value}'") from None
