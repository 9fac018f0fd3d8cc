"""
Display metadata for every opportunity status.

Each status has exactly one badge: label, colour token and the transition
cue the client plays when an opportunity enters that status. The mapping is
checked for completeness at import time, so adding a status without a badge
fails on startup instead of rendering a blank badge.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Tuple

from licitadesk.db.enums import OpportunityStatus


@dataclass(frozen=True)
class Note:
    frequency: float
    duration: float
    delay: float


@dataclass(frozen=True)
class TransitionCue:
    description: str
    waveform: str
    volume: float
    notes: Tuple[Note, ...]


@dataclass(frozen=True)
class StatusBadge:
    status: OpportunityStatus
    label: str
    color: str
    cue: TransitionCue

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _notes(*triples: Tuple[float, float, float]) -> Tuple[Note, ...]:
    return tuple(Note(freq, duration, delay) for freq, duration, delay in triples)


STATUS_BADGES: Mapping[OpportunityStatus, StatusBadge] = {
    OpportunityStatus.REVIEW_REQUIRED: StatusBadge(
        OpportunityStatus.REVIEW_REQUIRED, "ANÁLISE", "amber",
        TransitionCue("Alert beeps, needs attention", "square", 0.15,
                      _notes((880, 0.1, 0), (880, 0.1, 0.15), (880, 0.1, 0.3))),
    ),
    OpportunityStatus.SOLICITADA: StatusBadge(
        OpportunityStatus.SOLICITADA, "SOLICITADA", "blue",
        TransitionCue("Soft notification, request received", "sine", 0.2,
                      _notes((587.33, 0.15, 0), (739.99, 0.2, 0.12))),
    ),
    OpportunityStatus.GO: StatusBadge(
        OpportunityStatus.GO, "GO", "green",
        TransitionCue("Triumphant ascending arpeggio", "sine", 0.25,
                      _notes((523.25, 0.15, 0), (659.25, 0.15, 0.1), (783.99, 0.3, 0.2))),
    ),
    OpportunityStatus.NO_GO: StatusBadge(
        OpportunityStatus.NO_GO, "NO GO", "red",
        TransitionCue("Descending minor tone", "triangle", 0.2,
                      _notes((440, 0.2, 0), (349.23, 0.3, 0.15))),
    ),
    OpportunityStatus.REJEITADA: StatusBadge(
        OpportunityStatus.REJEITADA, "REJEITADA", "gray",
        TransitionCue("Low descending tone", "sawtooth", 0.15,
                      _notes((293.66, 0.2, 0), (220, 0.35, 0.18))),
    ),
    OpportunityStatus.PARTICIPANDO: StatusBadge(
        OpportunityStatus.PARTICIPANDO, "PARTICIPANDO", "emerald",
        TransitionCue("Energetic rising tone", "sine", 0.25,
                      _notes((392, 0.1, 0), (523.25, 0.1, 0.08), (659.25, 0.2, 0.16))),
    ),
    OpportunityStatus.VENCIDA: StatusBadge(
        OpportunityStatus.VENCIDA, "VENCIDA", "purple",
        TransitionCue("Victory fanfare", "sine", 0.3,
                      _notes((523.25, 0.12, 0), (659.25, 0.12, 0.12), (783.99, 0.12, 0.24),
                             (1046.5, 0.4, 0.36))),
    ),
    OpportunityStatus.PERDIDA: StatusBadge(
        OpportunityStatus.PERDIDA, "PERDIDA", "slate",
        TransitionCue("Somber low tones", "triangle", 0.2,
                      _notes((261.63, 0.3, 0), (196, 0.4, 0.25))),
    ),
    OpportunityStatus.CONFIRMADA: StatusBadge(
        OpportunityStatus.CONFIRMADA, "CONFIRMADA", "emerald-strong",
        TransitionCue("Confirmation chime, double beep", "sine", 0.25,
                      _notes((987.77, 0.1, 0), (1318.51, 0.2, 0.12))),
    ),
    OpportunityStatus.EM_EXECUCAO: StatusBadge(
        OpportunityStatus.EM_EXECUCAO, "EM EXECUÇÃO", "cyan",
        TransitionCue("Steady working beat", "square", 0.12,
                      _notes((440, 0.08, 0), (440, 0.08, 0.2), (523.25, 0.15, 0.4))),
    ),
}

_missing = set(OpportunityStatus) - set(STATUS_BADGES)
if _missing:
    raise RuntimeError(
        "Opportunity statuses without a badge: "
        + ", ".join(sorted(status.value for status in _missing))
    )


def badge_for(status: OpportunityStatus | str) -> StatusBadge:
    return STATUS_BADGES[OpportunityStatus(status)]
