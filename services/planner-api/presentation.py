"""
Metadatos de presentación para los clientes: colores por estado de
milestone, etiquetas legibles y el ícono de estado de compartido.
"""

from typing import Optional, Union
from schemas import MilestoneStatus, StatusColors, StatusLegend, StatusLegendEntry, ShareIcon

STATUS_COLORS = {
    MilestoneStatus.COMPLETED: StatusColors(
        bar="#22c55e", badge="#dcfce7", badge_text="#166534", border="#86efac", text="#166534"
    ),
    MilestoneStatus.IN_PROGRESS: StatusColors(
        bar="#3b82f6", badge="#dbeafe", badge_text="#1e40af", border="#93c5fd", text="#1e40af"
    ),
    MilestoneStatus.AT_RISK: StatusColors(
        bar="#f59e0b", badge="#fef3c7", badge_text="#92400e", border="#fcd34d", text="#92400e"
    ),
    MilestoneStatus.DELAYED: StatusColors(
        bar="#ef4444", badge="#fee2e2", badge_text="#b91c1c", border="#fca5a5", text="#b91c1c"
    ),
    MilestoneStatus.NOT_STARTED: StatusColors(
        bar="#94a3b8", badge="#f1f5f9", badge_text="#475569", border="#cbd5e1", text="#475569"
    ),
}

STATUS_TEXT = {
    MilestoneStatus.NOT_STARTED: "Not Started",
    MilestoneStatus.IN_PROGRESS: "In Progress",
    MilestoneStatus.COMPLETED: "Completed",
    MilestoneStatus.AT_RISK: "At Risk",
    MilestoneStatus.DELAYED: "Delayed",
}

# Orden de la leyenda
LEGEND_ORDER = [
    MilestoneStatus.NOT_STARTED,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.COMPLETED,
    MilestoneStatus.AT_RISK,
    MilestoneStatus.DELAYED,
]

# En pantalla completa la leyenda queda semitransparente sobre el roadmap
FULL_SCREEN_LEGEND_CLASS = "opacity-90 hover:opacity-100 transition-opacity"

STATUS_ALIASES = {
    "COMPLETED": MilestoneStatus.COMPLETED,
    "COMPLETE": MilestoneStatus.COMPLETED,
    "DONE": MilestoneStatus.COMPLETED,
    "IN_PROGRESS": MilestoneStatus.IN_PROGRESS,
    "IN PROGRESS": MilestoneStatus.IN_PROGRESS,
    "INPROGRESS": MilestoneStatus.IN_PROGRESS,
    "ONGOING": MilestoneStatus.IN_PROGRESS,
    "AT_RISK": MilestoneStatus.AT_RISK,
    "AT RISK": MilestoneStatus.AT_RISK,
    "ATRISK": MilestoneStatus.AT_RISK,
    "RISK": MilestoneStatus.AT_RISK,
    "DELAYED": MilestoneStatus.DELAYED,
    "LATE": MilestoneStatus.DELAYED,
    "BEHIND": MilestoneStatus.DELAYED,
    "OVERDUE": MilestoneStatus.DELAYED,
    "NOT_STARTED": MilestoneStatus.NOT_STARTED,
    "NOT STARTED": MilestoneStatus.NOT_STARTED,
    "NOTSTARTED": MilestoneStatus.NOT_STARTED,
    "TODO": MilestoneStatus.NOT_STARTED,
    "TO DO": MilestoneStatus.NOT_STARTED,
    "PENDING": MilestoneStatus.NOT_STARTED,
}


def _coerce(status) -> Optional[MilestoneStatus]:
    if isinstance(status, MilestoneStatus):
        return status
    try:
        return MilestoneStatus(status)
    except ValueError:
        return None


def get_status_color(status: Union[MilestoneStatus, str, None]) -> StatusColors:
    """Colores (barra, badge, texto del badge) para un estado; NOT_STARTED por defecto."""
    return STATUS_COLORS.get(_coerce(status), STATUS_COLORS[MilestoneStatus.NOT_STARTED])


def get_status_text(status: Union[MilestoneStatus, str, None]) -> str:
    return STATUS_TEXT.get(_coerce(status), STATUS_TEXT[MilestoneStatus.NOT_STARTED])


def parse_status(raw: Optional[str]) -> MilestoneStatus:
    """Normalizar un estado libre (ej: "done", "Overdue") al enum."""
    if not raw:
        return MilestoneStatus.NOT_STARTED
    return STATUS_ALIASES.get(raw.strip().upper(), MilestoneStatus.NOT_STARTED)


def legend_entry(raw: Union[MilestoneStatus, str, None]) -> StatusLegendEntry:
    """Entrada de la leyenda para un estado libre (ej: "done", "Overdue")"""
    status = parse_status(raw)
    colors = get_status_color(status)
    return StatusLegendEntry(status=status, label=get_status_text(status), color=colors.bar, colors=colors)


def status_legend(is_full_screen: bool = False) -> StatusLegend:
    return StatusLegend(
        class_name=FULL_SCREEN_LEGEND_CLASS if is_full_screen else "",
        statuses=[legend_entry(status) for status in LEGEND_ORDER],
    )


def share_status_icon(is_public: bool, size: int = 16, class_name: str = "") -> ShareIcon:
    if is_public:
        name, base = "globe", "text-green-600"
    else:
        name, base = "lock", "text-gray-500"
    return ShareIcon(name=name, size=size, class_name=f"{base} {class_name}".strip())
