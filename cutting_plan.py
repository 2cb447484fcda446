"""
Документ плана раскроя: код прослеживаемости, масса материала, метаданные заказа
"""
from typing import Dict, Iterable, Optional
import re

from cutting_stock import CuttingPlan
from cut_sequence import build_plan_layout

TRACEABILITY_PREFIX = "PC"
_CODE_RE = re.compile(r"PC-(\d+)")


def format_traceability_code(number: int) -> str:
    """7 -> 'PC-007'"""
    return f"{TRACEABILITY_PREFIX}-{number:03d}"


def parse_traceability_number(code: Optional[str]) -> Optional[int]:
    """'PC-012' -> 12, мусор -> None"""
    if not code:
        return None
    match = _CODE_RE.search(code)
    if not match:
        return None
    return int(match.group(1))


def next_traceability_code(codes: Iterable[Optional[str]]) -> str:
    """Следующий номер после максимального из существующих кодов"""
    numbers = [n for n in (parse_traceability_number(c) for c in codes) if n is not None]
    return format_traceability_code(max(numbers, default=0) + 1)


def material_weight(length_mm: float, weight_per_meter: Optional[float]) -> float:
    """Масса отрезка, кг (weight_per_meter в кг/м)"""
    if not weight_per_meter:
        return 0.0
    return length_mm / 1000 * weight_per_meter


def build_plan_document(
    plan: CuttingPlan,
    stock_length: float,
    kerf: float,
    items: Iterable[Dict],
    metadata: Optional[Dict] = None,
    weight_per_meter: Optional[float] = None
) -> Dict:
    """
    Собрать документ плана для сохранения и выдачи клиенту.

    Паттерны и итоги сохраняются без изменений, к ним добавляются
    раскладка по хлыстам, масса закупаемого материала и масса отхода.
    """
    summary = plan.summary
    purchased_length = summary.total_bars * stock_length
    layout = build_plan_layout(plan, stock_length, kerf)

    document = {
        "bar_length": stock_length,
        "kerf": kerf,
        "weight_per_meter": weight_per_meter,
        "items": list(items),
        "patterns": [p.to_dict() for p in plan.patterns],
        "summary": summary.to_dict(),
        "skipped": [s.to_dict() for s in plan.skipped],
        "layout": [bar.to_dict() for bar in layout],
        "total_material_weight": material_weight(purchased_length, weight_per_meter),
        "total_scrap_weight": material_weight(summary.total_scrap_length, weight_per_meter),
    }
    document.update(metadata or {})
    return document
