"""
Cut Sequence Builder - последовательность резов по каждому хлысту

Для каждой карты раскроя строится список отрезков вдоль хлыста:
деталь → пропил → деталь → ... → остаток (отход).
Позиции считаются от торца хлыста, мм.
"""
from typing import Dict, List, Optional

from cutting_stock import CuttingPattern, CuttingPlan, Piece


class CutSegment:
    """Отрезок хлыста: деталь, пропил или остаток"""

    def __init__(
        self,
        seq: int,
        segment_type: str,  # "piece", "kerf", "scrap"
        start: float,
        end: float,
        code: Optional[str] = None,
        description: Optional[str] = None
    ):
        self.seq = seq
        self.segment_type = segment_type
        self.start = start
        self.end = end
        self.code = code
        self.description = description

    @property
    def length(self) -> float:
        return self.end - self.start

    @property
    def is_scrap(self) -> bool:
        return self.segment_type == "scrap"

    def to_dict(self):
        return {
            "seq": self.seq,
            "type": self.segment_type,
            "start": self.start,
            "end": self.end,
            "length": self.length,
            "code": self.code,
            "description": self.description,
            "is_scrap": self.is_scrap
        }


class BarLayout:
    """
    Раскладка одного хлыста.

    - Нумерация отрезков по порядку выполнения резов
    - Пропил только между соседними деталями
    - Хвостовой остаток, если он больше нуля
    """

    def __init__(self, pattern: CuttingPattern, stock_length: float, kerf: float = 0.0):
        self.pattern = pattern
        self.stock_length = stock_length
        self.kerf = kerf
        self.segments: List[CutSegment] = []
        self.seq_counter = 0

        self._build()

    def _next_seq(self) -> int:
        self.seq_counter += 1
        return self.seq_counter

    def _pieces(self) -> List[Piece]:
        # sources пустые, если паттерн собран вручную
        if self.pattern.sources:
            return list(self.pattern.sources)
        return [Piece(length=length) for length in self.pattern.pieces]

    def _build(self):
        # Позиции считаются так же, как bar_usage: сумма деталей + i пропилов
        material = 0.0
        position = 0.0
        for index, piece in enumerate(self._pieces()):
            start = material + index * self.kerf
            if index > 0 and self.kerf > 0:
                self.segments.append(CutSegment(
                    seq=self._next_seq(),
                    segment_type="kerf",
                    start=position,
                    end=start
                ))

            material += piece.length
            position = material + index * self.kerf
            self.segments.append(CutSegment(
                seq=self._next_seq(),
                segment_type="piece",
                start=start,
                end=position,
                code=piece.code,
                description=piece.description
            ))

        if self.stock_length - position > 0:
            self.segments.append(CutSegment(
                seq=self._next_seq(),
                segment_type="scrap",
                start=position,
                end=self.stock_length
            ))

    @property
    def cuts(self) -> List[CutSegment]:
        return [s for s in self.segments if s.segment_type == "piece"]

    @property
    def total_cuts(self) -> int:
        return len(self.cuts)

    @property
    def remaining_length(self) -> float:
        scrap = [s for s in self.segments if s.is_scrap]
        return scrap[0].length if scrap else 0.0

    def check_overlaps(self) -> List[Dict]:
        """Проверка, что отрезки не перекрываются и не выходят за хлыст"""
        conflicts = []
        previous: Optional[CutSegment] = None
        for segment in self.segments:
            if previous is not None and segment.start < previous.end:
                conflicts.append({"seq": segment.seq, "overlaps": previous.seq})
            if segment.end > self.stock_length:
                conflicts.append({"seq": segment.seq, "exceeds_bar": segment.end - self.stock_length})
            previous = segment
        return conflicts

    def to_dict(self):
        return {
            "bar_number": self.pattern.pattern_id,
            "total_length": self.stock_length,
            "remaining_length": self.remaining_length,
            "cuts": [s.to_dict() for s in self.segments]
        }


def build_bar_layout(pattern: CuttingPattern, stock_length: float, kerf: float = 0.0) -> BarLayout:
    return BarLayout(pattern, stock_length, kerf)


def build_plan_layout(plan: CuttingPlan, stock_length: float, kerf: float = 0.0) -> List[BarLayout]:
    """Раскладка всех хлыстов плана в порядке pattern_id"""
    return [BarLayout(pattern, stock_length, kerf) for pattern in plan.patterns]
