"""
Линейный раскрой хлыстов (1D cutting stock)
First-Fit Decreasing с учетом ширины пропила
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging
import math

logger = logging.getLogger(__name__)

INVALID_INPUT = "invalid_input"
NO_VALID_ITEMS = "no_valid_items"

MSG_INVALID_INPUT = "invalid input: missing stock length or items"
MSG_INVALID_KERF = "invalid input: kerf must be a non-negative number"
MSG_NO_VALID_ITEMS = "no valid items to cut"

SKIP_INVALID_LENGTH = "invalid_length"
SKIP_INVALID_QUANTITY = "invalid_quantity"
SKIP_EXCEEDS_STOCK = "exceeds_stock"

# Предел деталей после развертки количества
MAX_PIECES = 1_000_000


@dataclass(frozen=True)
class CutRequest:
    """Позиция заказа: длина детали и количество"""
    length: Any
    quantity: Any
    code: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Piece:
    """Одна деталь после развертки количества"""
    length: float
    code: Optional[str] = None
    description: Optional[str] = None
    request_index: int = 0


@dataclass(frozen=True)
class SkippedItem:
    """Позиция, исключенная из раскроя"""
    index: int
    length: Any
    quantity: Any
    reason: str
    pieces: int = 0
    code: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "index": self.index,
            "code": self.code,
            "description": self.description,
            "length": self.length,
            "quantity": self.quantity,
            "reason": self.reason,
            "pieces": self.pieces,
        }


@dataclass(frozen=True)
class CuttingPattern:
    """Карта раскроя одного хлыста"""
    pattern_id: int
    pattern_string: str
    pieces: Tuple[float, ...]
    bar_usage: float
    leftover: float
    yield_percentage: float
    bars_needed: int = 1
    sources: Tuple[Piece, ...] = field(default=(), repr=False, compare=False)

    def to_dict(self) -> Dict:
        return {
            "patternId": self.pattern_id,
            "patternString": self.pattern_string,
            "pieces": list(self.pieces),
            "barUsage": self.bar_usage,
            "leftover": self.leftover,
            "yieldPercentage": self.yield_percentage,
            "barsNeeded": self.bars_needed,
        }


@dataclass(frozen=True)
class PlanSummary:
    """Итоги по плану раскроя"""
    total_bars: int = 0
    total_yield_percentage: float = 0.0
    total_scrap_percentage: float = 0.0
    total_scrap_length: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "totalBars": self.total_bars,
            "totalYieldPercentage": self.total_yield_percentage,
            "totalScrapPercentage": self.total_scrap_percentage,
            "totalScrapLength": self.total_scrap_length,
        }


@dataclass(frozen=True)
class CuttingPlan:
    """Успешный результат раскроя"""
    patterns: Tuple[CuttingPattern, ...]
    summary: PlanSummary
    skipped: Tuple[SkippedItem, ...] = ()
    success: bool = field(default=True, init=False)

    def to_dict(self) -> Dict:
        return {
            "success": True,
            "patterns": [p.to_dict() for p in self.patterns],
            "summary": self.summary.to_dict(),
            "skipped": [s.to_dict() for s in self.skipped],
        }


@dataclass(frozen=True)
class PlanRejected:
    """Раскрой не выполнен: некорректные входные данные"""
    reason: str
    message: str
    skipped: Tuple[SkippedItem, ...] = ()
    success: bool = field(default=False, init=False)

    def to_dict(self) -> Dict:
        return {
            "success": False,
            "reason": self.reason,
            "message": self.message,
            "skipped": [s.to_dict() for s in self.skipped],
        }


PlanResult = Union[CuttingPlan, PlanRejected]


def _as_number(value: Any) -> Optional[float]:
    """Число или None, если значение нельзя трактовать как конечное число"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value if isinstance(value, (int, float)) else str(value).strip())
    except (ValueError, OverflowError):
        # OverflowError: целое за пределами float (10**400)
        return None
    if not math.isfinite(number):
        return None
    return value if isinstance(value, (int, float)) else number


def format_length(value: float) -> str:
    """2000.0 -> '2000', 1250.5 -> '1250.5'"""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def build_pattern_string(pieces: Iterable[float]) -> str:
    """Группировка деталей по длине: '2 x 2000mm + 1 x 500mm'"""
    counts: Dict[float, int] = {}
    for length in pieces:
        counts[length] = counts.get(length, 0) + 1
    return " + ".join(
        f"{count} x {format_length(length)}mm"
        for length, count in sorted(counts.items(), key=lambda kv: kv[0], reverse=True)
    )


def _read_request(item: Union[CutRequest, Mapping]) -> CutRequest:
    if isinstance(item, CutRequest):
        return item
    if isinstance(item, Mapping):
        return CutRequest(
            length=item.get("length"),
            quantity=item.get("quantity"),
            code=item.get("code"),
            description=item.get("description"),
        )
    return CutRequest(
        length=getattr(item, "length", None),
        quantity=getattr(item, "quantity", None),
        code=getattr(item, "code", None),
        description=getattr(item, "description", None),
    )


def _validate_items(items: Iterable, stock_length: float):
    """
    Проверка позиций без развертки количества.

    Returns:
        (accepted, skipped) - accepted: список (index, request, length, count)
    """
    accepted = []
    skipped: List[SkippedItem] = []

    for index, raw in enumerate(items):
        request = _read_request(raw)
        length = _as_number(request.length)
        quantity = _as_number(request.quantity)

        if length is None or length <= 0:
            skipped.append(SkippedItem(index=index, length=request.length, quantity=request.quantity,
                                       reason=SKIP_INVALID_LENGTH, code=request.code,
                                       description=request.description))
            continue

        count = int(math.floor(quantity)) if quantity is not None else 0
        if count <= 0:
            skipped.append(SkippedItem(index=index, length=request.length, quantity=request.quantity,
                                       reason=SKIP_INVALID_QUANTITY, code=request.code,
                                       description=request.description))
            continue

        # Деталь длиннее хлыста не помещается ни в один хлыст
        if length > stock_length:
            skipped.append(SkippedItem(index=index, length=length, quantity=request.quantity,
                                       reason=SKIP_EXCEEDS_STOCK, pieces=count, code=request.code,
                                       description=request.description))
            continue

        accepted.append((index, request, length, count))

    return accepted, skipped


def _expand(accepted) -> List[Piece]:
    pieces: List[Piece] = []
    for index, request, length, count in accepted:
        for _ in range(count):
            pieces.append(Piece(length=length, code=request.code,
                                description=request.description, request_index=index))
    return pieces


def expand_pieces(items: Iterable, stock_length: float):
    """
    Развертка позиций в отдельные детали.

    Returns:
        (pieces, skipped) - детали в исходном порядке и отброшенные позиции
    """
    accepted, skipped = _validate_items(items, stock_length)
    return _expand(accepted), skipped


def min_bars_needed(accepted, stock_length: float) -> int:
    """Нижняя граница числа хлыстов: суммарная длина деталей без пропилов"""
    total_length = sum(length * count for _, _, length, count in accepted)
    return max(1, math.ceil(total_length / stock_length - 1e-9))


def bar_usage(material: float, count: int, kerf: float) -> float:
    """Занятая длина хлыста: детали плюс пропилы между ними"""
    return material + max(0, count - 1) * kerf


class _Bar:
    """Открытый хлыст в процессе раскладки"""

    def __init__(self, first: Piece):
        self.material = first.length
        self.pieces: List[Piece] = [first]

    def fits(self, length: float, stock_length: float, kerf: float) -> bool:
        # Та же формула, что и для остатка в отчете
        usage = bar_usage(self.material + length, len(self.pieces) + 1, kerf)
        return stock_length - usage >= 0

    def add(self, piece: Piece) -> None:
        self.material += piece.length
        self.pieces.append(piece)


class FirstFitDecreasing:
    """
    First-Fit Decreasing для линейного раскроя

    Алгоритм:
    1. Сортировка деталей по длине (от длинных к коротким, стабильная)
    2. Каждая деталь кладется в первый открытый хлыст, где хватает места
       (длина + пропил, если в хлысте уже есть детали)
    3. Если места нет ни в одном хлысте - открывается новый
    """

    def __init__(self, stock_length: float, kerf: float, pieces: List[Piece],
                 max_bars: Optional[int] = None):
        self.stock_length = stock_length
        self.kerf = kerf
        self.pieces = pieces
        self.max_bars = max_bars

    def solve(self) -> Optional[List[List[Piece]]]:
        """
        Returns:
            Детали по хлыстам в порядке открытия или None, если превышен max_bars
        """
        ordered = sorted(self.pieces, key=lambda p: p.length, reverse=True)
        bars: List[_Bar] = []

        for piece in ordered:
            for bar in bars:
                if bar.fits(piece.length, self.stock_length, self.kerf):
                    bar.add(piece)
                    break
            else:
                if self.max_bars is not None and len(bars) >= self.max_bars:
                    return None
                bars.append(_Bar(piece))

        return [bar.pieces for bar in bars]


def build_pattern(pattern_id: int, pieces: List[Piece], stock_length: float,
                  kerf: float) -> CuttingPattern:
    lengths = tuple(p.length for p in pieces)
    material = lengths[0]
    for length in lengths[1:]:
        material += length
    usage = bar_usage(material, len(lengths), kerf)
    return CuttingPattern(
        pattern_id=pattern_id,
        pattern_string=build_pattern_string(lengths),
        pieces=lengths,
        bar_usage=usage,
        leftover=stock_length - usage,
        yield_percentage=material / stock_length * 100,
        bars_needed=1,
        sources=tuple(pieces),
    )


def summarize(patterns: Iterable[CuttingPattern], stock_length: float) -> PlanSummary:
    patterns = list(patterns)
    total_bars = len(patterns)
    if total_bars == 0:
        return PlanSummary()

    total_scrap = sum(p.leftover for p in patterns)
    purchased = total_bars * stock_length
    total_yield = (purchased - total_scrap) / purchased * 100
    return PlanSummary(
        total_bars=total_bars,
        total_yield_percentage=total_yield,
        total_scrap_percentage=100 - total_yield,
        total_scrap_length=total_scrap,
    )


def _too_many_bars(max_bars: int, skipped) -> PlanRejected:
    return PlanRejected(
        reason=INVALID_INPUT,
        message=f"invalid input: plan needs more than {max_bars} bars",
        skipped=tuple(skipped),
    )


def generate_cutting_plan(stock_length: Any, kerf: Any, items: Optional[Iterable],
                          max_bars: Optional[int] = None,
                          max_pieces: int = MAX_PIECES) -> PlanResult:
    """
    Построить план раскроя хлыстов.

    Args:
        stock_length: Длина хлыста (мм)
        kerf: Ширина пропила (мм), учитывается только между деталями
        items: CutRequest или словари с ключами length/quantity/code/description
        max_bars: Максимум хлыстов в плане (None - без ограничения)
        max_pieces: Максимум деталей после развертки количества

    Returns:
        CuttingPlan или PlanRejected. Исключения по данным не выбрасываются.
    """
    items = list(items or [])
    stock = _as_number(stock_length)
    if stock is None or stock <= 0 or not items:
        return PlanRejected(reason=INVALID_INPUT, message=MSG_INVALID_INPUT)

    kerf_value = 0 if kerf is None else _as_number(kerf)
    if kerf_value is None or kerf_value < 0:
        return PlanRejected(reason=INVALID_INPUT, message=MSG_INVALID_KERF)

    accepted, skipped = _validate_items(items, stock)
    if skipped:
        logger.debug("Skipped %d of %d items", len(skipped), len(items))
    if not accepted:
        return PlanRejected(reason=NO_VALID_ITEMS, message=MSG_NO_VALID_ITEMS, skipped=tuple(skipped))

    # Ограничения проверяются до развертки количества
    total_pieces = sum(count for _, _, _, count in accepted)
    if total_pieces > max_pieces:
        logger.warning("Rejected plan with %d pieces (limit %d)", total_pieces, max_pieces)
        return PlanRejected(reason=INVALID_INPUT, message=f"invalid input: more than {max_pieces} pieces",
                            skipped=tuple(skipped))
    if max_bars is not None and min_bars_needed(accepted, stock) > max_bars:
        return _too_many_bars(max_bars, skipped)

    pieces = _expand(accepted)
    bars = FirstFitDecreasing(stock, kerf_value, pieces, max_bars=max_bars).solve()
    if bars is None:
        return _too_many_bars(max_bars, skipped)

    patterns = tuple(build_pattern(i, bar, stock, kerf_value) for i, bar in enumerate(bars, start=1))
    summary = summarize(patterns, stock)
    logger.info("Cutting plan: %d pieces on %d bars, yield %.2f%%",
                len(pieces), summary.total_bars, summary.total_yield_percentage)
    return CuttingPlan(patterns=patterns, summary=summary, skipped=tuple(skipped))
