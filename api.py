"""
FastAPI сервер линейного раскроя BarCut.
Расчет планов раскроя хлыстов, склад хлыстов, сохраненные планы.
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import List, Optional
import logging

import database
from cutting_stock import generate_cutting_plan, CuttingPlan, PlanRejected, MAX_PIECES as DEFAULT_MAX_PIECES
from cutting_plan import build_plan_document
from cut_sequence import build_plan_layout
from utils import env_float, env_int

logger = logging.getLogger(__name__)

DEFAULT_KERF = env_float("DEFAULT_KERF", 3.0)
MAX_BARS = env_int("MAX_BARS", 100)
MAX_PIECES = env_int("MAX_PIECES", DEFAULT_MAX_PIECES)

app = FastAPI(title="BarCut", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"name": app.title, "version": app.version}


# ========== API Models ==========
class CutItemModel(BaseModel):
    length: float  # мм
    quantity: float
    code: Optional[str] = None  # Код чертежа / номер позиции
    description: Optional[str] = None


class CalculateRequest(BaseModel):
    stock_length: Optional[float] = None  # длина хлыста, мм
    kerf: float = DEFAULT_KERF  # ширина пропила
    items: List[CutItemModel]
    max_bars: Optional[int] = None  # None - значение сервера (MAX_BARS)


class SavePlanRequest(CalculateRequest):
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    material_name: Optional[str] = None
    material_description: Optional[str] = None
    weight_per_meter: Optional[float] = None  # кг/м
    stock_bar_id: Optional[int] = None  # длина и масса берутся со склада, если не заданы
    consume_stock: bool = False  # списать хлысты со склада
    created_by: Optional[str] = None
    allow_duplicate: bool = False


class StockBarCreateModel(BaseModel):
    material: str
    length: float
    quantity: int = 1
    profile: Optional[str] = None
    description: Optional[str] = None
    weight_per_meter: Optional[float] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class FindBestBarRequest(BaseModel):
    items: List[CutItemModel]
    kerf: float = DEFAULT_KERF
    material: Optional[str] = None  # Фильтр по материалу
    max_bars: Optional[int] = None


def _items_payload(items: List[CutItemModel]) -> List[dict]:
    return [it.model_dump() for it in items]


def _run_plan(stock_length, kerf, items: List[CutItemModel], max_bars: Optional[int]) -> CuttingPlan:
    result = generate_cutting_plan(
        stock_length, kerf, _items_payload(items),
        max_bars=max_bars if max_bars is not None else MAX_BARS,
        max_pieces=MAX_PIECES,
    )
    if isinstance(result, PlanRejected):
        raise HTTPException(status_code=422, detail=result.to_dict())
    return result


def _stock_bar_to_dict(bar) -> dict:
    return {
        "id": bar.id,
        "material": bar.material,
        "profile": bar.profile,
        "description": bar.description,
        "length": bar.length,
        "weight_per_meter": bar.weight_per_meter,
        "bar_weight": bar.bar_weight(),
        "quantity": bar.quantity,
        "location": bar.location,
        "notes": bar.notes,
        "is_active": bar.is_active
    }


# ========== Cutting Plan Endpoints ==========

@app.post("/cutting-plans/calculate")
def calculate_endpoint(req: CalculateRequest):
    """Расчет плана раскроя без сохранения"""
    plan = _run_plan(req.stock_length, req.kerf, req.items, req.max_bars)
    response = plan.to_dict()
    response["layout"] = [bar.to_dict() for bar in build_plan_layout(plan, req.stock_length, req.kerf)]
    return response


@app.post("/cutting-plans", status_code=201)
def save_plan_endpoint(req: SavePlanRequest):
    """Расчет и сохранение плана раскроя"""
    stock_length = req.stock_length
    weight_per_meter = req.weight_per_meter
    material_name = req.material_name

    if req.stock_bar_id is not None:
        bar = database.get_stock_bar_by_id(req.stock_bar_id)
        if not bar:
            raise HTTPException(status_code=404, detail="Хлыст не найден")
        stock_length = stock_length if stock_length is not None else bar.length
        weight_per_meter = weight_per_meter if weight_per_meter is not None else bar.weight_per_meter
        material_name = material_name or bar.material

    # Дубликат проверяется только для плана по заказу
    if req.order_id and not req.allow_duplicate and database.find_active_plans(req.order_id, material_name):
        raise HTTPException(
            status_code=409,
            detail="План раскроя для этого заказа и материала уже существует"
        )

    plan = _run_plan(stock_length, req.kerf, req.items, req.max_bars)

    document = build_plan_document(
        plan,
        stock_length=stock_length,
        kerf=req.kerf,
        items=_items_payload(req.items),
        weight_per_meter=weight_per_meter,
        metadata={
            "order_id": req.order_id,
            "order_number": req.order_number,
            "material_name": material_name,
            "material_description": req.material_description,
            "stock_bar_id": req.stock_bar_id,
            "created_by": req.created_by
        }
    )
    record = database.save_cutting_plan(document)

    if req.consume_stock and req.stock_bar_id is not None:
        database.decrease_stock_quantity(req.stock_bar_id, plan.summary.total_bars)

    return database.plan_to_dict(record)


@app.get("/cutting-plans")
def list_plans_endpoint(search: Optional[str] = None, limit: int = 100):
    """Список активных планов (новые сначала)"""
    plans = database.get_cutting_plans(search=search, limit=limit)
    return {"plans": [database.plan_to_dict(p) for p in plans]}


@app.get("/cutting-plans/{plan_id}")
def get_plan_endpoint(plan_id: int):
    record = database.get_cutting_plan_by_id(plan_id)
    if not record:
        raise HTTPException(status_code=404, detail="План раскроя не найден")
    return database.plan_to_dict(record)


@app.delete("/cutting-plans/{plan_id}")
def delete_plan_endpoint(plan_id: int):
    """Пометить план удаленным"""
    if not database.delete_cutting_plan(plan_id):
        raise HTTPException(status_code=404, detail="План раскроя не найден")
    return {"success": True}


@app.delete("/cutting-plans")
def delete_all_plans_endpoint():
    """Пометить удаленными все планы"""
    return {"success": True, "deleted": database.delete_all_cutting_plans()}


# ========== Stock Bar Endpoints ==========

@app.get("/stock-bars")
def get_stock_bars(material: Optional[str] = None, active_only: bool = True):
    """Получить список хлыстов на складе"""
    if material:
        bars = database.get_stock_bars_by_material(material, active_only)
    else:
        bars = database.get_all_stock_bars(active_only)
    return {"stock_bars": [_stock_bar_to_dict(b) for b in bars]}


@app.post("/stock-bars", status_code=201)
def create_stock_bar_endpoint(bar: StockBarCreateModel):
    """Добавить хлыст на склад"""
    if bar.length <= 0:
        raise HTTPException(status_code=422, detail="Длина хлыста должна быть больше нуля")
    new_bar = database.create_stock_bar(**bar.model_dump())
    return _stock_bar_to_dict(new_bar)


@app.get("/stock-bars/{bar_id}")
def get_stock_bar_endpoint(bar_id: int):
    bar = database.get_stock_bar_by_id(bar_id)
    if not bar:
        raise HTTPException(status_code=404, detail="Хлыст не найден")
    return _stock_bar_to_dict(bar)


@app.delete("/stock-bars/{bar_id}")
def delete_stock_bar_endpoint(bar_id: int, hard_delete: bool = False):
    """Удалить хлыст"""
    if not database.delete_stock_bar(bar_id, soft_delete=not hard_delete):
        raise HTTPException(status_code=404, detail="Хлыст не найден")
    return {"success": True}


# ========== Find Best Bar Endpoint ==========

@app.post("/find-best-bar")
def find_best_bar_endpoint(req: FindBestBarRequest):
    """
    Подобрать хлыст со склада для заданных деталей.
    Для каждого доступного хлыста строится план; выбирается план
    с максимальным выходом, при равенстве - с меньшим числом хлыстов.
    """
    if req.material:
        bars = database.get_stock_bars_by_material(req.material, active_only=True)
    else:
        bars = database.get_all_stock_bars(active_only=True)
    bars = [b for b in bars if b.quantity > 0]

    if not bars:
        raise HTTPException(status_code=404, detail="Нет доступных хлыстов на складе")

    best_bar = None
    best_plan: Optional[CuttingPlan] = None
    last_rejection: Optional[PlanRejected] = None
    max_bars = req.max_bars if req.max_bars is not None else MAX_BARS

    for bar in bars:
        result = generate_cutting_plan(bar.length, req.kerf, _items_payload(req.items),
                                       max_bars=max_bars, max_pieces=MAX_PIECES)
        if isinstance(result, PlanRejected):
            last_rejection = result
            continue

        if best_plan is None or _is_better(result, best_plan):
            best_plan = result
            best_bar = bar

    if best_plan is None:
        raise HTTPException(status_code=422, detail=last_rejection.to_dict())

    logger.info("Best stock bar %s: %d bars, yield %.2f%%",
                best_bar.id, best_plan.summary.total_bars, best_plan.summary.total_yield_percentage)

    response = best_plan.to_dict()
    response["stock_bar"] = _stock_bar_to_dict(best_bar)
    response["in_stock"] = best_bar.quantity >= best_plan.summary.total_bars
    response["layout"] = [b.to_dict() for b in build_plan_layout(best_plan, best_bar.length, req.kerf)]
    return response


def _is_better(candidate: CuttingPlan, current: CuttingPlan) -> bool:
    a, b = candidate.summary, current.summary
    if a.total_yield_percentage != b.total_yield_percentage:
        return a.total_yield_percentage > b.total_yield_percentage
    return a.total_bars < b.total_bars


# ========== Initialize Database on Startup ==========

@app.on_event("startup")
def startup_event():
    """Инициализация БД при запуске сервера"""
    database.init_db()
    logger.info("Database initialized")

    if not database.get_all_stock_bars(active_only=False):
        logger.info("Stock is empty, adding sample stock bars")
        database.populate_sample_data()

