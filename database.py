"""
Database operations for BarCut
"""
from sqlalchemy import create_engine, desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from models import Base, StockBar, CuttingPlanRecord
from cutting_plan import next_traceability_code
from typing import List, Optional, Dict
import json
import logging
import os

logger = logging.getLogger(__name__)


# Database setup
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///barcut.db")
engine = None
SessionLocal = None


def configure(database_url: str = DATABASE_URL):
    """Создать engine и фабрику сессий для заданного URL"""
    global engine, SessionLocal
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return engine


configure(DATABASE_URL)


def init_db():
    """Создать все таблицы в базе данных"""
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    """Получить сессию БД (закрывается вызывающей функцией)"""
    return SessionLocal()


# ============================================================================
# CRUD операции для StockBar
# ============================================================================

def create_stock_bar(
    material: str,
    length: float,
    quantity: int = 1,
    profile: Optional[str] = None,
    description: Optional[str] = None,
    weight_per_meter: Optional[float] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None
) -> StockBar:
    """Добавить хлыст на склад"""
    db = get_db()
    try:
        bar = StockBar(
            material=material,
            profile=profile,
            description=description,
            length=length,
            weight_per_meter=weight_per_meter,
            quantity=quantity,
            location=location,
            notes=notes
        )
        db.add(bar)
        db.commit()
        db.refresh(bar)
        return bar
    finally:
        db.close()


def get_all_stock_bars(active_only: bool = True) -> List[StockBar]:
    """Получить все хлысты"""
    db = get_db()
    try:
        query = db.query(StockBar)
        if active_only:
            query = query.filter(StockBar.is_active == True)
        return query.order_by(StockBar.id).all()
    finally:
        db.close()


def get_stock_bar_by_id(bar_id: int) -> Optional[StockBar]:
    """Получить хлыст по ID"""
    db = get_db()
    try:
        return db.query(StockBar).filter(StockBar.id == bar_id).first()
    finally:
        db.close()


def get_stock_bars_by_material(material: str, active_only: bool = True) -> List[StockBar]:
    """Получить хлысты определенного материала"""
    db = get_db()
    try:
        query = db.query(StockBar).filter(StockBar.material == material)
        if active_only:
            query = query.filter(StockBar.is_active == True)
        return query.order_by(StockBar.id).all()
    finally:
        db.close()


def update_stock_bar(bar_id: int, **kwargs) -> Optional[StockBar]:
    """Обновить хлыст"""
    db = get_db()
    try:
        bar = db.query(StockBar).filter(StockBar.id == bar_id).first()
        if not bar:
            return None

        for key, value in kwargs.items():
            if hasattr(bar, key):
                setattr(bar, key, value)

        db.commit()
        db.refresh(bar)
        return bar
    finally:
        db.close()


def delete_stock_bar(bar_id: int, soft_delete: bool = True) -> bool:
    """Удалить хлыст (мягкое или жесткое удаление)"""
    db = get_db()
    try:
        bar = db.query(StockBar).filter(StockBar.id == bar_id).first()
        if not bar:
            return False

        if soft_delete:
            bar.is_active = False
        else:
            db.delete(bar)
        db.commit()
        return True
    finally:
        db.close()


def decrease_stock_quantity(bar_id: int, amount: int = 1) -> Optional[StockBar]:
    """Списать хлысты со склада (после раскроя)"""
    db = get_db()
    try:
        bar = db.query(StockBar).filter(StockBar.id == bar_id).first()
        if not bar:
            return None

        bar.quantity -= amount
        if bar.quantity <= 0:
            bar.quantity = 0
            bar.is_active = False

        db.commit()
        db.refresh(bar)
        return bar
    finally:
        db.close()


# ============================================================================
# CRUD операции для CuttingPlanRecord
# ============================================================================

# Повторы при гонке за код прослеживаемости
SAVE_ATTEMPTS = 3


def _next_code(db: Session) -> str:
    codes = [row[0] for row in db.query(CuttingPlanRecord.traceability_code).all()]
    return next_traceability_code(codes)


def get_next_traceability_code() -> str:
    """Следующий код PC-NNN (по всем планам, включая удаленные)"""
    db = get_db()
    try:
        return _next_code(db)
    finally:
        db.close()


def save_cutting_plan(document: Dict) -> CuttingPlanRecord:
    """
    Сохранить документ плана (см. cutting_plan.build_plan_document).
    Код прослеживаемости назначается здесь; при конфликте уникальности
    код пересчитывается.
    """
    summary = document["summary"]
    fields = dict(
        order_id=document.get("order_id"),
        order_number=document.get("order_number"),
        material_name=document.get("material_name"),
        material_description=document.get("material_description"),
        stock_bar_id=document.get("stock_bar_id"),
        bar_length=document["bar_length"],
        kerf=document.get("kerf", 0.0),
        weight_per_meter=document.get("weight_per_meter"),
        items_json=json.dumps(document.get("items", [])),
        patterns_json=json.dumps(document["patterns"]),
        layout_json=json.dumps(document.get("layout", [])),
        skipped_json=json.dumps(document.get("skipped", [])),
        total_bars=summary["totalBars"],
        total_yield_percentage=summary["totalYieldPercentage"],
        total_scrap_percentage=summary["totalScrapPercentage"],
        total_scrap_length=summary["totalScrapLength"],
        total_material_weight=document.get("total_material_weight", 0.0),
        total_scrap_weight=document.get("total_scrap_weight", 0.0),
        created_by=document.get("created_by")
    )

    db = get_db()
    try:
        for attempt in range(1, SAVE_ATTEMPTS + 1):
            record = CuttingPlanRecord(traceability_code=_next_code(db), **fields)
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if attempt == SAVE_ATTEMPTS:
                    raise
                logger.warning("Traceability code %s already taken, retrying", record.traceability_code)
                continue
            db.refresh(record)
            logger.info("Saved cutting plan %s (%d bars)", record.traceability_code, record.total_bars)
            return record
    finally:
        db.close()


def get_cutting_plans(search: Optional[str] = None, limit: int = 100) -> List[CuttingPlanRecord]:
    """Активные планы, новые сначала; поиск по коду, материалу и описанию"""
    db = get_db()
    try:
        query = db.query(CuttingPlanRecord).filter(CuttingPlanRecord.deleted == False)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                CuttingPlanRecord.traceability_code.ilike(pattern),
                CuttingPlanRecord.material_name.ilike(pattern),
                CuttingPlanRecord.material_description.ilike(pattern)
            ))
        return query.order_by(
            desc(CuttingPlanRecord.created_at), desc(CuttingPlanRecord.id)
        ).limit(limit).all()
    finally:
        db.close()


def get_cutting_plan_by_id(plan_id: int, include_deleted: bool = False) -> Optional[CuttingPlanRecord]:
    """Получить план по ID"""
    db = get_db()
    try:
        query = db.query(CuttingPlanRecord).filter(CuttingPlanRecord.id == plan_id)
        if not include_deleted:
            query = query.filter(CuttingPlanRecord.deleted == False)
        return query.first()
    finally:
        db.close()


def find_active_plans(order_id: Optional[str], material_name: Optional[str]) -> List[CuttingPlanRecord]:
    """Активные планы для пары заказ + материал"""
    db = get_db()
    try:
        return db.query(CuttingPlanRecord).filter(
            CuttingPlanRecord.order_id == order_id,
            CuttingPlanRecord.material_name == material_name,
            CuttingPlanRecord.deleted == False
        ).all()
    finally:
        db.close()


def delete_cutting_plan(plan_id: int) -> bool:
    """Пометить план удаленным"""
    db = get_db()
    try:
        record = db.query(CuttingPlanRecord).filter(
            CuttingPlanRecord.id == plan_id,
            CuttingPlanRecord.deleted == False
        ).first()
        if not record:
            return False

        record.deleted = True
        db.commit()
        return True
    finally:
        db.close()


def delete_all_cutting_plans() -> int:
    """Пометить удаленными все планы, возвращает количество"""
    db = get_db()
    try:
        count = db.query(CuttingPlanRecord).filter(
            CuttingPlanRecord.deleted == False
        ).update({CuttingPlanRecord.deleted: True}, synchronize_session=False)
        db.commit()
        return count
    finally:
        db.close()


def plan_to_dict(record: CuttingPlanRecord) -> Dict:
    """Запись плана в формате ответа API"""
    return {
        "id": record.id,
        "traceability_code": record.traceability_code,
        "order_id": record.order_id,
        "order_number": record.order_number,
        "material_name": record.material_name,
        "material_description": record.material_description,
        "stock_bar_id": record.stock_bar_id,
        "bar_length": record.bar_length,
        "kerf": record.kerf,
        "weight_per_meter": record.weight_per_meter,
        "items": json.loads(record.items_json),
        "patterns": json.loads(record.patterns_json),
        "layout": json.loads(record.layout_json) if record.layout_json else [],
        "skipped": json.loads(record.skipped_json) if record.skipped_json else [],
        "summary": {
            "totalBars": record.total_bars,
            "totalYieldPercentage": record.total_yield_percentage,
            "totalScrapPercentage": record.total_scrap_percentage,
            "totalScrapLength": record.total_scrap_length
        },
        "total_material_weight": record.total_material_weight,
        "total_scrap_weight": record.total_scrap_weight,
        "created_by": record.created_by,
        "created_at": record.created_at.isoformat() if record.created_at else None
    }


# ============================================================================
# Вспомогательные функции
# ============================================================================

def populate_sample_data():
    """Заполнить БД тестовыми данными"""
    create_stock_bar(
        material="Сталь 1020",
        profile="Полоса 50x6",
        length=6000,
        weight_per_meter=2.355,
        quantity=40,
        location="Стеллаж A-1"
    )

    create_stock_bar(
        material="Сталь 1020",
        profile="Полоса 50x6",
        length=12000,
        weight_per_meter=2.355,
        quantity=15,
        location="Стеллаж A-2",
        notes="Длинномер"
    )

    create_stock_bar(
        material="Сталь 1020",
        profile="Труба 40x40x2",
        length=6000,
        weight_per_meter=2.31,
        quantity=25,
        location="Стеллаж A-3"
    )

    create_stock_bar(
        material="Алюминий 6063",
        profile="Уголок 30x30x3",
        length=6000,
        weight_per_meter=0.47,
        quantity=30,
        location="Стеллаж B-1"
    )


if __name__ == "__main__":
    init_db()
    populate_sample_data()

    for bar in get_all_stock_bars():
        print(bar)
