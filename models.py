"""
Database models for BarCut
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class StockBar(Base):
    """
    Хлыст (прокат) на складе
    """
    __tablename__ = 'stock_bars'

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Материал
    material = Column(String(100), nullable=False)  # Например, "Сталь 1020"
    profile = Column(String(100), nullable=True)  # Профиль: "Полоса 50x6", "Труба 40x40x2"
    description = Column(String(200), nullable=True)

    # Длина хлыста (мм) и погонная масса (кг/м)
    length = Column(Float, nullable=False)
    weight_per_meter = Column(Float, nullable=True)

    quantity = Column(Integer, nullable=False, default=1)
    location = Column(String(100), nullable=True)  # Например, "Стеллаж А-5"

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    is_active = Column(Boolean, default=True)

    notes = Column(String(500), nullable=True)

    def bar_weight(self):
        """Масса одного хлыста, кг"""
        if not self.weight_per_meter:
            return 0.0
        return self.length / 1000 * self.weight_per_meter

    def __repr__(self):
        return f"<StockBar(id={self.id}, material={self.material}, length={self.length}, qty={self.quantity})>"


class CuttingPlanRecord(Base):
    """
    Сохраненный план раскроя
    """
    __tablename__ = 'cutting_plans'

    id = Column(Integer, primary_key=True, autoincrement=True)
    traceability_code = Column(String(20), nullable=False, unique=True, index=True)  # PC-001

    # Заказ
    order_id = Column(String(100), nullable=True, index=True)
    order_number = Column(String(100), nullable=True)

    # Материал
    material_name = Column(String(100), nullable=True)
    material_description = Column(String(200), nullable=True)
    stock_bar_id = Column(Integer, nullable=True)

    # Параметры раскроя
    bar_length = Column(Float, nullable=False)
    kerf = Column(Float, default=0.0)
    weight_per_meter = Column(Float, nullable=True)

    # Входные данные и результат (JSON)
    items_json = Column(Text, nullable=False)
    patterns_json = Column(Text, nullable=False)
    layout_json = Column(Text, nullable=True)
    skipped_json = Column(Text, nullable=True)

    # Итоги
    total_bars = Column(Integer, default=0)
    total_yield_percentage = Column(Float, default=0.0)
    total_scrap_percentage = Column(Float, default=0.0)
    total_scrap_length = Column(Float, default=0.0)
    total_material_weight = Column(Float, default=0.0)
    total_scrap_weight = Column(Float, default=0.0)

    created_by = Column(String(100), nullable=True)  # Пользователь API или Telegram user_id
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted = Column(Boolean, default=False)

    def __repr__(self):
        return f"<CuttingPlanRecord(id={self.id}, code={self.traceability_code}, bars={self.total_bars})>"
