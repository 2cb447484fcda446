"""
Telegram Bot для BarCut
Позволяет рассчитать раскрой хлыстов и посмотреть склад прямо из Telegram
"""
import asyncio
import logging
import os
from typing import List, Optional, Tuple

from aiogram import Bot, Dispatcher
from aiogram.filters import Command
from aiogram.types import Message

import database
from cutting_plan import build_plan_document
from cutting_stock import generate_cutting_plan, CutRequest, CuttingPlan, PlanRejected
from utils import load_env, setup_logging, env_float

logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 4000  # лимит Telegram 4096 символов
MAX_PATTERNS_IN_REPLY = 20

dp = Dispatcher()

HELP_TEXT = """
📖 Справка по командам:

/stock - Хлысты на складе
/plans - Последние планы раскроя

Расчет раскроя: отправьте сообщение
первая строка: длина_хлыста[,пропил]
далее построчно: длина,количество[,код]

Пример:
6000,3
2000,3,A-01
1500,4
"""


def parse_plan_message(text: str, default_kerf: float = 3.0) -> Tuple[float, float, List[CutRequest]]:
    """
    Разобрать сообщение с заданием на раскрой.

    Raises:
        ValueError: если формат сообщения неверный
    """
    lines = [line.strip() for line in (text or "").strip().splitlines()]
    lines = [line for line in lines if line and not line.startswith('/')]
    if len(lines) < 2:
        raise ValueError("Нужна строка с длиной хлыста и хотя бы одна деталь")

    header = [p.strip() for p in lines[0].split(',')]
    try:
        stock_length = float(header[0])
        kerf = float(header[1]) if len(header) > 1 and header[1] else default_kerf
    except ValueError:
        raise ValueError(f"Неверная строка хлыста: {lines[0]}")

    items = []
    for line in lines[1:]:
        parts = [p.strip() for p in line.split(',')]
        if len(parts) < 2:
            raise ValueError(f"Неверный формат строки: {line}\nОжидается: длина,количество[,код]")
        try:
            length = float(parts[0])
            quantity = int(parts[1])
        except ValueError:
            raise ValueError(f"Ошибка парсинга: {line}")
        code = parts[2] if len(parts) > 2 and parts[2] else None
        items.append(CutRequest(length=length, quantity=quantity, code=code))

    return stock_length, kerf, items


def format_plan_reply(plan: CuttingPlan, stock_length: float, kerf: float) -> str:
    summary = plan.summary
    report = (
        "✅ План раскроя готов!\n\n"
        f"📏 Хлыст: {stock_length:g} мм, пропил {kerf:g} мм\n"
        f"📦 Хлыстов: {summary.total_bars}\n"
        f"📊 Выход: {summary.total_yield_percentage:.2f}%\n"
        f"🗑 Отход: {summary.total_scrap_percentage:.2f}% ({summary.total_scrap_length:g} мм)\n\n"
        "📋 Карты раскроя:\n"
    )
    for pattern in plan.patterns[:MAX_PATTERNS_IN_REPLY]:
        report += f"{pattern.pattern_id}. {pattern.pattern_string} | остаток {pattern.leftover:g} мм\n"
    if len(plan.patterns) > MAX_PATTERNS_IN_REPLY:
        report += f"... и еще {len(plan.patterns) - MAX_PATTERNS_IN_REPLY} хлыстов\n"

    if plan.skipped:
        report += "\n⚠️ Пропущены позиции:\n"
        for item in plan.skipped:
            report += f"   {item.code or item.index + 1}: {item.length} мм ({item.reason})\n"

    return report[:MESSAGE_LIMIT]


def format_rejection(result: PlanRejected) -> str:
    if result.reason == "no_valid_items":
        return "❌ Нет деталей для раскроя. Проверьте длины и количество."
    return f"❌ Неверные данные: укажите длину хлыста и хотя бы одну деталь ({result.message})"


@dp.message(Command("start"))
async def cmd_start(message: Message):
    """Приветственное сообщение"""
    await message.answer("🤖 Добро пожаловать в BarCut Bot!\n\nЯ рассчитаю раскрой хлыстов.\n" + HELP_TEXT)


@dp.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT)


@dp.message(Command("stock"))
async def cmd_stock(message: Message):
    """Показать хлысты на складе"""
    bars = database.get_all_stock_bars(active_only=True)
    if not bars:
        await message.answer("📦 На складе нет хлыстов")
        return

    response = f"📦 Хлысты на складе ({len(bars)} поз.):\n\n"
    for bar in bars[:20]:
        response += f"🔹 ID {bar.id}: {bar.material}"
        if bar.profile:
            response += f" ({bar.profile})"
        response += f"\n   Длина: {bar.length:g} мм, количество: {bar.quantity} шт.\n"
        if bar.location:
            response += f"   Расположение: {bar.location}\n"
        response += "\n"
    await message.answer(response[:MESSAGE_LIMIT])


@dp.message(Command("plans"))
async def cmd_plans(message: Message):
    """Последние сохраненные планы"""
    plans = database.get_cutting_plans(limit=10)
    if not plans:
        await message.answer("🗂 Сохраненных планов нет")
        return

    response = "🗂 Последние планы раскроя:\n\n"
    for plan in plans:
        response += (
            f"{plan.traceability_code}: {plan.material_name or '-'}, "
            f"{plan.total_bars} хл., выход {plan.total_yield_percentage:.1f}%\n"
        )
    await message.answer(response)


@dp.message()
async def handle_plan(message: Message):
    """Расчет раскроя по сообщению"""
    try:
        stock_length, kerf, items = parse_plan_message(message.text, env_float("DEFAULT_KERF", 3.0))
    except ValueError as e:
        await message.answer(f"❌ {e}\n\nИспользуйте /help для справки.")
        return

    result = generate_cutting_plan(stock_length, kerf, items)
    if isinstance(result, PlanRejected):
        await message.answer(format_rejection(result))
        return

    await message.answer(format_plan_reply(result, stock_length, kerf))

    document = build_plan_document(
        result,
        stock_length=stock_length,
        kerf=kerf,
        items=[{"length": i.length, "quantity": i.quantity, "code": i.code} for i in items],
        metadata={"created_by": f"telegram:{message.from_user.id}" if message.from_user else None}
    )
    record = database.save_cutting_plan(document)
    await message.answer(f"💾 Сохранено как {record.traceability_code}")


async def main(token: Optional[str] = None):
    """Запуск бота"""
    load_env()
    setup_logging()
    token = token or os.getenv("TELEGRAM_BOT_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    database.configure(os.getenv("DATABASE_URL", database.DATABASE_URL))
    database.init_db()
    if not database.get_all_stock_bars(active_only=False):
        database.populate_sample_data()

    bot = Bot(token=token)
    logger.info("Telegram bot started")
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
