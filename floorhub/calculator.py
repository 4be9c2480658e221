from __future__ import annotations

"""Flooring package and cost calculator.

Prices in the feed are per square metre; the package size comes from the
``Кол-во м2 в упаковке`` feed param. The layout adds a cutting reserve and the
seller discount is capped at 10%.
"""

import math
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel

from .models import CustomerInfo, ProductRecord
from .utils import parse_decimal

AREA_PER_PACKAGE_PARAM = "Кол-во м2 в упаковке"
MAX_DISCOUNT_PERCENT = 10.0
NOT_SPECIFIED = "Не указано"

LAYOUT_RESERVE: Dict[str, float] = {
    "straight": 1.05,
    "diagonal": 1.10,
    "herringbone": 1.15,
}

LAYOUT_NAMES: Dict[str, str] = {
    "straight": "Прямая укладка (+5%)",
    "diagonal": "Диагональная укладка (+10%)",
    "herringbone": 'Укладка "ёлочкой" (+15%)',
}


class CalculatorUnavailable(ValueError):
    """The product lacks a numeric price or package area."""


class Quote(BaseModel):
    """Calculated quote; money and areas rounded to two decimals."""
    product_name: str
    vendor_code: Optional[str] = None
    layout: str
    layout_name: str
    price_per_m2: float
    area_per_package: float
    discount_percent: float
    clean_area: float
    area_with_reserve: float
    packages_needed: int
    base_cost: float
    discount_value: float
    total_cost: float


def product_inputs(product: ProductRecord) -> tuple[float, float]:
    """Return (price_per_m2, area_per_package) or raise CalculatorUnavailable."""
    price = parse_decimal(product.price)
    area_per_package = parse_decimal(product.params.get(AREA_PER_PACKAGE_PARAM))
    if not price or not area_per_package or price < 0 or area_per_package < 0:
        raise CalculatorUnavailable("Недостаточно данных для расчета: требуется площадь в упаковке и цена за м²")
    return price, area_per_package


def calculate_quote(
    product: ProductRecord,
    area: float,
    layout: str = "straight",
    discount_percent: float = 0.0,
) -> Quote:
    """Purpose: Compute packages and cost for a room area and layout.
    Inputs/Outputs: Inputs are the product record, area in m², layout key, and
        discount percent; output is a Quote.
    Side Effects / State: None.
    Dependencies: Uses parse_decimal and LAYOUT_RESERVE.
    Failure Modes: Missing or non-numeric price/package area raises CalculatorUnavailable;
        an unknown layout raises KeyError.
    If Removed: Product cards lose the calculator and quote e-mails.
    Testing Notes: 20 m² straight at 1000/m² with 2.0 m² packages -> 21 m², 11 packages.
    """
    # Validate the product first so an empty area still reports missing data.
    price, area_per_package = product_inputs(product)
    coeff = LAYOUT_RESERVE[layout]
    discount = min(max(0.0, float(discount_percent or 0.0)), MAX_DISCOUNT_PERCENT)

    clean_area = float(area or 0.0)
    if clean_area <= 0:
        clean_area = area_with_reserve = base_cost = discount_value = total_cost = 0.0
        packages = 0
    else:
        area_with_reserve = clean_area * coeff
        packages = math.ceil(area_with_reserve / area_per_package)
        base_cost = area_with_reserve * price
        discount_value = base_cost * (discount / 100)
        total_cost = base_cost - discount_value

    return Quote(
        product_name=product.name,
        vendor_code=product.vendorCode,
        layout=layout,
        layout_name=LAYOUT_NAMES[layout],
        price_per_m2=price,
        area_per_package=area_per_package,
        discount_percent=discount,
        clean_area=round(clean_area, 2),
        area_with_reserve=round(area_with_reserve, 2),
        packages_needed=packages,
        base_cost=round(base_cost, 2),
        discount_value=round(discount_value, 2),
        total_cost=round(total_cost, 2),
    )


def _plain_number(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _money(value: float) -> str:
    # Russian grouping: non-breaking space for thousands, comma for decimals.
    text = f"{value:,.2f}".rstrip("0").rstrip(".")
    return text.replace(",", "\u00a0").replace(".", ",")


def quote_subject(quote: Quote) -> str:
    return f"Ваш расчёт напольного покрытия - {quote.product_name}"


def quote_email_text(quote: Quote, customer: CustomerInfo, issued_at: Optional[datetime] = None) -> str:
    """Purpose: Render the plain-text quote sent to the customer.
    Inputs/Outputs: Inputs are the Quote, customer contact data, and issue time;
        output is the e-mail body.
    Side Effects / State: None.
    Dependencies: None beyond the Quote fields.
    Failure Modes: None; missing contact fields print as "Не указано".
    If Removed: email_quote has nothing to send.
    Testing Notes: The discount lines appear only when a discount was applied.
    """
    # Fixed section layout; optional lines collapse to blanks.
    issued = (issued_at or datetime.now()).strftime("%d.%m.%Y, %H:%M:%S")
    discount_line = ""
    if quote.discount_percent > 0:
        discount_line = f"Скидка ({_plain_number(quote.discount_percent)}%): −{_money(quote.discount_value)} ₽"
    savings_block = ""
    if quote.discount_value > 0:
        savings_block = f"\nВАША ЭКОНОМИЯ: {_money(quote.discount_value)} ₽\n"

    lines = [
        "Расчёт напольного покрытия",
        f"Floor Service Hub • {issued}",
        "",
        "ИНФОРМАЦИЯ О КЛИЕНТЕ",
        f"Клиент: {customer.full_name or NOT_SPECIFIED}",
        f"Email: {customer.email}",
        f"Телефон: {customer.phone_number or NOT_SPECIFIED}",
        f"Город: {customer.city or NOT_SPECIFIED}",
        "",
        "ПАРАМЕТРЫ РАСЧЁТА",
        f"Товар: {quote.product_name}",
        f"Артикул: {quote.vendor_code or NOT_SPECIFIED}",
        f"Способ укладки: {quote.layout_name}",
        f"Площадь помещения: {_plain_number(quote.clean_area)} м²",
        f"Площадь с запасом: {_plain_number(quote.area_with_reserve)} м²",
        "",
        "РАСЧЁТ СТОИМОСТИ",
        f"Необходимо упаковок: {quote.packages_needed} шт",
        f"Цена за м²: {_money(quote.price_per_m2)} ₽",
        "",
        f"Базовая стоимость: {_money(quote.base_cost)} ₽",
        discount_line,
        f"ИТОГОВАЯ СТОИМОСТЬ: {_money(quote.total_cost)} ₽",
        "",
        savings_block,
        "",
        "Расчёт сформирован автоматически • Floor Service Hub",
    ]
    return "\n".join(lines)
