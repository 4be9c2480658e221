from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from .calculator import NOT_SPECIFIED, Quote, calculate_quote, quote_email_text, quote_subject
from .entity_store import EntityNotFound, EntityStore
from .mailer import MailError, Mailer
from .models import OrderRequest, QuoteEmailRequest

logger = logging.getLogger("floorhub.orders")


def order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}"


def _legal_entity_name(store: EntityStore, legal_entity_id: Optional[str]) -> str:
    # Unknown or missing entities are recorded as "not specified".
    if not legal_entity_id:
        return NOT_SPECIFIED
    try:
        entity = store.entity("LegalEntity").get(legal_entity_id)
    except EntityNotFound:
        return NOT_SPECIFIED
    return entity.get("name") or NOT_SPECIFIED


def order_notification_text(order: Dict[str, Any]) -> str:
    lines = [
        f"Новый заказ {order['order_number']}",
        "",
        f"Товар: {order['product_name']}",
        f"Артикул: {order.get('article_code') or NOT_SPECIFIED}",
        f"Количество: {order['quantity']}",
        f"Стоимость: {order['total_cost']}",
        "",
        f"Клиент: {order['user_name']}",
        f"Email: {order['user_email']}",
        f"Телефон: {order['phone_number']}",
        f"Город: {order['city']}",
        f"Торговая точка: {order['retail_point']}",
        f"Юридическое лицо: {order['legal_entity_name']}",
    ]
    if order.get("comment"):
        lines += ["", f"Комментарий: {order['comment']}"]
    return "\n".join(lines)


def place_order(store: EntityStore, mailer: Mailer, request: OrderRequest, sales_email: str) -> Dict[str, Any]:
    """Purpose: Create an Order entity and notify the sales inbox.
    Inputs/Outputs: Inputs are the entity store, mailer, order form, and sales address;
        output is the stored Order record with a "notified" flag.
    Side Effects / State: Writes an Order record and sends one e-mail.
    Dependencies: Uses EntityStore, Mailer, and order_notification_text.
    Failure Modes: The order is kept when the notification fails; the failure is logged
        and reported through notified=False.
    If Removed: Product cards cannot submit orders.
    Testing Notes: With a mock mailer, the order is stored and send() receives the sales address.
    """
    # Persist first so a mail outage never loses an order.
    product = request.product
    order = store.entity("Order").create(
        {
            "order_number": order_number(),
            "article_code": product.vendorCode,
            "product_name": product.name,
            "user_name": request.user_name,
            "user_email": request.user_email,
            "phone_number": request.phone_number,
            "city": request.city,
            "retail_point": request.retail_point,
            "legal_entity_id": request.legal_entity_id,
            "legal_entity_name": _legal_entity_name(store, request.legal_entity_id),
            "quantity": request.quantity,
            "total_cost": request.total_cost,
            "comment": request.comment,
        }
    )
    logger.info("order=%s product=%s created", order["order_number"], product.vendorCode)

    notified = False
    if sales_email:
        try:
            mailer.send(sales_email, f"Новый заказ {order['order_number']}", order_notification_text(order))
            notified = True
        except MailError as exc:
            logger.warning("order=%s notification failed: %s", order["order_number"], exc)
    else:
        logger.warning("order=%s notification skipped: SALES_EMAIL is not set", order["order_number"])
    order["notified"] = notified
    return order


def email_quote(mailer: Mailer, request: QuoteEmailRequest) -> Quote:
    """Calculate a quote and e-mail it to the customer; raises CalculatorUnavailable or MailError."""
    quote = calculate_quote(request.product, request.area, request.layout, request.discount_percent)
    mailer.send(request.customer.email, quote_subject(quote), quote_email_text(quote, request.customer))
    logger.info("quote product=%s sent to=%s", request.product.vendorCode, request.customer.email)
    return quote
