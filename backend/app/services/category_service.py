# Overview: Service-layer operations for system categories (chart of accounts).

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Category


@dataclass(frozen=True)
class SystemCategory:
    code: str
    name: str
    type: str
    color: str


SALES = SystemCategory("1.1", "Receitas de Vendas (Produtos)", "income", "#34d399")
COGS = SystemCategory("2.1", "CMV (Custo da Mercadoria)", "expense", "#fbbf24")
FREIGHT = SystemCategory("2.4", "Fretes e Logística", "expense", "#fef3c7")


def ensure_system_category(tenant_id: int, definition: SystemCategory) -> Category:
    """
    Find-or-create a system category for a tenant.

    Match order: reserved code among system categories, then (name, type),
    else create with the fixed color. Safe to call repeatedly (idempotent);
    flushes but never commits, so it joins the caller's unit of work.
    """
    category = (
        db.session.query(Category)
        .filter_by(tenant_id=tenant_id, code=definition.code, is_system=True)
        .first()
    )
    if category:
        return category

    category = (
        db.session.query(Category)
        .filter_by(tenant_id=tenant_id, name=definition.name, type=definition.type)
        .first()
    )
    if category:
        return category

    category = Category(
        tenant_id=tenant_id,
        name=definition.name,
        type=definition.type,
        code=definition.code,
        color=definition.color,
        is_system=True,
    )
    db.session.add(category)
    db.session.flush()
    return category
