"""
Tenant Graph - company lookups and parent/child traversal.

Access rules only ever look one level down (``target.parent_id ==
actor.company_id``).  ``is_descendant`` can walk further when asked, but no
access check asks.
"""

from portal.models import db
from portal.models.company import COMPANY_TYPES, Company


def get_company(company_id) -> Company | None:
    if not company_id:
        return None
    return db.session.get(Company, company_id)


def companies_by_type(company_type: str) -> list[Company]:
    if company_type not in COMPANY_TYPES:
        return []
    return Company.query.filter_by(type=company_type).order_by(Company.name).all()


def companies_by_parent(parent_id) -> list[Company]:
    if not parent_id:
        return []
    return Company.query.filter_by(parent_id=parent_id).order_by(Company.name).all()


def is_descendant(company_id, ancestor_id, max_depth: int = 1) -> bool:
    """True when ``ancestor_id`` is reached within ``max_depth`` parent hops.

    A company is not its own descendant.  The walk stops on a cycle.
    """
    if not company_id or not ancestor_id or company_id == ancestor_id:
        return False

    seen = {company_id}
    current = get_company(company_id)
    depth = 0
    while current is not None and current.parent_id and depth < max_depth:
        depth += 1
        if current.parent_id == ancestor_id:
            return True
        if current.parent_id in seen:
            return False
        seen.add(current.parent_id)
        current = get_company(current.parent_id)
    return False


def default_client_company() -> Company | None:
    """Oldest client-type company; the fallback target for access-request approval."""
    return (
        Company.query.filter_by(type="client")
        .order_by(Company.created_at.asc(), Company.name.asc())
        .first()
    )
