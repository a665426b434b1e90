"""
Access decision engine tests - company, project and user-management predicates.
"""

from portal.models import db
from portal.models.project import Project, ProjectAccess
from portal.services import access_service, tenant_graph
from portal.services.access_service import (
    accessible_company_ids,
    can_access_company,
    can_access_project,
    can_manage_user,
    get_user_projects,
)


def _make_project(company, name="Website Refresh") -> Project:
    project = Project(client_company_id=company.id, name=name)
    db.session.add(project)
    db.session.commit()
    return project


def _grant(project, *, user=None, company=None, level="view") -> ProjectAccess:
    grant = ProjectAccess(
        project_id=project.id,
        user_id=user.id if user else None,
        company_id=company.id if company else None,
        access_level=level,
    )
    db.session.add(grant)
    db.session.commit()
    return grant


# ═══════════════════════════════════════════════════════════════
# BLOCK 1: Company visibility
# ═══════════════════════════════════════════════════════════════

class TestCanAccessCompany:
    def test_owner_company_sees_everything(self, owner_user, client_co, sub_co, partner_co, other_client_co):
        for company in (client_co, sub_co, partner_co, other_client_co):
            assert can_access_company(owner_user.id, company.id) is True

    def test_own_company(self, client_user, client_co):
        assert can_access_company(client_user.id, client_co.id) is True

    def test_direct_sub_company(self, client_user, sub_co):
        assert can_access_company(client_user.id, sub_co.id) is True

    def test_sibling_and_parent_denied(self, client_user, other_client_co, owner_co, partner_co):
        assert can_access_company(client_user.id, other_client_co.id) is False
        assert can_access_company(client_user.id, owner_co.id) is False
        assert can_access_company(client_user.id, partner_co.id) is False

    def test_grandchild_not_inherited(self, client_user, sub_co, make_company):
        grandchild = make_company("Acme Outlet East", "sub", parent=sub_co)
        assert can_access_company(client_user.id, grandchild.id) is False

    def test_unknown_actor_or_target(self, client_user, client_co):
        assert can_access_company("missing-user", client_co.id) is False
        assert can_access_company(client_user.id, "missing-company") is False
        assert can_access_company(None, client_co.id) is False

    def test_idempotent(self, partner_user, client_co):
        first = can_access_company(partner_user.id, client_co.id)
        second = can_access_company(partner_user.id, client_co.id)
        assert first == second

    def test_accessible_company_ids(self, owner_user, client_user, client_co, sub_co):
        assert accessible_company_ids(owner_user.id) is None
        assert set(accessible_company_ids(client_user.id)) == {client_co.id, sub_co.id}
        assert accessible_company_ids("missing-user") == []


# ═══════════════════════════════════════════════════════════════
# BLOCK 2: Project visibility
# ═══════════════════════════════════════════════════════════════

class TestCanAccessProject:
    def test_owner_sees_every_project(self, owner_user, client_co, other_client_co):
        for company in (client_co, other_client_co):
            assert can_access_project(owner_user.id, _make_project(company).id) is True

    def test_client_sees_only_own_projects(self, client_user, client_co, other_client_co):
        own = _make_project(client_co)
        foreign = _make_project(other_client_co)
        assert can_access_project(client_user.id, own.id) is True
        assert can_access_project(client_user.id, foreign.id) is False

    def test_partner_needs_a_grant(self, partner_user, client_co):
        project = _make_project(client_co)
        assert can_access_project(partner_user.id, project.id) is False

        _grant(project, user=partner_user)
        assert can_access_project(partner_user.id, project.id) is True

    def test_company_level_grant(self, partner_user, partner_co, client_co):
        project = _make_project(client_co)
        _grant(project, company=partner_co, level="edit")
        assert can_access_project(partner_user.id, project.id) is True

    def test_grant_for_someone_else_does_not_count(self, partner_user, partner_co, client_co, make_user):
        colleague = make_user(partner_co, "partner_viewer", "peer.partner@initech.com")
        project = _make_project(client_co)
        _grant(project, user=colleague)
        assert can_access_project(partner_user.id, project.id) is False

    def test_staff_in_owner_company_sees_all(self, staff_user, client_co):
        assert can_access_project(staff_user.id, _make_project(client_co).id) is True

    def test_missing_project(self, client_user, owner_user):
        assert can_access_project(client_user.id, "missing-project") is False
        # Owner short-circuits before the lookup
        assert can_access_project(owner_user.id, "missing-project") is True


# ═══════════════════════════════════════════════════════════════
# BLOCK 3: Project enumeration
# ═══════════════════════════════════════════════════════════════

class TestGetUserProjects:
    def test_owner_gets_all_newest_first(self, owner_user, client_co, other_client_co):
        first = _make_project(client_co, "First")
        second = _make_project(other_client_co, "Second")
        ids = [p.id for p in get_user_projects(owner_user.id)]
        assert ids == [second.id, first.id]

    def test_client_gets_own(self, client_user, client_co, other_client_co):
        own = _make_project(client_co)
        _make_project(other_client_co)
        assert [p.id for p in get_user_projects(client_user.id)] == [own.id]

    def test_partner_dual_grant_is_listed_once(self, partner_user, partner_co, client_co):
        project = _make_project(client_co)
        _grant(project, user=partner_user)
        _grant(project, company=partner_co)
        assert [p.id for p in get_user_projects(partner_user.id)] == [project.id]

    def test_matches_can_access_project(self, partner_user, partner_co, client_co, other_client_co):
        granted = _make_project(client_co, "Granted")
        _make_project(other_client_co, "Hidden")
        _grant(granted, company=partner_co)

        listed = {p.id for p in get_user_projects(partner_user.id)}
        for project in Project.query.all():
            assert (project.id in listed) == can_access_project(partner_user.id, project.id)

    def test_unknown_user(self):
        assert get_user_projects("missing-user") == []


# ═══════════════════════════════════════════════════════════════
# BLOCK 4: User management
# ═══════════════════════════════════════════════════════════════

class TestCanManageUser:
    def test_target_user_role_wins_over_supplied_role(self, admin_user, owner_co, make_user):
        other_admin = make_user(owner_co, "admin", "second.admin@northwind.com")
        assert can_manage_user(admin_user.id, other_admin.id, target_role="client") is False

    def test_role_only(self, admin_user):
        assert can_manage_user(admin_user.id, target_role="client") is True
        assert can_manage_user(admin_user.id, target_role="owner") is False

    def test_partner_and_client_editor(self, partner_user, client_user, client_viewer_user):
        assert can_manage_user(partner_user.id, client_user.id) is True
        assert can_manage_user(partner_user.id, client_viewer_user.id) is False

    def test_missing_actor_or_target(self, owner_user):
        assert can_manage_user("missing-user", target_role="client") is False
        assert can_manage_user(owner_user.id, "missing-user") is False


# ═══════════════════════════════════════════════════════════════
# BLOCK 5: Tenant graph
# ═══════════════════════════════════════════════════════════════

class TestTenantGraph:
    def test_is_descendant_depth(self, owner_co, client_co, sub_co):
        assert tenant_graph.is_descendant(sub_co.id, client_co.id) is True
        assert tenant_graph.is_descendant(sub_co.id, owner_co.id) is False
        assert tenant_graph.is_descendant(sub_co.id, owner_co.id, max_depth=2) is True
        assert tenant_graph.is_descendant(client_co.id, client_co.id) is False

    def test_cycle_terminates(self, client_co, sub_co):
        client_co.parent_id = sub_co.id
        db.session.commit()
        assert tenant_graph.is_descendant(sub_co.id, "nowhere", max_depth=50) is False

    def test_lookups(self, owner_co, client_co, other_client_co, sub_co):
        assert {c.id for c in tenant_graph.companies_by_type("client")} == {client_co.id, other_client_co.id}
        assert [c.id for c in tenant_graph.companies_by_parent(client_co.id)] == [sub_co.id]
        assert tenant_graph.companies_by_type("galaxy") == []
        assert tenant_graph.default_client_company().id == client_co.id

    def test_log_denial_is_warning(self, caplog):
        with caplog.at_level("WARNING", logger="portal.services.access_service"):
            access_service.log_denial("u1", "projects.view", "project", "p1")
        assert "Access denied" in caplog.text
