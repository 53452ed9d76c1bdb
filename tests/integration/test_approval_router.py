"""Integration tests for approval definitions, the workflow endpoints and notifications."""

import pytest


@pytest.fixture
async def setup(client, admin_headers, create_user, login):
    """Two single-approver levels on the department menu and a department owned by the clerk."""
    clerk_id = await create_user("clerk", "pw-clerk")
    lead_id = await create_user("lead", "pw-lead")
    boss_id = await create_user("boss", "pw-boss")

    resp = await client.get(
        "/api/admin/master/menu",
        params={"search": "/admin/master/department"},
        headers=admin_headers,
    )
    menu_id = resp.json()["data"]["items"][0]["id"]

    # The clerk may create departments
    resp = await client.post(
        "/api/admin/master/role", json={"code": "CLERK", "name": "Clerk"}, headers=admin_headers
    )
    role_id = resp.json()["data"]["id"]
    await client.put(
        f"/api/admin/master/role-menu/{role_id}", json={"menu_ids": [menu_id]}, headers=admin_headers
    )
    await client.post(
        "/api/admin/role-permission",
        json={"role_id": role_id, "menu_id": menu_id, "may_create": True},
        headers=admin_headers,
    )
    await client.put(
        f"/api/admin/master/user-role/{clerk_id}", json={"role_ids": [role_id]}, headers=admin_headers
    )

    resp = await client.post(
        "/api/admin/approval",
        json={
            "menu_id": menu_id,
            "name": "Department approval",
            "levels": [
                {"name": "Lead", "user_ids": [lead_id]},
                {"name": "Boss", "user_ids": [boss_id]},
            ],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    approval = resp.json()["data"]

    clerk = await login("clerk", "pw-clerk")
    resp = await client.post(
        "/api/admin/master/department", json={"code": "D01", "name": "Assembly"}, headers=clerk
    )
    assert resp.status_code == 201, resp.text

    return {
        "approval": approval,
        "menu_id": menu_id,
        "dept_id": resp.json()["data"]["id"],
        "clerk": clerk,
        "lead": await login("lead", "pw-lead"),
        "boss": await login("boss", "pw-boss"),
    }


def _action_body(setup, **extra):
    return {"ref_table": "mst_depts", "ref_id": setup["dept_id"], **extra}


class TestDefinitions:
    async def test_definition_shape(self, setup):
        levels = setup["approval"]["levels"]
        assert [lv["level"] for lv in levels] == [1, 2]
        assert [lv["users"][0]["username"] for lv in levels] == ["lead", "boss"]

    async def test_lookup_by_menu(self, client, setup):
        resp = await client.get(
            f"/api/admin/approval/{setup['menu_id']}/menu", headers=setup["clerk"]
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == setup["approval"]["id"]

    async def test_second_definition_on_menu_conflicts(self, client, admin_headers, setup):
        resp = await client.post(
            "/api/admin/approval",
            json={"menu_id": setup["menu_id"], "name": "Again", "levels": [{"name": "L1"}]},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_levels_must_be_contiguous(self, client, admin_headers, setup):
        approval_id = setup["approval"]["id"]
        resp = await client.post(
            f"/api/admin/approval/{approval_id}/level",
            json={"level": 4, "name": "Skip"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

        resp = await client.post(
            f"/api/admin/approval/{approval_id}/level", json={"name": "Director"}, headers=admin_headers
        )
        assert resp.status_code == 201
        assert [lv["level"] for lv in resp.json()["data"]["levels"]] == [1, 2, 3]

    async def test_definitions_need_permission(self, client, setup):
        resp = await client.get("/api/admin/approval", headers=setup["clerk"])
        assert resp.status_code == 403


class TestWorkflow:
    async def test_two_level_happy_path(self, client, setup):
        resp = await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["status"] == "pending"

        resp = await client.post(
            "/api/admin/approval-history/approve",
            json=_action_body(setup, level=1, note="OK"),
            headers=setup["lead"],
        )
        assert resp.json()["data"]["current_level"] == 2

        resp = await client.post(
            "/api/admin/approval-history/approve",
            json=_action_body(setup, level=2),
            headers=setup["boss"],
        )
        data = resp.json()["data"]
        assert data["status"] == "approved"
        assert [e["seq"] for e in data["events"]] == [1, 2, 3]

        resp = await client.get(
            f"/api/admin/approval-history/mst_depts/{setup['dept_id']}", headers=setup["clerk"]
        )
        assert resp.json()["data"]["status"] == "approved"

    async def test_wrong_approver_forbidden(self, client, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        resp = await client.post(
            "/api/admin/approval-history/approve", json=_action_body(setup), headers=setup["boss"]
        )
        assert resp.status_code == 403

    async def test_reject_then_revise(self, client, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        resp = await client.post(
            "/api/admin/approval-history/reject",
            json=_action_body(setup, note="Wrong code"),
            headers=setup["lead"],
        )
        assert resp.json()["data"]["status"] == "rejected"

        resp = await client.post(
            "/api/admin/approval-history/revise", json=_action_body(setup), headers=setup["clerk"]
        )
        data = resp.json()["data"]
        assert (data["status"], data["current_level"]) == ("revising", 1)

        resp = await client.post(
            "/api/admin/approval-history/submit", json=_action_body(setup), headers=setup["clerk"]
        )
        assert resp.json()["data"]["status"] == "pending"

    async def test_stale_level_conflicts(self, client, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        await client.post(
            "/api/admin/approval-history/approve", json=_action_body(setup, level=1), headers=setup["lead"]
        )
        resp = await client.post(
            "/api/admin/approval-history/approve", json=_action_body(setup, level=1), headers=setup["boss"]
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "STALE_APPROVAL_STATE"

    async def test_approve_before_submit(self, client, setup):
        resp = await client.post(
            "/api/admin/approval-history/approve",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["lead"],
        )
        assert resp.status_code == 409

    async def test_unknown_action_is_bad_request(self, client, setup):
        resp = await client.post(
            "/api/admin/approval-history/escalate", json=_action_body(setup), headers=setup["lead"]
        )
        assert resp.status_code == 400

    async def test_history_blocks_definition_delete(self, client, admin_headers, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        resp = await client.delete(
            f"/api/admin/approval/{setup['approval']['id']}", headers=admin_headers
        )
        assert resp.status_code == 409


class TestNotifications:
    async def test_pending_moves_between_approvers(self, client, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        resp = await client.get("/api/admin/approval-history/notifications", headers=setup["lead"])
        items = resp.json()["data"]
        assert [(i["ref_table"], i["ref_id"], i["level"]) for i in items] == [
            ("mst_depts", setup["dept_id"], 1)
        ]
        resp = await client.get("/api/admin/approval-history/notifications", headers=setup["boss"])
        assert resp.json()["data"] == []

        await client.post(
            "/api/admin/approval-history/approve", json=_action_body(setup), headers=setup["lead"]
        )
        resp = await client.get("/api/admin/approval-history/notifications", headers=setup["lead"])
        assert resp.json()["data"] == []
        resp = await client.get("/api/admin/approval-history/notifications", headers=setup["boss"])
        assert [i["level"] for i in resp.json()["data"]] == [2]

    async def test_history_listing(self, client, setup):
        await client.post(
            "/api/admin/approval-history/submit",
            json=_action_body(setup, approval_id=setup["approval"]["id"]),
            headers=setup["clerk"],
        )
        resp = await client.get(
            "/api/admin/approval-history", params={"ref_table": "mst_depts"}, headers=setup["lead"]
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["pagination"]["total_rows"] == 1
