import pytest
from datetime import date

from app.main import app
from app.models.notification import Notification
from app.models.sickness import SicknessRecord
from app.services.notification import NotificationDispatcher, get_notification_dispatcher

YEAR = date.today().year


def _report(client, headers, **extra):
    body = {"startDate": f"{YEAR}-03-01", "endDate": f"{YEAR}-03-02", "reason": "Flu"}
    body.update(extra)
    return client.post("/api/sickness/create", headers=headers, json=body)


def test_self_report_notifies_approvers(client, employee_account, admin_account, create_account, auth_headers):
    admin_user, _ = admin_account
    hr_user, _ = create_account("hr@alphacorp.com", role="hr", with_employee=False)
    response = _report(client, auth_headers(employee_account))
    assert response.status_code == 201

    inbox = client.get("/api/notifications/", headers=auth_headers(admin_account)).json()
    assert len(inbox) == 1
    assert inbox[0]["type"] == "sickness_request"
    assert inbox[0]["priority"] == "high"
    assert inbox[0]["recipientType"] == "profile"
    assert "Jane Doe" in inbox[0]["message"]

    hr_inbox = client.get("/api/notifications/", headers=auth_headers((hr_user, None))).json()
    assert [n["type"] for n in hr_inbox] == ["sickness_request"]

    # The reporter is not an approver
    assert client.get("/api/notifications/", headers=auth_headers(employee_account)).json() == []


def test_approval_notifies_employee(client, employee_account, admin_account, auth_headers):
    _, employee = employee_account
    record_id = _report(client, auth_headers(employee_account)).json()["data"]["id"]
    client.patch(f"/api/sickness/{record_id}/approve", headers=auth_headers(admin_account))

    inbox = client.get("/api/notifications/", headers=auth_headers(employee_account)).json()
    assert [n["type"] for n in inbox] == ["sickness_approved"]
    assert inbox[0]["employeeId"] == employee.id
    assert inbox[0]["recipientType"] == "employee"


def test_rejection_notifies_employee_with_reason(client, employee_account, admin_account, auth_headers):
    record_id = _report(client, auth_headers(employee_account)).json()["data"]["id"]
    client.patch(
        f"/api/sickness/{record_id}/reject",
        headers=auth_headers(admin_account),
        json={"rejectionReason": "Dates clash with approved leave"},
    )
    inbox = client.get("/api/notifications/", headers=auth_headers(employee_account)).json()
    assert inbox[0]["type"] == "sickness_rejected"
    assert "Dates clash with approved leave" in inbox[0]["message"]


def test_admin_created_record_notifies_employee(client, employee_account, admin_account, auth_headers):
    _, employee = employee_account
    _report(client, auth_headers(admin_account), employeeId=employee.id)
    inbox = client.get("/api/notifications/", headers=auth_headers(employee_account)).json()
    assert [n["type"] for n in inbox] == ["sickness_created"]


def test_failed_delivery_does_not_fail_request(client, employee_account, admin_account, auth_headers, db_session):
    def broken_session():
        raise RuntimeError("notification store unavailable")

    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(broken_session)

    response = _report(client, auth_headers(employee_account))
    assert response.status_code == 201
    record_id = response.json()["data"]["id"]
    assert db_session.get(SicknessRecord, record_id) is not None

    approve = client.patch(f"/api/sickness/{record_id}/approve", headers=auth_headers(admin_account))
    assert approve.status_code == 200
    assert approve.json()["data"]["approvalStatus"] == "approved"
    assert db_session.query(Notification).count() == 0


def test_mark_read_and_mark_all(client, employee_account, admin_account, auth_headers):
    admin_headers = auth_headers(admin_account)
    _report(client, auth_headers(employee_account))
    _report(client, auth_headers(employee_account), startDate=f"{YEAR}-04-01", endDate=f"{YEAR}-04-01")

    inbox = client.get("/api/notifications/", headers=admin_headers).json()
    assert len(inbox) == 2

    read = client.patch(f"/api/notifications/{inbox[0]['id']}/read", headers=admin_headers)
    assert read.status_code == 200
    assert read.json()["isRead"] is True

    unread = client.get("/api/notifications/", headers=admin_headers, params={"unreadOnly": True}).json()
    assert len(unread) == 1

    result = client.post("/api/notifications/mark-all-read", headers=admin_headers).json()
    assert result["success"] is True
    assert result["updated"] == 1
    assert client.get("/api/notifications/", headers=admin_headers, params={"unreadOnly": True}).json() == []


def test_cannot_read_someone_elses_notification(client, employee_account, admin_account, auth_headers):
    _report(client, auth_headers(employee_account))
    notification_id = client.get("/api/notifications/", headers=auth_headers(admin_account)).json()[0]["id"]
    response = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(employee_account))
    assert response.status_code == 404
