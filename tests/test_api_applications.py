from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from applydesk.db import Job
from applydesk.services import notifications, plans

pytestmark = pytest.mark.integration


def test_application_lifecycle(client: TestClient, db: Session, make_user, make_job) -> None:
    user = make_user()
    job = make_job(user)
    headers = {"X-User-ID": user.id}

    manual = client.post("/api/applications", json={"job_title": "Analyst", "company": "Globex"}, headers=headers)
    assert manual.status_code == 201
    assert manual.json()["data"]["status"] == "APPLIED"

    linked = client.post(
        "/api/applications",
        json={"job_title": job.title, "company": job.company, "job_id": job.id, "status": "REVIEWING"},
        headers=headers,
    )
    assert linked.status_code == 201
    db.expire_all()
    assert db.get(Job, job.id).applied_to is True

    duplicate = client.post(
        "/api/applications", json={"job_title": job.title, "company": job.company, "job_id": job.id}, headers=headers
    )
    assert duplicate.status_code == 409

    listing = client.get("/api/applications", headers=headers).json()["data"]
    assert listing["pagination"] == {"total": 2, "limit": 20, "offset": 0, "has_more": False}
    assert listing["stats"]["total"] == 2
    assert listing["stats"]["by_status"]["REVIEWING"] == 1

    reviewing = client.get("/api/applications", params={"status": "REVIEWING"}, headers=headers).json()["data"]
    assert [a["id"] for a in reviewing["applications"]] == [linked.json()["data"]["id"]]
    assert client.get("/api/applications", params={"status": "LOST"}, headers=headers).status_code == 400

    application_id = manual.json()["data"]["id"]
    patched = client.patch(
        f"/api/applications/{application_id}",
        json={"status": "INTERVIEW_SCHEDULED", "notes": "Call on Monday"},
        headers=headers,
    ).json()["data"]
    assert patched["status"] == "INTERVIEW_SCHEDULED"
    assert patched["notes"] == "Call on Monday"
    assert client.patch(f"/api/applications/{application_id}", json={"status": "LOST"}, headers=headers).status_code == 400

    assert client.delete(f"/api/applications/{application_id}", headers=headers).status_code == 200
    assert client.get(f"/api/applications/{application_id}", headers=headers).status_code == 404


def test_applications_are_private(client: TestClient, make_user, make_job) -> None:
    owner = make_user()
    stranger = make_user()
    created = client.post(
        "/api/applications", json={"job_title": "Analyst", "company": "Globex"}, headers={"X-User-ID": owner.id}
    ).json()["data"]

    headers = {"X-User-ID": stranger.id}
    assert client.get(f"/api/applications/{created['id']}", headers=headers).status_code == 404
    assert client.delete(f"/api/applications/{created['id']}", headers=headers).status_code == 404
    foreign_job = make_job(owner)
    response = client.post(
        "/api/applications",
        json={"job_title": "Analyst", "company": "Globex", "job_id": foreign_job.id},
        headers=headers,
    )
    assert response.status_code == 404


def test_application_with_interview_cannot_be_deleted(client: TestClient, make_user, make_resume) -> None:
    user = make_user()
    make_resume(user)
    headers = {"X-User-ID": user.id}
    application = client.post(
        "/api/applications", json={"job_title": "Analyst", "company": "Globex"}, headers=headers
    ).json()["data"]
    client.post("/api/interview/start", json={"application_id": application["id"]}, headers=headers)

    response = client.delete(f"/api/applications/{application['id']}", headers=headers)

    assert response.status_code == 409


def test_notification_endpoints(client: TestClient, db: Session, make_user, make_job) -> None:
    user = make_user()
    job = make_job(user)
    settings = notifications.get_or_create_settings(db, user.id)
    notification = notifications.create_match_notification(db, user.id, job, 0.8, settings)
    db.commit()
    headers = {"X-User-ID": user.id}

    listed = client.get("/api/notifications", headers=headers).json()["data"]
    assert listed["pagination"]["total"] == 1
    item = listed["notifications"][0]
    assert item["job_title"] == "Backend Engineer"
    assert item["company"] == "Acme"
    assert item["status"] == "PENDING"

    url = f"/api/notifications/{notification.id}"
    assert client.patch(url, json={"action": "archive"}, headers=headers).status_code == 400
    assert client.patch("/api/notifications/missing", json={"action": "mark_viewed"}, headers=headers).status_code == 404

    viewed = client.patch(url, json={"action": "mark_viewed"}, headers=headers).json()["data"]
    assert viewed["status"] == "VIEWED"
    assert viewed["viewed_at"] is not None
    assert client.get("/api/notifications", params={"status": "PENDING"}, headers=headers).json()["data"][
        "notifications"
    ] == []

    processed = client.post("/api/notifications/process", headers=headers)
    assert processed.status_code == 202
    assert processed.json()["data"]["queue_job_id"]


def _review_for(db: Session, user, job):
    settings = notifications.get_or_create_settings(db, user.id)
    notification = notifications.create_match_notification(db, user.id, job, 0.85, settings, "Draft letter")
    db.commit()
    return next(r for r in notifications.get_pending_reviews(db, user.id) if r.notification_id == notification.id)


def test_review_approval_and_rejection(client: TestClient, db: Session, make_user, make_job) -> None:
    user = make_user()
    headers = {"X-User-ID": user.id}
    first = _review_for(db, user, make_job(user))
    second = _review_for(db, user, make_job(user, title="Data Engineer"))

    pending = client.get("/api/reviews", headers=headers).json()["data"]
    assert {r["id"] for r in pending} == {first.id, second.id}
    assert all(r["job"]["company"] == "Acme" for r in pending)

    approved = client.post(f"/api/reviews/{first.id}/approve", json={"notes": "Go"}, headers=headers)
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "SUBMITTED"
    assert approved.json()["message"] == "Application submitted"
    assert client.post(f"/api/reviews/{first.id}/approve", headers=headers).status_code == 409

    applications = client.get("/api/applications", headers=headers).json()["data"]["applications"]
    assert applications[0]["cover_letter"] == "Draft letter"
    assert applications[0]["notes"] == "User approved: Go"

    rejected = client.post(f"/api/reviews/{second.id}/reject", headers=headers)
    assert rejected.json()["data"]["status"] == "REJECTED"
    assert client.post("/api/reviews/missing/reject", headers=headers).status_code == 404
    assert client.get("/api/reviews", headers=headers).json()["data"] == []


def test_review_approval_needs_quota(client: TestClient, db: Session, make_user, make_job) -> None:
    user = make_user()
    review = _review_for(db, user, make_job(user))
    user.auto_applications_used = 5
    db.commit()

    response = client.post(f"/api/reviews/{review.id}/approve", headers={"X-User-ID": user.id})

    assert response.status_code == 402
    assert response.json()["code"] == "QUOTA_EXCEEDED"
    assert client.get("/api/reviews", headers={"X-User-ID": user.id}).json()["data"][0]["status"] == "PENDING"


def test_interview_flow(client: TestClient, db: Session, make_user, make_resume) -> None:
    user = make_user()
    plans.update_user_plan(db, user, "pro")
    headers = {"X-User-ID": user.id}
    application = client.post(
        "/api/applications", json={"job_title": "Backend Engineer", "company": "Acme"}, headers=headers
    ).json()["data"]

    assert client.post("/api/interview/start", json={"application_id": "missing"}, headers=headers).status_code == 404
    no_resume = client.post("/api/interview/start", json={"application_id": application["id"]}, headers=headers)
    assert no_resume.status_code == 400
    assert no_resume.json()["code"] == "RESUME_REQUIRED"

    make_resume(user)
    started = client.post(
        "/api/interview/start", json={"application_id": application["id"], "total_questions": 2}, headers=headers
    ).json()
    assert started["message"] == "Interview session started"
    session_id = started["data"]["id"]
    resumed = client.post("/api/interview/start", json={"application_id": application["id"]}, headers=headers).json()
    assert resumed["message"] == "Resumed existing interview session"
    assert resumed["data"]["id"] == session_id

    for index in range(2):
        question = client.post("/api/interview/next-question", json={"session_id": session_id}, headers=headers)
        assert question.status_code == 200
        question_id = question.json()["data"]["id"]
        answer = client.post(
            "/api/interview/submit-answer",
            json={"question_id": question_id, "answer_text": f"Answer {index}"},
            headers=headers,
        ).json()
        assert answer["message"] == ("Interview completed" if index == 1 else "Answer saved")

    finished = client.post("/api/interview/next-question", json={"session_id": session_id}, headers=headers)
    assert finished.status_code == 409

    detail = client.get(f"/api/interview/sessions/{session_id}", headers=headers).json()["data"]
    assert detail["status"] == "COMPLETED"
    assert [q["category"] for q in detail["questions"]] == ["opening", "closing"]
    assert [s["id"] for s in client.get("/api/interview/sessions", headers=headers).json()["data"]] == [session_id]

    stranger = {"X-User-ID": make_user().id}
    assert client.get(f"/api/interview/sessions/{session_id}", headers=stranger).status_code == 404
    assert client.post(
        "/api/interview/submit-answer", json={"question_id": question_id, "answer_text": "x"}, headers=stranger
    ).status_code == 404


def test_interview_needs_plan_feature(client: TestClient, db: Session, make_user, make_resume) -> None:
    user = make_user()
    plans.update_user_plan(db, user, "starter")
    make_resume(user)
    headers = {"X-User-ID": user.id}
    application = client.post(
        "/api/applications", json={"job_title": "Analyst", "company": "Globex"}, headers=headers
    ).json()["data"]

    response = client.post("/api/interview/start", json={"application_id": application["id"]}, headers=headers)

    assert response.status_code == 402
    assert response.json()["code"] == "FEATURE_NOT_AVAILABLE"
