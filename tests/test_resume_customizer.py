from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from applydesk.agents.context import experience_bullets, experience_title
from applydesk.db import CustomizedResume
from applydesk.services import resume_customizer
from applydesk.services.resume_customizer import analyze_keywords, clean_job_title, experience_level


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Senior Backend Engineer (Remote)", "Senior Backend Engineer"),
        ("Acme is hiring: Backend Engineer in Berlin", "Backend Engineer"),
        ("Data Engineer - REQ-12345", "Data Engineer"),
        ("Sr. Python Developer II", "Python Developer"),
        ("Product Designer", "Product Designer"),
    ],
)
def test_clean_job_title(raw: str, expected: str) -> None:
    assert clean_job_title(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "level"),
    [
        ("Senior Backend Engineer", "senior"),
        ("Staff Engineer, Payments", "senior"),
        ("Graduate Analyst", "junior"),
        ("Backend Engineer", "mid-level"),
    ],
)
def test_experience_level(text: str, level: str) -> None:
    assert experience_level(text) == level


@pytest.mark.unit
def test_analyze_keywords_finds_whole_words() -> None:
    keywords = analyze_keywords(
        "Backend Engineer",
        "Build Python APIs with FastAPI and PostgreSQL on AWS.",
        ["Python", "PostgreSQL"],
    )
    assert keywords.technical == ["python", "fastapi", "postgresql", "aws"]
    assert "sql" not in keywords.technical
    assert keywords.keywords[:2] == ["Python", "PostgreSQL"]
    assert {"backend", "engineer"} <= set(keywords.keywords)
    assert keywords.experience_level == "mid-level"


@pytest.mark.integration
def test_customize_reorders_without_inventing(db: Session, make_user, make_job, make_resume) -> None:
    user = make_user()
    job = make_job(user)
    resume = resume_customizer.resume_to_dict(make_resume(user))

    result = resume_customizer.customize_resume(resume, job)
    content = result.content

    assert [s["name"] for s in content["skills"]] == ["Python", "PostgreSQL", "Excel"]
    assert [s["proficiency"] for s in content["skills"]] == ["expert", "advanced", "intermediate"]
    assert content["experience"][0]["achievements"] == [
        "Built Python services on PostgreSQL",
        "Organized the team offsite",
    ]
    assert content["target"] == {"job_title": "Backend Engineer", "company": "Acme", "experience_level": "mid-level"}
    assert "Seeking opportunities as a Backend Engineer." in content["summary"]
    assert content["summary"].endswith("Specialized experience with python, fastapi, postgresql.")
    assert result.match_score == 0.5
    assert result.keywords == ["Python", "PostgreSQL"]
    assert "Highlighted 2 relevant skills" in result.notes

    # The stored résumé is untouched
    assert [s["name"] for s in resume["skills"]] == ["Excel", "Python", "PostgreSQL"]
    assert resume["experience"][0]["achievements"][0] == "Organized the team offsite"


@pytest.mark.integration
def test_empty_summary_gets_a_target_line(db: Session, make_user, make_job) -> None:
    user = make_user()
    job = make_job(user, title="Product Designer", description="Figma work", requirements=[])

    result = resume_customizer.customize_resume({"summary": "", "skills": []}, job)

    assert result.content["summary"].startswith("Professional seeking Product Designer opportunities")
    assert result.content["skills"] == []
    assert result.content["certifications"] == []


@pytest.mark.integration
def test_customize_for_job_stores_the_result(db: Session, make_user, make_job, make_resume) -> None:
    user = make_user()
    job = make_job(user)

    with pytest.raises(LookupError):
        resume_customizer.customize_for_job(db, user.id, job)

    make_resume(user)
    customized = resume_customizer.customize_for_job(db, user.id, job)

    stored = db.query(CustomizedResume).one()
    assert stored.id == customized.id
    assert stored.job_id == job.id
    assert stored.match_score == 0.5
    assert stored.content["notes"]
    assert stored.content["target"]["company"] == "Acme"


@pytest.mark.integration
def test_plain_text_description_is_kept_whole(db: Session, make_user, make_job) -> None:
    user = make_user()
    job = make_job(user)
    resume = {
        "summary": "",
        "skills": [],
        "experience": [{"jobTitle": "Engineer", "company": "Initech", "description": "Built Python APIs"}],
    }

    result = resume_customizer.customize_resume(resume, job)

    assert result.content["experience"][0]["description"] == "Built Python APIs"
    assert "Engineer experience aligns with the posting" in result.notes


@pytest.mark.unit
def test_experience_entries_accept_either_key_style() -> None:
    assert experience_title({"jobTitle": "Data Engineer"}) == "Data Engineer"
    assert experience_title({"title": "SRE", "jobTitle": "ignored"}) == "SRE"
    assert experience_bullets({"description": "  Ran the on-call rota "}) == ["Ran the on-call rota"]
    assert experience_bullets({"description": ""}) == []
    assert experience_bullets({"achievements": ["Cut costs", ""], "description": "unused"}) == ["Cut costs"]
