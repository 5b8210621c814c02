"""Compact prompt context built from database rows."""

from typing import Any

from applydesk.db import Job, Profile, StructuredResume


def truncate_text(text: str, max_chars: int = 4000) -> str:
    """Cut long text at a paragraph or sentence boundary."""
    if not text or len(text) <= max_chars:
        return text or ""
    cut = text[:max_chars]
    for sep in ("\n\n", ". ", "\n"):
        idx = cut.rfind(sep)
        if idx > max_chars // 2:
            return cut[: idx + len(sep)].rstrip()
    return cut.rstrip()


def skill_names(skills: list[Any]) -> list[str]:
    names = []
    for skill in skills or []:
        name = skill.get("name") if isinstance(skill, dict) else skill
        if name:
            names.append(str(name))
    return names


def experience_title(entry: dict[str, Any]) -> str:
    return str(entry.get("title") or entry.get("jobTitle") or "")


def experience_bullets(entry: dict[str, Any]) -> list[str]:
    """Achievement lines of an experience entry. A plain-text description counts as one line."""
    value = entry.get("achievements") or entry.get("description") or []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    return [str(line) for line in value if str(line).strip()]


def profile_context(profile: Profile | None, resume: StructuredResume | None = None) -> dict[str, Any]:
    """Merge the profile and the structured résumé into one prompt-sized dict."""
    ctx: dict[str, Any] = {
        "name": "",
        "summary": "",
        "skills": [],
        "titles": [],
        "experience_years": None,
        "experience": [],
        "education": [],
    }
    if profile is not None:
        ctx["name"] = profile.full_name or ""
        ctx["summary"] = profile.summary or ""
        ctx["skills"] = skill_names(profile.skills)
        ctx["titles"] = list(profile.job_titles or [])
        ctx["experience_years"] = profile.experience_years
        if not resume and profile.resume_text:
            ctx["resume_text"] = truncate_text(profile.resume_text, 2500)
    if resume is not None:
        contact = resume.contact_info or {}
        ctx["name"] = ctx["name"] or contact.get("fullName", "")
        ctx["summary"] = ctx["summary"] or resume.summary or ""
        ctx["skills"] = list(dict.fromkeys(ctx["skills"] + skill_names(resume.skills)))
        ctx["experience"] = [
            {
                "title": experience_title(exp),
                "company": exp.get("company", ""),
                "highlights": experience_bullets(exp)[:3],
            }
            for exp in (resume.experience or [])[:4]
        ]
        ctx["education"] = [
            f"{edu.get('degree', '')} {edu.get('field', '')} - {edu.get('institution', '')}".strip()
            for edu in (resume.education or [])[:2]
        ]
    return ctx


def job_context(job: Job) -> dict[str, Any]:
    return {
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "salary": job.salary,
        "employment_type": job.employment_type,
        "is_remote": job.is_remote,
        "description": truncate_text(job.description, 3000),
        "requirements": list(job.requirements or [])[:15],
    }


def format_context(ctx: dict[str, Any]) -> str:
    """Render a context dict as ``Key: value`` lines, skipping empty values."""
    lines = []
    for key, value in ctx.items():
        if value in (None, "", [], {}):
            continue
        label = key.replace("_", " ").capitalize()
        if isinstance(value, list):
            rendered = "; ".join(
                ", ".join(f"{k}: {v}" for k, v in item.items() if v) if isinstance(item, dict) else str(item)
                for item in value
            )
        else:
            rendered = str(value)
        lines.append(f"{label}: {rendered}")
    return "\n".join(lines)


def candidate_context(db, user_id: str) -> dict[str, Any]:
    """Prompt context for a user, from whatever résumé data they have."""
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    resume = db.query(StructuredResume).filter(StructuredResume.user_id == user_id).first()
    return profile_context(profile, resume)
