"""
Résumé customizer.

Tailors a structured résumé to one job without inventing anything: matching
skills, bullets, degrees and certifications move to the front and the
summary names the target role. The model only helps find the keywords.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from applydesk.agents import job_analyzer
from applydesk.agents.context import experience_bullets, experience_title
from applydesk.agents.llm import LLMError
from applydesk.db import CustomizedResume, Job, StructuredResume

logger = logging.getLogger(__name__)

TECH_SKILLS = [
    "javascript", "typescript", "react", "vue", "angular", "node.js", "express",
    "java", "spring", "python", "django", "flask", "fastapi", "php", "laravel",
    "sql", "mysql", "postgresql", "mongodb", "nosql", "redis",
    "aws", "azure", "gcp", "docker", "kubernetes", "terraform",
    "git", "ci/cd", "jenkins", "github actions",
    "api", "rest", "graphql", "microservices",
]
SOFT_SKILLS = [
    "leadership", "communication", "teamwork", "collaboration", "problem solving",
    "analytical", "creative", "detail oriented", "agile", "scrum",
]
PROFICIENCY_POINTS = {"expert": 4, "advanced": 3, "intermediate": 2}

RELATED_DEGREES = [
    ("engineer", "engineering"),
    ("developer", "computer"),
    ("computer", "computer"),
    ("data", "data"),
    ("business", "business"),
    ("design", "design"),
]


@dataclass
class JobKeywords:
    technical: list[str]
    soft: list[str]
    keywords: list[str]
    experience_level: str


@dataclass
class CustomizedContent:
    content: dict[str, Any]
    match_score: float
    keywords: list[str]
    notes: list[str] = field(default_factory=list)


def clean_job_title(raw_title: str) -> str:
    """Strip parentheticals, "X is hiring:" prefixes and trailing locations or ids."""
    cleaned = re.sub(r"\s*\([^)]*\)", "", raw_title)
    cleaned = re.sub(r"^[^:]*:\s*", "", cleaned)
    cleaned = re.sub(r"\s+in\s+[^,]*$", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*[-|#]\s*(?:req\w*\s*)?[A-Z]*-?\d[\w-]*$", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"^(?:sr|jr)\.?\s+", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+(?:I{1,3}|IV)$", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" -,|")
    return cleaned or raw_title


def experience_level(text: str) -> str:
    text = text.lower()
    if re.search(r"\b(senior|sr\.?|lead|principal|staff)\b", text):
        return "senior"
    if re.search(r"\b(junior|jr\.?|entry|graduate)\b", text):
        return "junior"
    return "mid-level"


def _contains(text: str, term: str) -> bool:
    return re.search(rf"(?<![\w+#]){re.escape(term.lower())}(?![\w+#])", text) is not None


def analyze_keywords(title: str, description: str, requirements: list[str] | None = None) -> JobKeywords:
    """Keywords from the posting text, merged with any extracted requirements."""
    text = f"{clean_job_title(title)} {description} {' '.join(requirements or [])}".lower()
    technical = [skill for skill in TECH_SKILLS if _contains(text, skill)]
    # Acronyms and dotted names in requirements read as tools
    technical += [
        r for r in requirements or []
        if len(r) > 2 and " " not in r.strip() and ("." in r or "/" in r or r.isupper())
    ]
    soft = [skill for skill in SOFT_SKILLS if skill in text]
    title_words = [w for w in re.split(r"\W+", clean_job_title(title).lower()) if len(w) > 2]
    keywords = list(dict.fromkeys([*(requirements or []), *technical, *soft, *title_words]))
    return JobKeywords(
        technical=list(dict.fromkeys(technical)),
        soft=soft,
        keywords=keywords,
        experience_level=experience_level(f"{title} {description}"),
    )


def job_keywords(job: Job, use_llm: bool = True) -> JobKeywords:
    requirements = list(job.requirements or [])
    if use_llm and job.description:
        try:
            requirements = list(dict.fromkeys(requirements + job_analyzer.extract_job_requirements(job.description)))
        except LLMError as e:
            logger.warning(f"[{job.id}] Requirement extraction failed, using posting text only: {e}")
    return analyze_keywords(job.title, job.description or "", requirements)


def _skill_relevant(name: str, analysis: JobKeywords) -> bool:
    name = name.lower()
    return any(
        term.lower() in name or name in term.lower()
        for term in [*analysis.technical, *analysis.keywords]
        if term
    )


def _skill_name(skill: Any) -> str:
    return str(skill.get("name", "")) if isinstance(skill, dict) else str(skill)


def _skill_points(skill: Any) -> int:
    level = str(skill.get("proficiency", "")).lower() if isinstance(skill, dict) else ""
    return PROFICIENCY_POINTS.get(level, 1)


def _mentions_any(text: str, terms: list[str]) -> bool:
    text = text.lower()
    return any(term and term.lower() in text for term in terms)


def _stable_partition(items: list[Any], relevant) -> list[Any]:
    first = [item for item in items if relevant(item)]
    rest = [item for item in items if not relevant(item)]
    return first + rest


def score_resume(resume: dict[str, Any], analysis: JobKeywords) -> tuple[float, list[str], list[str]]:
    """Match score, matched skill names and notes for a résumé against the keywords."""
    matched: list[str] = []
    notes: list[str] = []
    skill_points = 0
    for skill in resume.get("skills") or []:
        name = _skill_name(skill)
        if name and _skill_relevant(name, analysis):
            matched.append(name)
            skill_points += _skill_points(skill)

    experience_points = 0
    for entry in resume.get("experience") or []:
        text = f"{experience_title(entry)} {' '.join(experience_bullets(entry))}".lower()
        hits = sum(1 for k in analysis.keywords if k and k.lower() in text)
        experience_points += hits
        if hits:
            notes.append(f"{experience_title(entry) or 'Role'} experience aligns with the posting")

    max_points = (len(analysis.technical) or 5) * 4 + (len(analysis.keywords) or 5)
    score = min((skill_points + experience_points) / max_points, 1.0)
    if matched:
        notes.append(f"Highlighted {len(matched)} relevant skills")
    return round(score, 3), matched, notes


def _summary(summary: str, title: str, analysis: JobKeywords) -> str:
    if not summary.strip():
        summary = f"Professional seeking {title} opportunities to contribute technical skills and domain knowledge."
    elif title.lower() not in summary.lower():
        summary = f"{summary.rstrip()} Seeking opportunities as a {title}."
    missing = [k for k in analysis.technical[:3] if k.lower() not in summary.lower()]
    if missing:
        summary = f"{summary.rstrip()} Specialized experience with {', '.join(missing)}."
    return summary


def customize_resume(resume: dict[str, Any], job: Job, analysis: JobKeywords | None = None) -> CustomizedContent:
    """Tailored copy of ``resume`` for ``job``. The input is not modified."""
    analysis = analysis or analyze_keywords(job.title, job.description or "", list(job.requirements or []))
    title = clean_job_title(job.title)
    score, matched, notes = score_resume(resume, analysis)
    matched_lower = {m.lower() for m in matched}

    content = copy.deepcopy(resume)
    content["summary"] = _summary(resume.get("summary") or "", title, analysis)
    content["skills"] = _stable_partition(
        content.get("skills") or [], lambda s: _skill_name(s).lower() in matched_lower
    )

    experience = []
    for entry in content.get("experience") or []:
        key = "achievements" if entry.get("achievements") else "description"
        if isinstance(entry.get(key), list):
            entry[key] = _stable_partition(entry[key], lambda b: _mentions_any(b, analysis.keywords))
        experience.append(entry)
    content["experience"] = experience

    job_title = job.title.lower()
    content["education"] = _stable_partition(
        content.get("education") or [],
        lambda edu: any(
            t in job_title and d in f"{edu.get('degree', '')} {edu.get('field', '')}".lower()
            for t, d in RELATED_DEGREES
        ),
    )
    content["certifications"] = _stable_partition(
        content.get("certifications") or [],
        lambda cert: _mentions_any(_skill_name(cert), analysis.keywords),
    )
    content["target"] = {"job_title": title, "company": job.company, "experience_level": analysis.experience_level}

    return CustomizedContent(content=content, match_score=score, keywords=matched or analysis.keywords[:10], notes=notes)


def resume_to_dict(resume: StructuredResume) -> dict[str, Any]:
    return {
        "contact_info": dict(resume.contact_info or {}),
        "summary": resume.summary or "",
        "experience": list(resume.experience or []),
        "education": list(resume.education or []),
        "skills": list(resume.skills or []),
        "certifications": list(resume.certifications or []),
        "projects": list(resume.projects or []),
    }


def customize_for_job(db: Session, user_id: str, job: Job, use_llm: bool = True) -> CustomizedResume:
    """Customize the user's structured résumé for a saved job and store it."""
    resume = db.query(StructuredResume).filter(StructuredResume.user_id == user_id).first()
    if resume is None:
        raise LookupError("No structured resume")

    result = customize_resume(resume_to_dict(resume), job, job_keywords(job, use_llm=use_llm))
    customized = CustomizedResume(
        user_id=user_id,
        job_id=job.id,
        content={**result.content, "notes": result.notes},
        match_score=result.match_score,
        keywords=result.keywords,
    )
    db.add(customized)
    db.commit()
    logger.info(f"[{job.id}] Customized resume for {user_id} (score {result.match_score})")
    return customized
