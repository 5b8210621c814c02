"""
Robust JSON parser for LLM responses.

Handles the shapes models actually return:
- Clean JSON
- JSON in ```json blocks
- JSON in ```blocks (no language tag)
- JSON mixed with prose
- Markdown bullet lists (fallback for list answers)
"""

import json
import re
from typing import Any


_FENCE = re.compile(r"```(\w*)\s*([\s\S]*?)\s*```")
_decoder = json.JSONDecoder()


def extract_json(text: str, expect_array: bool = False) -> dict | list | None:
    """
    Pull the first JSON object or array out of a model reply.

    Candidates come from the whole reply, then fenced blocks (```json first),
    then each opening bracket in the text. A value of the expected kind wins;
    otherwise the first non-empty value of the other kind is returned.
    """
    if not text or not text.strip():
        return None

    wanted = list if expect_array else dict
    fallback = None
    for value in _candidates(text):
        if isinstance(value, wanted):
            return value
        if fallback is None and value:
            fallback = value
    return fallback


def _candidates(text: str):
    whole = _loads(text.strip())
    if whole is not None:
        yield whole

    fences = sorted(_FENCE.findall(text), key=lambda fence: fence[0].lower() != "json")
    for _, body in fences:
        value = _loads(body)
        if value is not None:
            yield value

    for match in re.finditer(r"[\[{]", text):
        try:
            value, _ = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            yield value


def _loads(raw: str) -> dict | list | None:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, (dict, list)) else None


RECOMMENDATIONS = ("highly_recommended", "recommended", "maybe", "not_recommended")


def parse_match_response(text: str) -> dict:
    """
    Parse a job match analysis.

    Returns dict with: match_score (0..1), reasons, concerns, recommendation
    """
    data = extract_json(text, expect_array=False)
    if not isinstance(data, dict):
        raise ValueError("No JSON object in match analysis response")

    score = data.get("matchScore", data.get("match_score", data.get("score", 0)))
    score = _to_float(score)
    # Some models answer in percent
    if score > 1:
        score = score / 100
    score = min(max(score, 0.0), 1.0)

    recommendation = str(data.get("recommendation", "")).strip().lower().replace(" ", "_")
    if recommendation not in RECOMMENDATIONS:
        recommendation = recommendation_for(score)

    return {
        "match_score": round(score, 3),
        "reasons": _string_list(data.get("reasons") or data.get("strengths")),
        "concerns": _string_list(data.get("concerns") or data.get("gaps")),
        "recommendation": recommendation,
    }


def recommendation_for(score: float) -> str:
    if score >= 0.85:
        return "highly_recommended"
    if score >= 0.7:
        return "recommended"
    if score >= 0.5:
        return "maybe"
    return "not_recommended"


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"\d+(?:\.\d+)?", str(value))
    return float(match.group()) if match else 0.0


def _string_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def parse_string_list(text: str, key: str | None = None) -> list[str]:
    """
    Parse a list of strings (requirements, job titles, keywords).

    Accepts a JSON array, an object holding the array under ``key``, or a
    markdown/numbered list as a fallback.
    """
    data = extract_json(text, expect_array=key is None)
    if isinstance(data, dict) and key:
        data = data.get(key)
    if isinstance(data, list):
        return _dedupe([str(item).strip() for item in data if str(item).strip()])

    items = []
    for line in text.splitlines():
        m = re.match(r"\s*(?:[-•*]|\d+[\.\)])\s+(.+)", line)
        if m:
            items.append(m.group(1).strip().strip('"'))
    return _dedupe(items)


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        if item.lower() not in seen:
            seen.add(item.lower())
            result.append(item)
    return result


def parse_profile_response(text: str) -> dict:
    """
    Parse a résumé profile from AI response.

    Returns dict with: skills, experience_years, titles, summary
    """
    result = extract_json(text, expect_array=False)
    if isinstance(result, dict):
        return _normalize_profile(result)

    return _parse_profile_markdown(text)


def _normalize_profile(data: dict) -> dict:
    years = data.get("experience_years") or data.get("years") or data.get("exp")
    return {
        "skills": _string_list(data.get("skills"))[:15],
        "experience_years": int(_to_float(years)) if years is not None else None,
        "titles": _string_list(data.get("titles") or data.get("job_titles") or data.get("roles"))[:3],
        "summary": data.get("summary", "") or data.get("bio", ""),
    }


def _parse_profile_markdown(text: str) -> dict:
    """Fallback: pull labelled lines out of a markdown answer."""
    result = {"skills": [], "experience_years": None, "titles": [], "summary": ""}

    skills = _labelled(text, "Skills?")
    if skills:
        result["skills"] = [s.strip() for s in re.split(r"[,;]", skills) if s.strip()]

    exp_match = re.search(r"(\d+)\+?\s*years?", text, re.IGNORECASE)
    if exp_match:
        result["experience_years"] = int(exp_match.group(1))

    titles = _labelled(text, "(?:Job\\s*)?Titles?")
    if titles:
        result["titles"] = [t.strip() for t in re.split(r"[,;]", titles) if t.strip()]

    result["summary"] = _labelled(text, "Summary") or ""
    return result


def _labelled(text: str, label: str) -> str | None:
    match = re.search(rf"(?:\*\*)?{label}:(?:\*\*)?\s*([^\n]+)", text, re.IGNORECASE)
    return match.group(1).strip(" *") if match else None
