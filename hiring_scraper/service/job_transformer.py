"""
Flattening of raw hiring.cafe listings into the stored job shape.

Optional fields are omitted rather than sent as null, since the upsert API
rejects nulls.
"""

import time
from typing import Any, Optional

from hiring_scraper.models.job_models import JobRecord

MAX_DESCRIPTION_LENGTH = 10000


def _section(raw: JobRecord, key: str) -> dict[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _str(m: dict[str, Any], key: str) -> str:
    value = m.get(key)
    return value if isinstance(value, str) else ""


def _opt_str(m: dict[str, Any], key: str) -> Optional[str]:
    return _str(m, key) or None


def _opt_float(m: dict[str, Any], key: str) -> Optional[float]:
    value = m.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _bool(m: dict[str, Any], key: str) -> bool:
    value = m.get(key)
    return value if isinstance(value, bool) else False


def _str_list(m: dict[str, Any], key: str) -> list[str]:
    value = m.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def now_millis() -> int:
    return int(time.time() * 1000)


def transform_job(raw: JobRecord, scraped_at: Optional[int] = None) -> dict[str, Any]:
    info = _section(raw, "job_information")
    job_data = _section(raw, "v5_processed_job_data")
    company_data = _section(raw, "v5_processed_company_data")

    description = _str(info, "description")[:MAX_DESCRIPTION_LENGTH]

    industry = _opt_str(job_data, "company_sector_and_industry")
    if industry is None:
        industries = _str_list(company_data, "industries")
        industry = industries[0] if industries else None

    job: dict[str, Any] = {
        "externalId": _str(raw, "id"),
        "title": _str(info, "title") or _str(job_data, "core_job_title") or "Untitled",
        "company": _str(job_data, "company_name") or _str(company_data, "name") or "Unknown",
        "applyUrl": _str(raw, "apply_url"),
        "source": _str(raw, "source"),
        "location": _str(job_data, "formatted_workplace_location"),
        "workplaceType": _str(job_data, "workplace_type") or "Unknown",
        "countries": _str_list(job_data, "workplace_countries"),
        "seniorityLevel": _opt_str(job_data, "seniority_level"),
        "commitment": _str_list(job_data, "commitment"),
        "category": _opt_str(job_data, "job_category"),
        "roleType": _opt_str(job_data, "role_type"),
        "minYoe": _opt_float(job_data, "min_industry_and_role_yoe"),
        "skills": _str_list(job_data, "technical_tools"),
        "requirements": _opt_str(job_data, "requirements_summary"),
        "description": description or None,
        "salaryMin": _opt_float(job_data, "yearly_min_compensation"),
        "salaryMax": _opt_float(job_data, "yearly_max_compensation"),
        "salaryCurrency": _opt_str(job_data, "listed_compensation_currency"),
        "salaryFrequency": _opt_str(job_data, "listed_compensation_frequency"),
        "isCompensationTransparent": _bool(job_data, "is_compensation_transparent"),
        "companyLogo": _opt_str(company_data, "image_url"),
        "companyWebsite": _opt_str(company_data, "website"),
        "companyLinkedin": _opt_str(company_data, "linkedin_url"),
        "companyIndustry": industry,
        "companySize": _opt_float(company_data, "num_employees"),
        "companyTagline": _opt_str(job_data, "company_tagline") or _opt_str(company_data, "tagline"),
        "publishedAt": _opt_float(job_data, "estimated_publish_date_millis"),
        "scrapedAt": scraped_at if scraped_at is not None else now_millis(),
        "isExpired": _bool(raw, "is_expired"),
    }
    return {key: value for key, value in job.items() if value is not None}
