"""Career path taxonomy shared by the prefilter, fallback and validation stages."""
from __future__ import annotations

from typing import Dict, Iterable, List

# Category slugs a job must carry to count as "in" the career path
CAREER_PATH_CATEGORIES: Dict[str, List[str]] = {
    "Strategy & Business Design": ["strategy", "business-design", "consulting"],
    "Data & Analytics": ["data", "analytics", "data-science"],
    "Sales & Client Success": ["sales", "business-development", "client-success"],
    "Marketing & Growth": ["marketing", "growth", "brand"],
    "Finance & Investment": ["finance", "accounting", "investment"],
    "Operations & Supply Chain": ["operations", "supply-chain", "logistics"],
    "Product & Innovation": ["product", "product-management", "innovation"],
    "Tech & Transformation": ["tech", "technology", "transformation", "it"],
    "Sustainability & ESG": ["sustainability", "esg", "environmental", "social"],
    "Not Sure Yet / General": ["general", "graduate", "trainee", "rotational"],
}

# Looser related terms used for scoring
CAREER_PATH_SYNONYMS: Dict[str, List[str]] = {
    "Strategy & Business Design": ["strategy", "business-design", "consulting", "management", "planning"],
    "Data & Analytics": ["data", "analytics", "data-science", "bi", "business intelligence", "insights"],
    "Sales & Client Success": ["sales", "business-development", "client-success", "account management", "revenue"],
    "Marketing & Growth": ["marketing", "growth", "brand", "content", "social", "campaign"],
    "Finance & Investment": ["finance", "accounting", "investment", "fp&a", "financial", "budget"],
    "Operations & Supply Chain": ["operations", "supply-chain", "logistics", "procurement", "efficiency"],
    "Product & Innovation": ["product", "product-management", "innovation", "roadmap", "features"],
    "Tech & Transformation": ["tech", "technology", "transformation", "it", "digital", "software"],
    "Sustainability & ESG": ["sustainability", "esg", "environmental", "social", "governance", "csr"],
    "Not Sure Yet / General": ["general", "graduate", "trainee", "rotational", "development"],
}

GENERAL_PATH = "Not Sure Yet / General"


def category_matches_career_path(job_category: str, career_path: str) -> bool:
    expected = CAREER_PATH_CATEGORIES.get(career_path, [career_path.lower()])
    category = job_category.lower()
    return any(e in category for e in expected)


def category_match_score(job_category: str, career_path: str) -> float:
    """100 for a direct category hit, 90 for a related term, 70 for a partial word"""
    if category_matches_career_path(job_category, career_path):
        return 100
    synonyms = CAREER_PATH_SYNONYMS.get(career_path, [career_path.lower()])
    category = job_category.lower()
    if any(s in category for s in synonyms):
        return 90
    for synonym in synonyms:
        if any(len(word) > 3 and word in category for word in synonym.split("-")):
            return 70
    return 0


def text_mentions_career_path(text: str, career_path: str) -> bool:
    """Whether free text (title, description) mentions a path's categories as words"""
    words = set(text.lower().replace("/", " ").replace(",", " ").split())
    lowered = text.lower()
    for term in CAREER_PATH_CATEGORIES.get(career_path, [career_path.lower()]):
        # short slugs like "it" only count as whole words
        if len(term) <= 3:
            if term in words:
                return True
        elif term.replace("-", " ") in lowered or term in lowered:
            return True
    return False


def job_in_career_paths(categories: Iterable[str], text: str, career_paths: Iterable[str]) -> bool:
    categories = list(categories)
    for path in career_paths:
        if path == GENERAL_PATH:
            return True
        if any(category_matches_career_path(c, path) for c in categories):
            return True
        if text_mentions_career_path(text, path):
            return True
    return False
