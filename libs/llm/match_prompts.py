"""Prompt templates for tiered AI job matching."""

from typing import Sequence

from libs.matching.models import Job, UserPreferences


def _join(values: Sequence[str], sep: str, default: str) -> str:
    return sep.join(values) if values else default


class MatchPrompt:
    """Shared layout: system prompt, profile, task, output schema, job list."""

    SYSTEM_PROMPT = ("You are an expert career counselor helping match job seekers with job opportunities. "
                     "Analyze job matches based on skills, experience, location preferences, and career goals. "
                     "Always respond with a single JSON object.")

    ROLE_PROMPT = ""
    PROFILE_TEMPLATE = ""
    TASK_INSTRUCTION = ""
    OUTPUT_SCHEMA = ""
    JOBS_HEADER = "JOBS:"
    MATCH_COUNT = 5
    MAX_JOBS_FOR_AI = 10
    FALLBACK_THRESHOLD = 1
    INCLUDE_PREFILTER_SCORE = False

    @classmethod
    def build_prompt(cls, user: UserPreferences, jobs: Sequence[Job]) -> str:
        return "\n\n".join([
            cls.ROLE_PROMPT,
            cls.format_profile(user),
            cls.TASK_INSTRUCTION,
            cls.OUTPUT_SCHEMA,
            f"{cls.JOBS_HEADER}\n{cls.format_job_list(jobs)}",
        ])

    @classmethod
    def get_match_count(cls) -> int:
        return cls.MATCH_COUNT

    @classmethod
    def get_config(cls) -> dict:
        return {
            "use_ai": True,
            "max_jobs_for_ai": cls.MAX_JOBS_FOR_AI,
            "max_matches": cls.MATCH_COUNT,
            "fallback_threshold": cls.FALLBACK_THRESHOLD,
            "include_prefilter_score": cls.INCLUDE_PREFILTER_SCORE,
        }

    @classmethod
    def format_profile(cls, user: UserPreferences) -> str:
        raise NotImplementedError

    @classmethod
    def format_job_list(cls, jobs: Sequence[Job]) -> str:
        raise NotImplementedError


class FreeMatchPrompt(MatchPrompt):
    """Free tier: five realistic entry-level matches, speed over depth."""

    ROLE_PROMPT = """You are JobPing's AI career counselor specializing in entry-level job matching.
Your free service helps graduates find their first professional roles with high success rates.

STUDENT PERSPECTIVE: "I'm a recent graduate looking for my first job. What roles should I actually apply for and get interviews?"
YOUR ROLE: Find 5 REALISTIC entry-level positions this student has strong qualifications for and would genuinely consider.

CRITICAL: Focus on JOBS THEY CAN ACTUALLY GET based on their career focus and qualifications. Prioritize roles where they meet 70%+ of requirements."""

    PROFILE_TEMPLATE = """STUDENT REQUEST: "{career} roles in {cities}"

STUDENT PROFILE:
- Career focus: {career} (single career path)
- Target location: {cities}
- Experience level: Entry-level/Graduate
- Visa status: {visa}

NOTE: This student used JobPing's simple form - focus on one clear career direction and find realistic opportunities they would genuinely apply for."""

    TASK_INSTRUCTION = """As this student's career counselor, select EXACTLY 5 entry-level positions from the provided job list that match their profile. Use this scoring system:

JOB SELECTION CRITERIA (must meet ALL):
1. LOCATION: Job city matches student's target cities
2. CAREER: Job categories align with student's career path
3. LEVEL: Entry-level, graduate, or internship roles only
4. REALISM: Student meets 70%+ of stated requirements

SCORING WEIGHTS:
- Career alignment: 40% (primary factor)
- Location match: 30% (critical for applications)
- Experience fit: 20% (entry-level focus)
- Company reputation: 10% (bonus factor)

Output EXACTLY 5 matches ranked by overall fit score."""

    OUTPUT_SCHEMA = """{
  "matches": [
    {
      "jobIndex": 0,
      "matchScore": 85,
      "confidenceScore": 90,
      "matchReason": "Software Engineer at TechCorp London - matches tech career path, London location, entry-level with Node.js/React skills mentioned, excellent fit for graduate developer"
    }
  ]
}

REQUIREMENTS:
- EXACTLY 5 matches from the JOBS list
- jobIndex must be a valid index from the provided jobs list (0-based)
- matchScore: 0-100 (higher = better fit)
- confidenceScore: 0-100 (higher = more certain about fit)
- matchReason: Specific explanation why this job fits their career + location + experience"""

    @classmethod
    def format_profile(cls, user: UserPreferences) -> str:
        return cls.PROFILE_TEMPLATE.format(
            career=_join(user.career_path, ", ", "Open"),
            cities=_join(user.target_cities, ", ", "Flexible"),
            visa=user.visa_status or "EU citizen",
        )

    @classmethod
    def format_job_list(cls, jobs: Sequence[Job]) -> str:
        return "\n".join(
            f"{i}: {job.title} | {job.company} | {job.city or job.location or 'Unknown'} | "
            f"Categories: {', '.join(job.categories) or 'N/A'} | Level: {job.experience_required or 'Not specified'}"
            for i, job in enumerate(jobs)
        )


class PremiumMatchPrompt(MatchPrompt):
    """Premium tier: fifteen strategic matches built on the full assessment."""

    MATCH_COUNT = 15
    MAX_JOBS_FOR_AI = 30
    FALLBACK_THRESHOLD = 3
    INCLUDE_PREFILTER_SCORE = True
    JOBS_HEADER = "OPPORTUNITIES:"

    ROLE_PROMPT = """You are JobPing's premium career strategist for subscribers.
You provide detailed career guidance based on comprehensive student profiles from our 4-step assessment.

STUDENT PERSPECTIVE: "I've completed JobPing's detailed career assessment. Now I need strategic advice on my next 15 career moves."
YOUR ROLE: Act as their personal career counselor, providing strategic recommendations that align with their long-term professional trajectory."""

    PROFILE_TEMPLATE = """STUDENT REQUEST: "{career} roles in {cities}"

COMPREHENSIVE STUDENT PROFILE (4-Step Career Assessment Completed):
- Career paths: {career} (can explore up to 2 career directions)
- Detailed career assessment: {keywords}
- Technical & soft skills: {skills}
- Preferred industries: {industries}
- Target roles: {roles}
- Geographic preferences: {cities}
- Experience level: {level}
- Company size preference: {company_size}
- Work environment: {environment}
- Visa considerations: {visa}
- Professional expertise: {expertise}"""

    TASK_INSTRUCTION = """CRITICAL: You MUST respond with VALID JSON only. No text, no explanations, no markdown formatting.

As this student's premium career counselor, analyze the job list and return EXACTLY 15 high-quality matches in the specified JSON format.

MATCHING CRITERIA:
- Match scores: 85-100 (premium quality only)
- Career alignment: 90%+ match with user's career paths
- Skills fit: 90%+ match with user's technical skills
- Geographic fit: Perfect city match required
- Company quality: Prioritize established companies"""

    OUTPUT_SCHEMA = """{
  "matches": [
    {
      "jobIndex": 0,
      "matchScore": 95,
      "confidenceScore": 98,
      "matchReason": "Strategic career move: Product Analyst at an established SaaS company matches your analytics background, offers a mentored path into product leadership, and the Munich location fits your geographic preferences",
      "scoreBreakdown": {"skills": 98, "experience": 95, "location": 96, "company": 92, "career_progression": 97, "overall": 95}
    }
  ]
}

REQUIREMENTS FOR PREMIUM OUTPUT:
- EXACTLY 15 matches from the provided jobs list (jobIndex is 0-based)
- Match scores: 85-100, confidence scores: 90-100
- Detailed reasoning showing strategic career thinking"""

    @classmethod
    def format_profile(cls, user: UserPreferences) -> str:
        return cls.PROFILE_TEMPLATE.format(
            career=_join(user.career_path, " or ", "Open"),
            cities=_join(user.target_cities, ", ", "Flexible"),
            keywords=user.career_keywords or "Career growth focused",
            skills=_join(user.skills, ", ", "Open"),
            industries=_join(user.industries, ", ", "Flexible"),
            roles=_join(user.roles_selected, ", ", "Open"),
            level=user.entry_level_preference or "Progressive",
            company_size=user.company_size_preference or "Open",
            environment=user.work_environment or "Flexible",
            visa=user.visa_status or "EU citizen",
            expertise=user.professional_expertise or "Business foundation",
        )

    @classmethod
    def format_job_list(cls, jobs: Sequence[Job]) -> str:
        return "\n".join(
            f"{i}: {job.title} | {job.company} | {job.city or job.location or 'Unknown'} | "
            f"Industry: {job.categories[0] if job.categories else 'Tech'}"
            for i, job in enumerate(jobs)
        )


def prompt_for(user: UserPreferences) -> type:
    return PremiumMatchPrompt if user.is_premium else FreeMatchPrompt
