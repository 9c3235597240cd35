from functools import lru_cache
from pathlib import Path


PROMPT_DIR = Path(__file__).parent

ANALYZE_REQUEST = "Optimize my CV for this position."


@lru_cache()
def load_prompt(name: str) -> str:
    """Load a prompt template by file stem."""
    prompt_files = {
        "analyze": "analyze.md",
        "refine_system": "refine_system.md",
        "preference_classifier": "preference_classifier.md",
    }

    if name not in prompt_files:
        raise ValueError(f"Invalid prompt: {name}. Must be one of {list(prompt_files.keys())}")

    prompt_path = PROMPT_DIR / prompt_files[name]
    return prompt_path.read_text(encoding="utf-8")


def build_analysis_prompt(
    resume_text: str,
    job_position: str,
    company: str,
    job_description: str,
    preferences_block: str = "",
) -> str:
    return load_prompt("analyze").format(
        preferences_block=preferences_block,
        job_position=job_position,
        company=company,
        job_description=job_description,
        resume_text=resume_text,
    ).rstrip()


def build_refinement_system_prompt(preferences_block: str = "") -> str:
    return load_prompt("refine_system").format(preferences_block=preferences_block).rstrip()


def build_grounding_message(resume_text: str, job_position: str, company: str, job_description: str) -> str:
    """First user turn of every refinement call, rebuilt from the stored originals."""
    return (
        f"Original resume text:\n{resume_text}\n\n"
        f"Target position: {job_position} at {company}\n\n"
        f"Job description:\n{job_description}\n\n"
        "Please help me optimize this CV."
    )


def build_refinement_request(current_html: str, request: str) -> str:
    return f"Current CV HTML:\n{current_html}\n\nPlease make the following change: {request}"


def build_preference_classifier_prompt(message: str, existing_rules: list[str]) -> str:
    existing_rules_block = ""
    if existing_rules:
        rules = "\n".join(existing_rules)
        existing_rules_block = f"Already saved preferences (do NOT duplicate):\n{rules}\n"
    return load_prompt("preference_classifier").format(
        message=message,
        existing_rules_block=existing_rules_block,
    ).rstrip()
