import re
from dataclasses import dataclass
from app.core.config import settings
from app.core.logger import log_agent_action
from app.agents.clients import get_groq_client, completion_text
from app.agents.context_loader import load_context, image_part

ANALYSIS_PATTERN = re.compile(r"分析：(.*?)大纲：", re.IGNORECASE | re.DOTALL)
BLUEPRINT_PATTERN = re.compile(r"大纲：(.*?)故事：", re.IGNORECASE | re.DOTALL)
STORY_PATTERN = re.compile(r"故事：(.*)", re.IGNORECASE | re.DOTALL)

DEFAULT_ANALYSIS = "分析完成。"
DEFAULT_BLUEPRINT = "蓝图已构思。"


@dataclass
class PlanResult:
    analysis: str
    blueprint: str
    first_chapter: str


def parse_plan_response(text: str) -> PlanResult:
    """
    Pull the three sections out of the analyst's answer.
    Missing sections fall back to placeholders; a reply without a story
    marker is taken whole as the first chapter.
    """
    text = text or ""
    analysis_match = ANALYSIS_PATTERN.search(text)
    blueprint_match = BLUEPRINT_PATTERN.search(text)
    story_match = STORY_PATTERN.search(text)

    return PlanResult(
        analysis=analysis_match.group(1).strip() if analysis_match else DEFAULT_ANALYSIS,
        blueprint=blueprint_match.group(1).strip() if blueprint_match else DEFAULT_BLUEPRINT,
        first_chapter=story_match.group(1).strip() if story_match else text,
    )


def build_analysis_prompt() -> str:
    return load_context("analyst").format(chapter_count=settings.MAX_CHAPTERS)


def analyze_and_plan(image_data_url: str) -> PlanResult:
    """
    Analyses the uploaded image and drafts the blueprint and first chapter.

    Args:
        image_data_url: The image as a data URL (data:<mime>;base64,<payload>)

    Returns:
        PlanResult with analysis, blueprint and first chapter
    """
    messages = [
        {
            "role": "user",
            "content": [
                image_part(image_data_url),
                {"type": "text", "text": build_analysis_prompt()},
            ],
        }
    ]

    try:
        completion = get_groq_client().chat.completions.create(
            model=settings.STORY_MODEL,
            messages=messages,
            temperature=settings.ANALYSIS_TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
        )
    except Exception as e:
        log_agent_action("analyst", "analyze_and_plan", str(e), success=False)
        raise RuntimeError(f"Analyst Error: {str(e)}")

    result = parse_plan_response(completion_text(completion))
    log_agent_action(
        "analyst",
        "analyze_and_plan",
        f"analysis={len(result.analysis)} blueprint={len(result.blueprint)} chapter={len(result.first_chapter)}",
    )
    return result
