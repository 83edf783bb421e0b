from typing import Optional
from app.core.config import settings
from app.core.logger import log_agent_action
from app.agents.clients import get_groq_client, completion_text
from app.agents.context_loader import load_context, quote_for_prompt, image_part

DEFAULT_GUIDANCE = "请根据图片意境和大纲要求，自然推进剧情。"


def recent_story(story: str, limit: Optional[int] = None) -> str:
    """The tail of the story the writer gets to see."""
    limit = settings.STORY_TAIL_CHARS if limit is None else limit
    return story[-limit:] if story else ""


def build_chapter_prompt(story: str, blueprint: str, chapter_index: int, guidance: str) -> str:
    return load_context("writer").format(
        guidance=quote_for_prompt(guidance),
        blueprint=quote_for_prompt(blueprint),
        recent_story=quote_for_prompt(recent_story(story)),
        chapter_index=chapter_index,
    )


def write_next_chapter(
    story: str,
    blueprint: str,
    chapter_index: int,
    image_data_url: Optional[str],
    guidance: str,
) -> str:
    """
    Writes chapter `chapter_index`, following the assistant's guidance,
    the blueprint and the end of the story so far.

    Returns:
        Generated chapter text (may be empty)
    """
    content = [{"type": "text", "text": build_chapter_prompt(story, blueprint, chapter_index, guidance)}]
    if image_data_url:
        content.append(image_part(image_data_url))

    try:
        completion = get_groq_client().chat.completions.create(
            model=settings.STORY_MODEL,
            messages=[{"role": "user", "content": content}],
            temperature=settings.CHAPTER_TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
        )
    except Exception as e:
        log_agent_action("writer", f"chapter {chapter_index}", str(e), success=False)
        raise RuntimeError(f"Writer Error: {str(e)}")

    text = completion_text(completion)
    log_agent_action("writer", f"chapter {chapter_index}", f"{len(text)} chars")
    return text
