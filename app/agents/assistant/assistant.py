from typing import Dict, List, Optional
from app.core.config import settings
from app.core.logger import log_agent_action
from app.agents.clients import get_groq_client, completion_text
from app.agents.context_loader import load_context, image_part

FALLBACK_REPLY = "暂时无法回应。"


def build_chat_messages(history: List[Dict[str, str]], message: str, image_data_url: Optional[str]) -> list:
    """
    Chat-completions payload: system persona, prior turns, then the new user
    message with the inspiration image attached.
    """
    messages = [{"role": "system", "content": load_context("assistant")}]
    for turn in history:
        role = "assistant" if turn["role"] == "assistant" else "user"
        messages.append({"role": role, "content": turn["text"]})

    if image_data_url:
        content = [{"type": "text", "text": message}, image_part(image_data_url)]
    else:
        content = message
    messages.append({"role": "user", "content": content})
    return messages


def chat_with_story(history: List[Dict[str, str]], message: str, image_data_url: Optional[str]) -> str:
    """One creative-assistant turn. Returns the assistant's reply."""
    try:
        completion = get_groq_client().chat.completions.create(
            model=settings.STORY_MODEL,
            messages=build_chat_messages(history, message, image_data_url),
        )
    except Exception as e:
        log_agent_action("assistant", "chat", str(e), success=False)
        raise RuntimeError(f"Assistant Error: {str(e)}")

    reply = completion_text(completion)
    log_agent_action("assistant", "chat", f"history={len(history)} reply={len(reply)} chars")
    return reply or FALLBACK_REPLY
