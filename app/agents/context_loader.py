"""
Context Loader Utility for Moying Wenshu Agents

This module loads the prompt templates used by the agents. Context files
hold the long literary instructions so the agent modules only deal with
filling them in and calling the model.
"""

from pathlib import Path
from functools import lru_cache


# Base directory for agents
AGENTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=10)
def load_context(agent_name: str) -> str:
    """
    Load context file for a specific agent.

    Args:
        agent_name: Name of the agent (analyst, writer, assistant)

    Returns:
        Content of the context file as string

    Raises:
        ValueError: If the agent name is unknown
        FileNotFoundError: If context file doesn't exist
    """
    context_paths = {
        "analyst": AGENTS_DIR / "narrative" / "context_analyst.txt",
        "writer": AGENTS_DIR / "narrative" / "context_writer.txt",
        "assistant": AGENTS_DIR / "assistant" / "context_assistant.txt",
    }

    if agent_name not in context_paths:
        raise ValueError(f"Unknown agent: {agent_name}. Available: {list(context_paths.keys())}")

    context_path = context_paths[agent_name]

    if not context_path.exists():
        raise FileNotFoundError(f"Context file not found: {context_path}")

    return context_path.read_text(encoding="utf-8").strip()


def quote_for_prompt(text: str) -> str:
    """
    Neutralise double quotes in user-provided text before it is embedded
    between quotes in a prompt template.
    """
    return (text or "").replace('"', "“")


def image_part(image_data_url: str) -> dict:
    """Chat-completions content part carrying an inline image."""
    return {"type": "image_url", "image_url": {"url": image_data_url}}


# User-friendly error messages (not exposing internal details)
ERROR_MESSAGES = {
    "ANALYSIS_FAILED": "创作启动失败，请检查网络。",
    "CHAPTER_FAILED": "创作过程中断，请重试。",
    "NARRATION_FAILED": "朗诵过程中遇到问题。",
    "ASSISTANT_FAILED": "连接助手时遇到了点问题。",
}


def get_user_friendly_error(error_type: str) -> str:
    """
    Get user-friendly error message without exposing internal details.

    Args:
        error_type: Internal error type identifier

    Returns:
        User-friendly error message in Chinese
    """
    return ERROR_MESSAGES.get(error_type, ERROR_MESSAGES["CHAPTER_FAILED"])
