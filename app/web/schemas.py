from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class BlueprintUpdate(BaseModel):
    blueprint: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    message: str


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatResponse(BaseModel):
    messages: List[ChatMessage]
    reply: Optional[str] = None
    guidance_synced: bool = False


class NarrationResponse(BaseModel):
    done: bool
    is_playing: bool
    chapter_index: Optional[int] = None
    total_chapters: Optional[int] = None
    voice: Optional[str] = None
    audio_url: Optional[str] = None
    pause_ms: int = 0
