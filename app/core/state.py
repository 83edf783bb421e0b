import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Literal, Optional

from app.core.config import settings
from app.agents.speech.narration import NarrationQueue

CHAPTER_SEPARATOR = "\n\n"
PARAGRAPH_SEPARATOR = "\n\n"
CHAPTER_HEADING_PREFIX = "第"


@dataclass
class Message:
    role: Literal["user", "assistant"]
    content: str


@dataclass
class StoryState:
    image: Optional[str] = None  # data URL of the uploaded image
    analysis: str = ""
    blueprint: str = ""
    story: str = ""
    current_chapter: int = 1
    is_loading: bool = False
    error: Optional[str] = None


def render_paragraphs(story: str) -> List[Dict[str, object]]:
    """Split story text into display paragraphs, flagging chapter headings."""
    if not story:
        return []
    return [
        {"text": paragraph, "is_heading": paragraph.startswith(CHAPTER_HEADING_PREFIX)}
        for paragraph in story.split(PARAGRAPH_SEPARATOR)
    ]


@dataclass
class StoryWorkspace:
    """
    Everything one browser session works on: the story, the assistant chat
    and the narration queue. Tokens are bumped whenever an in-flight result
    must no longer be applied (new upload, stop).
    """
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: StoryState = field(default_factory=StoryState)
    messages: List[Message] = field(default_factory=list)
    guidance: str = ""
    is_generating: bool = False
    is_typing: bool = False
    upload_token: int = 0
    generation_token: int = 0
    narration: NarrationQueue = field(default_factory=NarrationQueue)
    last_seen: float = field(default_factory=time.monotonic)

    # --- Upload / analysis ---

    def begin_upload(self, image: str) -> int:
        self.upload_token += 1
        self.generation_token += 1
        self.is_generating = False
        self.state = StoryState(image=image, is_loading=True)
        self.guidance = ""
        self.narration.stop()
        return self.upload_token

    def finish_upload(self, token: int, analysis: str, blueprint: str, first_chapter: str) -> bool:
        if token != self.upload_token:
            return False
        self.state.is_loading = False
        self.state.analysis = analysis
        self.state.blueprint = blueprint
        self.state.story = first_chapter
        return True

    def fail_upload(self, token: int, message: str) -> bool:
        if token != self.upload_token:
            return False
        self.state.is_loading = False
        self.state.error = message
        return True

    # --- Chapters ---

    @property
    def can_continue(self) -> bool:
        return (
            bool(self.state.story)
            and not self.state.is_loading
            and self.state.current_chapter < settings.MAX_CHAPTERS
        )

    def begin_chapter(self) -> int:
        self.generation_token += 1
        self.is_generating = True
        return self.generation_token

    def commit_chapter(self, token: int, chapter_number: int, text: str) -> bool:
        """Append a finished chapter unless the generation was stopped or superseded."""
        if token != self.generation_token or not self.is_generating:
            return False
        self.is_generating = False
        if chapter_number <= self.state.current_chapter:
            return False
        self.state.story = f"{self.state.story}{CHAPTER_SEPARATOR}{text}"
        self.state.current_chapter = chapter_number
        return True

    def fail_chapter(self, token: int, message: str) -> bool:
        if token != self.generation_token:
            return False
        self.is_generating = False
        self.state.error = message
        return True

    def stop_generation(self):
        self.generation_token += 1
        self.is_generating = False

    # --- Blueprint / errors ---

    def update_blueprint(self, blueprint: str):
        self.state.blueprint = blueprint

    def dismiss_error(self):
        self.state.error = None

    # --- Assistant chat ---

    def add_message(self, role: str, content: str) -> Message:
        message = Message(role=role, content=content)
        self.messages.append(message)
        return message

    def history(self) -> List[Dict[str, str]]:
        return [{"role": m.role, "text": m.content} for m in self.messages]

    # --- Views ---

    def stats(self) -> Dict[str, object]:
        chapters = self.state.current_chapter
        return {
            "characters": len(self.state.story),
            "chapters_completed": chapters,
            "max_chapters": settings.MAX_CHAPTERS,
            "progress_percent": round(chapters / settings.MAX_CHAPTERS * 100, 2),
            "guidance_synced": bool(self.guidance),
            "guidance_preview": self.guidance[:50],
        }

    def to_dict(self) -> Dict[str, object]:
        state = asdict(self.state)
        # Keep the data URL out of JSON; the page loads it from /api/story/image
        state["has_image"] = state.pop("image") is not None
        return {
            **state,
            "paragraphs": render_paragraphs(self.state.story),
            "is_generating": self.is_generating,
            "can_continue": self.can_continue,
            "stats": self.stats(),
            "narration": self.narration.to_dict(),
        }


class WorkspaceStore:
    """
    In-memory registry of workspaces, keyed by workspace id.
    Workspaces idle for longer than the cookie lifetime are dropped.
    """

    def __init__(self, max_idle_seconds: Optional[float] = None):
        self._workspaces: Dict[str, StoryWorkspace] = {}
        self.max_idle_seconds = max_idle_seconds

    def create(self) -> StoryWorkspace:
        self.evict_idle()
        workspace = StoryWorkspace()
        self._workspaces[workspace.id] = workspace
        return workspace

    def get(self, workspace_id: Optional[str]) -> Optional[StoryWorkspace]:
        if not workspace_id:
            return None
        workspace = self._workspaces.get(workspace_id)
        if workspace is not None:
            workspace.last_seen = time.monotonic()
        return workspace

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Drop idle workspaces and their narration audio. Returns how many went."""
        max_idle = self.max_idle_seconds or settings.WORKSPACE_EXPIRE_MINUTES * 60
        now = time.monotonic() if now is None else now
        idle = [w for w in self._workspaces.values() if now - w.last_seen > max_idle]
        for workspace in idle:
            workspace.narration.stop()
            del self._workspaces[workspace.id]
        return len(idle)

    def clear(self):
        self._workspaces.clear()

    def __len__(self) -> int:
        return len(self._workspaces)


workspaces = WorkspaceStore()
