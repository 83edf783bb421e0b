from functools import partial
from typing import Optional, Tuple
from fastapi import APIRouter, Request, Response, HTTPException, Depends, UploadFile, File
from fastapi.responses import FileResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from pathlib import Path
import base64

from app.core.config import settings
from app.core.logger import get_logger, log_error, log_story_event
from app.core.security import create_workspace_token, read_workspace_token
from app.core.state import StoryWorkspace, workspaces
from app.agents.context_loader import get_user_friendly_error
from app.agents.narrative.analyst import analyze_and_plan
from app.agents.narrative.writer import write_next_chapter, DEFAULT_GUIDANCE
from app.agents.assistant.assistant import chat_with_story
from app.agents.speech.text_to_speech import narrate_to_file, audio_path, AUDIO_URL_PREFIX
from app.web.schemas import BlueprintUpdate, ChatRequest, ChatResponse, NarrationResponse

# Setup Templates
BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

logger = get_logger("web")
router = APIRouter()

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]


# --- Workspace cookie ---

def lookup_workspace(request: Request) -> Optional[StoryWorkspace]:
    """The workspace named by the signed cookie, without creating one."""
    token = request.cookies.get(settings.WORKSPACE_COOKIE_NAME)
    return workspaces.get(read_workspace_token(token)) if token else None


def resolve_workspace(request: Request) -> Tuple[StoryWorkspace, Optional[str]]:
    """
    Find the caller's workspace from the signed cookie.
    Returns the workspace and, when a new one had to be created, the token to set.
    """
    workspace = lookup_workspace(request)
    if workspace is not None:
        return workspace, None

    workspace = workspaces.create()
    logger.info(f"New workspace {workspace.id[:8]}")
    return workspace, create_workspace_token(workspace.id)


def set_workspace_cookie(response: Response, token: str):
    response.set_cookie(
        key=settings.WORKSPACE_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=settings.WORKSPACE_EXPIRE_MINUTES * 60,
    )


def get_workspace(request: Request, response: Response) -> StoryWorkspace:
    workspace, new_token = resolve_workspace(request)
    if new_token:
        set_workspace_cookie(response, new_token)
    return workspace


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    header, _, payload = data_url.partition(",")
    mime_type = header[len("data:"):].split(";")[0] or "application/octet-stream"
    return mime_type, base64.b64decode(payload)


# --- Page ---

@router.get("/")
async def home(request: Request):
    workspace, new_token = resolve_workspace(request)
    response = templates.TemplateResponse(request, "index.html", {
        "story": workspace.to_dict(),
        "messages": workspace.messages,
        "project_name": settings.PROJECT_NAME,
    })
    if new_token:
        set_workspace_cookie(response, new_token)
    return response


# --- Story ---

@router.get("/api/story")
async def get_story(workspace: StoryWorkspace = Depends(get_workspace)):
    return workspace.to_dict()


@router.post("/api/story/image")
def upload_image(
    image: UploadFile = File(...),
    workspace: StoryWorkspace = Depends(get_workspace)
):
    """
    Upload the inspiration image, then analyse it and draft the blueprint
    and first chapter. Replaces any story in progress.
    """
    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail=f"不支持的图片类型: {image.content_type}")

    content = image.file.read(settings.MAX_IMAGE_BYTES + 1)
    if not content:
        raise HTTPException(status_code=400, detail="图片为空")
    if len(content) > settings.MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="图片过大")

    data_url = f"data:{image.content_type};base64,{base64.b64encode(content).decode('ascii')}"
    token = workspace.begin_upload(data_url)
    log_story_event(workspace.id, "Image uploaded", f"{image.content_type} {len(content)} bytes")

    try:
        result = analyze_and_plan(data_url)
    except Exception as e:
        log_error("Initial analysis failed", e, {"workspace": workspace.id[:8]})
        message = get_user_friendly_error("ANALYSIS_FAILED")
        workspace.fail_upload(token, message)
        raise HTTPException(status_code=502, detail=message)

    workspace.finish_upload(token, result.analysis, result.blueprint, result.first_chapter)
    log_story_event(workspace.id, "Blueprint ready", f"{len(result.first_chapter)} chars in chapter 1")
    return workspace.to_dict()


@router.get("/api/story/image")
async def get_image(workspace: StoryWorkspace = Depends(get_workspace)):
    if not workspace.state.image:
        raise HTTPException(status_code=404, detail="No image uploaded")
    mime_type, content = decode_data_url(workspace.state.image)
    return Response(content=content, media_type=mime_type)


@router.post("/api/story/chapter")
def generate_next_chapter(workspace: StoryWorkspace = Depends(get_workspace)):
    """Write the next chapter, steered by the latest assistant guidance."""
    state = workspace.state

    if workspace.is_generating or state.is_loading:
        raise HTTPException(status_code=409, detail="章节正在生成中")
    if not state.blueprint:
        raise HTTPException(status_code=400, detail="请先上传图片以生成全书蓝图")
    if state.current_chapter >= settings.MAX_CHAPTERS:
        raise HTTPException(status_code=400, detail="全书章节已经完成")

    chapter_number = state.current_chapter + 1
    guidance = workspace.guidance or DEFAULT_GUIDANCE
    token = workspace.begin_chapter()
    log_story_event(workspace.id, f"Writing chapter {chapter_number}", "guided" if workspace.guidance else "default guidance")

    try:
        text = write_next_chapter(state.story, state.blueprint, chapter_number, state.image, guidance)
    except Exception as e:
        log_error("Chapter generation failed", e, {"workspace": workspace.id[:8], "chapter": chapter_number})
        message = get_user_friendly_error("CHAPTER_FAILED")
        workspace.fail_chapter(token, message)
        raise HTTPException(status_code=502, detail=message)

    committed = workspace.commit_chapter(token, chapter_number, text)
    if committed:
        log_story_event(workspace.id, f"Chapter {chapter_number} committed", f"{len(text)} chars")
    else:
        log_story_event(workspace.id, f"Chapter {chapter_number} discarded", "generation stopped")

    return {**workspace.to_dict(), "committed": committed}


@router.post("/api/story/stop")
async def stop_generation(workspace: StoryWorkspace = Depends(get_workspace)):
    workspace.stop_generation()
    log_story_event(workspace.id, "Generation stopped")
    return workspace.to_dict()


@router.put("/api/story/blueprint")
async def update_blueprint(payload: BlueprintUpdate, workspace: StoryWorkspace = Depends(get_workspace)):
    if not workspace.state.blueprint:
        raise HTTPException(status_code=400, detail="尚未生成全书蓝图")
    workspace.update_blueprint(payload.blueprint)
    log_story_event(workspace.id, "Blueprint edited", f"{len(payload.blueprint)} chars")
    return workspace.to_dict()


@router.delete("/api/story/error")
async def dismiss_error(workspace: StoryWorkspace = Depends(get_workspace)):
    workspace.dismiss_error()
    return workspace.to_dict()


@router.get("/api/story/export")
async def export_story(request: Request):
    workspace = lookup_workspace(request)
    if workspace is None or not workspace.state.story:
        raise HTTPException(status_code=404, detail="No story to export")
    return PlainTextResponse(
        workspace.state.story,
        headers={"Content-Disposition": 'attachment; filename="moying-story.txt"'},
    )


# --- Creative assistant ---

@router.get("/api/chat", response_model=ChatResponse)
async def get_chat(workspace: StoryWorkspace = Depends(get_workspace)):
    return ChatResponse(
        messages=[{"role": m.role, "content": m.content} for m in workspace.messages],
        guidance_synced=bool(workspace.guidance),
    )


@router.post("/api/chat", response_model=ChatResponse)
def send_chat(payload: ChatRequest, workspace: StoryWorkspace = Depends(get_workspace)):
    """
    One turn with the creative assistant. A successful reply becomes the
    guidance for the next chapter.
    """
    message = payload.message
    if not message.strip():
        raise HTTPException(status_code=400, detail="消息不能为空")
    if workspace.is_typing:
        raise HTTPException(status_code=409, detail="助手正在回复")

    history = workspace.history()
    workspace.add_message("user", message)
    workspace.is_typing = True

    reply = None
    try:
        reply = chat_with_story(history, message, workspace.state.image)
    except Exception as e:
        log_error("Assistant turn failed", e, {"workspace": workspace.id[:8]})
        workspace.add_message("assistant", get_user_friendly_error("ASSISTANT_FAILED"))
    finally:
        workspace.is_typing = False

    if reply is not None:
        workspace.add_message("assistant", reply)
        workspace.guidance = reply

    return ChatResponse(
        messages=[{"role": m.role, "content": m.content} for m in workspace.messages],
        reply=reply,
        guidance_synced=bool(workspace.guidance),
    )


# --- Narration ---

@router.post("/api/narration/start", response_model=NarrationResponse)
async def start_narration(workspace: StoryWorkspace = Depends(get_workspace)):
    """Start reading the whole story aloud; calling it while playing stops playback."""
    narration = workspace.narration
    if narration.is_playing:
        narration.stop()
        log_story_event(workspace.id, "Narration stopped")
        return NarrationResponse(done=True, is_playing=False)

    if not narration.start(workspace.state.story):
        return NarrationResponse(done=True, is_playing=False)

    log_story_event(workspace.id, "Narration started", f"{len(narration.chapters)} chapters")
    return NarrationResponse(done=False, is_playing=True, total_chapters=len(narration.chapters))


@router.post("/api/narration/next", response_model=NarrationResponse)
def next_narration(workspace: StoryWorkspace = Depends(get_workspace)):
    narration = workspace.narration
    synthesize = partial(narrate_to_file, prefix=workspace.id[:8])

    try:
        step = narration.advance(synthesize)
    except Exception as e:
        log_error("Narration failed", e, {"workspace": workspace.id[:8], "chapter": narration.playing_chapter})
        narration.stop()
        message = get_user_friendly_error("NARRATION_FAILED")
        workspace.state.error = message
        raise HTTPException(status_code=502, detail=message)

    if step is None:
        return NarrationResponse(done=True, is_playing=narration.is_playing)

    return NarrationResponse(
        done=False,
        is_playing=True,
        chapter_index=step.chapter_index,
        total_chapters=step.total_chapters,
        voice=step.voice,
        audio_url=step.audio_url,
        pause_ms=step.pause_ms,
    )


@router.post("/api/narration/stop", response_model=NarrationResponse)
async def stop_narration(workspace: StoryWorkspace = Depends(get_workspace)):
    workspace.narration.stop()
    return NarrationResponse(done=True, is_playing=False)


@router.get(AUDIO_URL_PREFIX + "{filename}")
async def get_audio(filename: str):
    """Serve a narrated chapter written by the narration queue."""
    path = audio_path(AUDIO_URL_PREFIX + filename)
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="Audio not found")
    return FileResponse(path, media_type="audio/mpeg")
