"""
Sequential narration of a story.

The browser plays one chapter at a time: it asks for the next chapter,
plays the returned audio to the end, waits for the pause and asks again.
This queue picks the chapter and voice for each request and drops audio
that finished synthesizing after playback was stopped.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from app.core.config import settings
from app.agents.speech.text_to_speech import delete_audio

CHAPTER_SPLIT_PATTERN = re.compile(r"\n\n(?=第.*章)")


def split_chapters(story: str) -> List[str]:
    """Split the story at each blank line followed by a `第…章` heading."""
    if not story:
        return []
    return CHAPTER_SPLIT_PATTERN.split(story)


def voice_for_chapter(index: int) -> str:
    """Even chapters (0-based) get the female narrator, odd ones the male narrator."""
    return settings.VOICE_FEMALE if index % 2 == 0 else settings.VOICE_MALE


@dataclass
class NarrationStep:
    chapter_index: int  # 1-based
    total_chapters: int
    voice: str
    audio_url: str
    pause_ms: int


class NarrationQueue:
    def __init__(self, discard: Callable[[str], None] = delete_audio):
        self.discard = discard
        self.audio_urls: List[str] = []
        self.chapters: List[str] = []
        self.position = 0
        self.is_playing = False
        self.playing_chapter: Optional[int] = None
        self.session = 0

    def start(self, story: str) -> bool:
        self.clear_audio()
        chapters = split_chapters(story)
        if not chapters:
            return False
        self.session += 1
        self.chapters = chapters
        self.position = 0
        self.is_playing = True
        self.playing_chapter = None
        return True

    def stop(self):
        self.session += 1
        self.is_playing = False
        self.playing_chapter = None
        self.clear_audio()

    def clear_audio(self):
        """Delete every audio file this queue produced."""
        for url in self.audio_urls:
            self.discard(url)
        self.audio_urls = []

    def advance(self, synthesize: Callable[[str, str, int], str]) -> Optional[NarrationStep]:
        """
        Synthesize the next chapter with `synthesize(text, voice, chapter_number)`.
        Returns None once the queue is exhausted or playback was stopped.
        """
        if not self.is_playing:
            return None
        if self.position >= len(self.chapters):
            self.stop()
            return None

        session = self.session
        index = self.position
        self.playing_chapter = index + 1
        voice = voice_for_chapter(index)
        text = self.chapters[index][:settings.NARRATION_CHAR_LIMIT]

        audio_url = synthesize(text, voice, index + 1)

        # Stopped (or restarted) while the audio was being produced
        if session != self.session or not self.is_playing:
            self.discard(audio_url)
            return None

        self.audio_urls.append(audio_url)

        self.position += 1
        has_more = self.position < len(self.chapters)
        return NarrationStep(
            chapter_index=index + 1,
            total_chapters=len(self.chapters),
            voice=voice,
            audio_url=audio_url,
            pause_ms=settings.NARRATION_PAUSE_MS if has_more else 0,
        )

    def to_dict(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "playing_chapter": self.playing_chapter,
            "total_chapters": len(self.chapters) if self.is_playing else 0,
        }
