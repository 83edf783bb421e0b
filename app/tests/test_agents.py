"""
Agent Tests
===========
Tests for prompt construction and response parsing of the analyst and writer.
"""
import pytest
from app.core.config import settings
from app.agents.narrative.analyst import (
    parse_plan_response,
    build_analysis_prompt,
    analyze_and_plan,
    DEFAULT_ANALYSIS,
    DEFAULT_BLUEPRINT,
)
from app.agents.narrative.writer import recent_story, build_chapter_prompt, write_next_chapter
from app.tests.samples import SAMPLE_PLAN_RESPONSE


class TestPlanParsing:
    """Test extraction of analysis, blueprint and first chapter."""

    def test_all_sections_present(self):
        result = parse_plan_response(SAMPLE_PLAN_RESPONSE)
        assert result.analysis == "雨夜的霓虹倒映在积水里，孤独而温柔。"
        assert result.blueprint.startswith("第一章 雨夜来客")
        assert result.blueprint.endswith("第六章 黎明")
        assert result.first_chapter.startswith("第 1 章：雨夜来客")
        assert result.first_chapter.endswith("她在街角停下脚步。")

    def test_missing_markers_fall_back(self):
        result = parse_plan_response("只有一段没有标记的文字")
        assert result.analysis == DEFAULT_ANALYSIS
        assert result.blueprint == DEFAULT_BLUEPRINT
        assert result.first_chapter == "只有一段没有标记的文字"

    def test_story_without_analysis(self):
        result = parse_plan_response("大纲：六章\n故事：正文")
        assert result.analysis == DEFAULT_ANALYSIS
        assert result.blueprint == "六章"
        assert result.first_chapter == "正文"

    def test_empty_response(self):
        result = parse_plan_response("")
        assert result.first_chapter == ""

    def test_prompt_asks_for_six_chapters(self):
        prompt = build_analysis_prompt()
        assert "6 个章节" in prompt
        assert "分析：" in prompt and "大纲：" in prompt and "故事：" in prompt


class TestAnalyzeAndPlan:

    def test_sends_image_then_prompt(self, fake_groq):
        fake_groq.replies.append(SAMPLE_PLAN_RESPONSE)
        result = analyze_and_plan("data:image/jpeg;base64,AAAA")

        call = fake_groq.calls[0]
        content = call["messages"][0]["content"]
        assert content[0]["image_url"]["url"] == "data:image/jpeg;base64,AAAA"
        assert content[1]["text"] == build_analysis_prompt()
        assert call["model"] == settings.STORY_MODEL
        assert result.analysis.startswith("雨夜")

    def test_errors_are_wrapped(self, fake_groq):
        fake_groq.error = ConnectionError("boom")
        with pytest.raises(RuntimeError, match="Analyst Error"):
            analyze_and_plan("data:image/jpeg;base64,AAAA")


class TestChapterPrompt:

    def test_recent_story_keeps_the_tail(self):
        story = "甲" * 100 + "乙" * settings.STORY_TAIL_CHARS
        assert recent_story(story) == "乙" * settings.STORY_TAIL_CHARS
        assert recent_story("短") == "短"

    def test_prompt_contains_all_inputs(self):
        prompt = build_chapter_prompt("前文", "蓝图", 3, "加入反转")
        assert '"加入反转"' in prompt
        assert '"蓝图"' in prompt
        assert '"前文"' in prompt
        assert "请撰写第 3 章" in prompt
        assert "以“第 3 章：[标题]”作为开头" in prompt

    def test_quotes_in_inputs_cannot_close_the_prompt_quotes(self):
        prompt = build_chapter_prompt('他说"走吧"', "蓝图", 2, "提示")
        assert '他说“走吧“' in prompt


class TestWriteNextChapter:

    def test_image_is_optional(self, fake_groq):
        fake_groq.replies.append("第 2 章：无图")
        text = write_next_chapter("前文", "蓝图", 2, None, "提示")

        content = fake_groq.calls[0]["messages"][0]["content"]
        assert len(content) == 1
        assert text == "第 2 章：无图"

    def test_empty_reply(self, fake_groq):
        assert write_next_chapter("前文", "蓝图", 2, "data:image/png;base64,AAAA", "提示") == ""

    def test_errors_are_wrapped(self, fake_groq):
        fake_groq.error = TimeoutError("slow")
        with pytest.raises(RuntimeError, match="Writer Error"):
            write_next_chapter("前文", "蓝图", 2, None, "提示")
