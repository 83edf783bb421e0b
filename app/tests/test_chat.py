"""
Creative Assistant Tests
========================
Tests for the chat turn, message history and guidance sync.
"""
from fastapi.testclient import TestClient
from app.agents.assistant.assistant import build_chat_messages, chat_with_story, FALLBACK_REPLY
from app.agents.context_loader import load_context


class TestChatMessages:
    """Test the chat payload sent to the model."""

    def test_system_persona_comes_first(self):
        messages = build_chat_messages([], "你好", None)
        assert messages[0] == {"role": "system", "content": load_context("assistant")}
        assert messages[-1] == {"role": "user", "content": "你好"}

    def test_history_roles_are_kept_in_order(self):
        history = [
            {"role": "user", "text": "第一问"},
            {"role": "assistant", "text": "第一答"},
        ]
        messages = build_chat_messages(history, "第二问", None)

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[2]["content"] == "第一答"

    def test_image_is_attached_to_new_message(self):
        messages = build_chat_messages([], "看图", "data:image/png;base64,AAAA")
        content = messages[-1]["content"]

        assert content[0] == {"type": "text", "text": "看图"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,AAAA"

    def test_empty_reply_falls_back(self, fake_groq):
        fake_groq.replies.append("")
        assert chat_with_story([], "在吗", None) == FALLBACK_REPLY


class TestChatEndpoint:
    """Test the /api/chat endpoint."""

    def test_empty_history_on_new_workspace(self, client: TestClient):
        data = client.get("/api/chat").json()
        assert data["messages"] == []
        assert data["guidance_synced"] is False

    def test_reply_becomes_guidance(self, client: TestClient, fake_groq, current_workspace):
        fake_groq.replies.append("创作引导：让雨夜成为回忆的钥匙。")
        response = client.post("/api/chat", json={"message": "下一章写什么？"})

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "创作引导：让雨夜成为回忆的钥匙。"
        assert data["guidance_synced"] is True
        assert [m["role"] for m in data["messages"]] == ["user", "assistant"]
        assert current_workspace().guidance == "创作引导：让雨夜成为回忆的钥匙。"

    def test_previous_turns_are_sent_as_history(self, client: TestClient, fake_groq):
        fake_groq.replies.extend(["第一个建议", "第二个建议"])
        client.post("/api/chat", json={"message": "第一问"})
        client.post("/api/chat", json={"message": "第二问"})

        messages = fake_groq.calls[-1]["messages"]
        assert [m["content"] for m in messages[1:3]] == ["第一问", "第一个建议"]
        assert messages[-1]["content"] == "第二问"

    def test_blank_message_is_rejected(self, client: TestClient, fake_groq):
        response = client.post("/api/chat", json={"message": "   "})
        assert response.status_code == 400
        assert fake_groq.calls == []

    def test_failure_adds_apology_without_guidance(self, client: TestClient, fake_groq):
        client.get("/")
        fake_groq.error = ConnectionError("unreachable")
        data = client.post("/api/chat", json={"message": "在吗"}).json()

        assert data["reply"] is None
        assert data["guidance_synced"] is False
        assert data["messages"][-1] == {"role": "assistant", "content": "连接助手时遇到了点问题。"}

    def test_rejected_while_assistant_is_typing(self, client: TestClient, current_workspace):
        client.get("/")
        current_workspace().is_typing = True
        response = client.post("/api/chat", json={"message": "再来"})
        assert response.status_code == 409
