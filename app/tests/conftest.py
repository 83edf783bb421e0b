import pytest
from types import SimpleNamespace
from fastapi.testclient import TestClient
from app.main import app
from app.core.config import settings
from app.core.security import read_workspace_token
from app.core.state import workspaces
from app.agents import clients

from app.tests.samples import SAMPLE_PLAN_RESPONSE, PNG_BYTES


class FakeCompletions:
    """Stands in for groq's chat.completions; replies are served in order."""

    def __init__(self):
        self.replies = []
        self.calls = []
        self.error = None

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        content = self.replies.pop(0) if self.replies else ""
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeGroq:
    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)


class FakeTextToSpeech:
    def __init__(self):
        self.calls = []
        self.error = None

    def convert(self, text, voice_id, model_id):
        self.calls.append({"text": text, "voice_id": voice_id, "model_id": model_id})
        if self.error:
            raise self.error
        return iter([b"ID3", b"fake-audio"])


class FakeElevenLabs:
    def __init__(self):
        self.text_to_speech = FakeTextToSpeech()


@pytest.fixture(autouse=True)
def clear_workspaces():
    workspaces.clear()
    yield
    workspaces.clear()


@pytest.fixture(name="fake_groq")
def fake_groq_fixture(monkeypatch):
    fake = FakeGroq()
    monkeypatch.setattr(clients, "_groq_client", fake)
    return fake.completions


@pytest.fixture(name="fake_tts")
def fake_tts_fixture(monkeypatch, tmp_path):
    fake = FakeElevenLabs()
    monkeypatch.setattr(clients, "_elevenlabs_client", fake)
    monkeypatch.setattr(settings, "AUDIO_DIR", tmp_path)
    return fake.text_to_speech


@pytest.fixture(name="client")
def client_fixture():
    with TestClient(app) as client:
        yield client


@pytest.fixture(name="current_workspace")
def current_workspace_fixture(client: TestClient):
    """Returns a callable resolving the workspace bound to the client's cookie."""
    def _current():
        token = client.cookies.get(settings.WORKSPACE_COOKIE_NAME)
        return workspaces.get(read_workspace_token(token))
    return _current


@pytest.fixture(name="uploaded_client")
def uploaded_client_fixture(client: TestClient, fake_groq):
    """Client whose workspace already holds the analysis, blueprint and chapter 1."""
    fake_groq.replies.append(SAMPLE_PLAN_RESPONSE)
    response = client.post("/api/story/image", files={"image": ("scene.png", PNG_BYTES, "image/png")})
    assert response.status_code == 200
    return client
