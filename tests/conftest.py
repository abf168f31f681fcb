"""Shared test fixtures for collabchat."""

import pytest

from collabchat.auth import issue_token
from collabchat.backends.memory import MemoryProjectStore
from collabchat.core import AIResponse, Identity, Project, Session
from collabchat.errors import AIGenerationFailure
from collabchat.provider import CodeGenerator, Sandbox

SECRET = "collabchat-test-secret-0123456789abcdef"
PROJECT_ID = "65f1c2a9e4b0a1b2c3d4e5f6"
OTHER_PROJECT_ID = "65f1c2a9e4b0a1b2c3d4e5f7"

ALICE = Identity(id="u1", email="alice@example.com")
BOB = Identity(id="u2", email="bob@example.com")


class FakeGenerator(CodeGenerator):
    """Returns canned responses (or raises) and records prompts."""

    name = "fake"

    def __init__(self, response=None, error: Exception | None = None):
        self.response = response or AIResponse(text="Hello, how can I help you today?")
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> AIResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class FakeSandbox(Sandbox):
    def __init__(self, fail: bool = False, output=("ok",), exit_codes=()):
        self.fail = fail
        self.output = list(output)
        self.exit_codes = list(exit_codes)
        self.mounted: list[dict] = []
        self.runs: list[list[str]] = []

    def mount(self, file_tree: dict) -> None:
        if self.fail:
            raise OSError("sandbox is not running")
        self.mounted.append(file_tree)

    async def run(self, argv, on_output) -> int:
        if self.fail:
            raise OSError("sandbox is not running")
        self.runs.append(argv)
        for line in self.output:
            on_output(line)
        return self.exit_codes.pop(0) if self.exit_codes else 0


@pytest.fixture
def secret(monkeypatch):
    monkeypatch.setenv("COLLABCHAT_JWT_SECRET", SECRET)
    return SECRET


@pytest.fixture
def project():
    return Project(id=PROJECT_ID, users=["u1", "u2"], name="demo")


@pytest.fixture
def store(project):
    return MemoryProjectStore([project])


@pytest.fixture
def make_token():
    def _make(identity: Identity = ALICE, expires_in: int | None = None) -> str:
        return issue_token(identity, SECRET, expires_in=expires_in)
    return _make


@pytest.fixture
def make_session():
    def _make(identity: Identity = ALICE, room_id: str = PROJECT_ID) -> Session:
        return Session(identity=identity, room_id=room_id)
    return _make


@pytest.fixture
def generator():
    return FakeGenerator(
        AIResponse(
            text="Here is a hello world script",
            file_tree={"hello.py": {"file": {"contents": "print('hello world')\n"}}},
            start_command={"mainItem": "python", "commands": ["hello.py"]},
        )
    )


@pytest.fixture
def failing_generator():
    return FakeGenerator(error=AIGenerationFailure("model unavailable"))


def drain(session: Session) -> list[dict]:
    """Pop every frame queued for ``session``."""
    frames = []
    while not session.outbox.empty():
        frames.append(session.outbox.get_nowait())
    return frames
