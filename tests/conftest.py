"""Shared pytest fixtures for the portfolio RAG test suite."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Sequence

import pytest

from portfolio_rag.errors import EmbeddingFailure, GenerationFailure, ValidationError
from portfolio_rag.vector_store.memory_store import InMemoryVectorStore

# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------

# Each word maps onto one concept axis, so related wording lands close together.
CONCEPTS: Dict[str, Sequence[str]] = {
    "aviation": ("drone", "drones", "autopilot", "flight", "uav", "uavs", "aircraft", "quadrotor", "aerospace", "avionics"),
    "control": ("control", "pid", "controller", "stabilise"),
    "build": ("built", "build", "building", "developed"),
    "software": ("python", "software", "code"),
    "project": ("project", "projects"),
    "quantum": ("quantum", "qubit", "qiskit", "qaoa"),
    "ml": ("neural", "learning", "network", "ai", "machine", "model"),
    "writing": ("blog", "post", "writing", "article"),
}
WORD_TO_AXIS = {word: axis for axis, words in enumerate(CONCEPTS.values()) for word in words}
DIMENSION = len(CONCEPTS) + 1


def concept_vector(text: str) -> List[float]:
    vector = [0.0] * DIMENSION
    for token in re.findall(r"[a-z]+", text.lower()):
        axis = WORD_TO_AXIS.get(token)
        if axis is not None:
            vector[axis] += 1.0
    if not any(vector):
        vector[-1] = 1.0
    return vector


class FakeEmbeddingsClient:
    """Deterministic concept embedder with optional scripted failures."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self.failures_before_success: List[Exception] = []

    def embed_text(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValidationError("Text to embed must not be empty")
        self.calls.append(text)
        if self.failures_before_success:
            raise self.failures_before_success.pop(0)
        for needle, exc in self.fail_on.items():
            if needle in text:
                raise exc
        return concept_vector(text)

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed_text(t) for t in texts]


class FakeLLMClient:
    """Echoes the retrieved context back as the answer and records every call."""

    def __init__(self, answer: str | None = None, error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: List[List[Dict[str, Any]]] = []

    def chat(self, messages: List[Dict[str, Any]]) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        if self.answer is not None:
            return self.answer
        context = messages[-1]["content"].split("---------------------")[1].strip()
        return f"From the portfolio: {context}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def fake_embeddings() -> FakeEmbeddingsClient:
    return FakeEmbeddingsClient()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def failing_llm() -> FakeLLMClient:
    return FakeLLMClient(error=GenerationFailure("upstream 500", provider_name="openai"))


@pytest.fixture
def embedding_error() -> EmbeddingFailure:
    return EmbeddingFailure("connection reset", provider_name="openai")


@pytest.fixture
def autopilot_record() -> Dict[str, Any]:
    return {
        "id": "p1",
        "content": "Built a drone autopilot using Python and PID control",
        "metadata": {"type": "project", "title": "Autopilot"},
    }


@pytest.fixture
def portfolio_records(autopilot_record) -> List[Dict[str, Any]]:
    return [
        autopilot_record,
        {
            "type": "project",
            "slug": "quantum-optimizer",
            "title": "Quantum Optimizer",
            "description": "Hybrid quantum optimizer built with Qiskit and QAOA.",
            "technologies": ["Qiskit", "Python"],
        },
        {
            "type": "blog",
            "slug": "neural-notes",
            "title": "Notes on Neural Networks",
            "excerpt": "A blog post on machine learning.",
            "content": "Neural network training tips from building AI models.",
        },
        {
            "type": "skill",
            "slug": "flight-control",
            "name": "Flight Control",
            "category": "Aerospace",
            "proficiency": "Expert",
            "description": "PID and model-predictive control for UAV flight.",
        },
    ]


@pytest.fixture
def blank_llm() -> FakeLLMClient:
    return FakeLLMClient(answer="   ")
