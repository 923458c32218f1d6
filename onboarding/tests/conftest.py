"""
Shared fixtures for the onboarding test suite.

Generation is never real: ``ScriptedGenerationClient`` replays canned
responses and records every prompt it was given.
"""

import json
from typing import Any, List, Optional

import pytest

from onboarding.assessments.generation import GenerationClient
from onboarding.assessments.memory_repository import create_memory_store
from onboarding.assessments.models import ModuleDescriptor


class ScriptedGenerationClient(GenerationClient):
    """
    Generation client returning scripted responses in order.

    A response may be a string, a JSON-serializable object, an exception
    instance (raised) or a callable taking the prompt.
    """

    def __init__(self, *responses: Any, default: Optional[Any] = None):
        self.responses: List[Any] = list(responses)
        self.default = default
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise AssertionError(f"Unexpected generation call #{len(self.prompts)}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(prompt)
        if not isinstance(response, str):
            response = json.dumps(response)
        return response


def mcq(text: str, correct: int = 0, options: Optional[List[str]] = None) -> dict:
    return {
        "type": "mcq",
        "question": text,
        "options": options or ["A", "B", "C", "D"],
        "correctIndex": correct,
        "explanation": f"Because of {text}",
    }


def quiz_payload(count: int = 3, prefix: str = "Q") -> List[dict]:
    return [mcq(f"{prefix}{i + 1}?", correct=i % 4) for i in range(count)]


@pytest.fixture
def descriptors():
    return [
        ModuleDescriptor(
            id="m1",
            title="Security Basics",
            topics=("passwords", "phishing"),
            objectives=("Spot phishing", "Use a password manager"),
            summary="Company security policy",
            company_id="c1",
        ),
        ModuleDescriptor(
            id="m2",
            title="Expense Policy",
            topics=("receipts", "limits"),
            objectives=("File an expense report",),
            summary="How to claim expenses",
            company_id="c1",
        ),
        ModuleDescriptor(
            id="m9",
            title="Other Company Module",
            topics=("x",),
            objectives=("y",),
            company_id="c2",
        ),
    ]


@pytest.fixture
def store(descriptors):
    return create_memory_store(descriptors)

