"""
Tests for the AI treasury advisor

No real API calls: the Gemini model is replaced by a fake exposing
``generate_content_async``.
"""

import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from treasury.agents import (
    ERROR_TEXT,
    NO_ANSWER_TEXT,
    TreasuryAdvisor,
    build_prompt,
    build_system_instruction,
)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class BlockedResponse:
    """Mimics a response whose candidates were all blocked."""

    @property
    def text(self):
        raise ValueError("no valid parts")


class FakeModel:
    """Plays back a script of responses or exceptions."""

    def __init__(self, *script):
        self.script = list(script)
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def make_advisor(model, max_attempts=3):
    return TreasuryAdvisor(model=model, max_attempts=max_attempts, retry_wait_seconds=0)


SNAPSHOT = {"global_finance": {"current_balance": 9500, "currency": "FCFA"}}


class TestPrompts:
    """Prompt construction."""

    def test_system_instruction_carries_rules(self):
        text = build_system_instruction("Chorale Saint Paul", "FCFA")
        assert "Chorale Saint Paul" in text
        assert "5000 FCFA" in text
        assert "2500 FCFA" in text
        assert "registration_debts_list" in text

    def test_prompt_embeds_snapshot(self):
        prompt = build_prompt("Quel est le solde ?", {"note": "Trésorerie"})
        assert "Quel est le solde ?" in prompt
        assert '"note": "Trésorerie"' in prompt


class TestAsk:
    """Answering questions."""

    def test_returns_stripped_answer(self):
        model = FakeModel(FakeResponse("  Le solde est de 9500 FCFA.\n"))
        answer = asyncio.run(make_advisor(model).ask("Solde ?", SNAPSHOT))

        assert answer == "Le solde est de 9500 FCFA."
        assert "9500" in model.prompts[0]
        assert "Solde ?" in model.prompts[0]

    def test_empty_answer(self):
        model = FakeModel(FakeResponse("   "))
        assert asyncio.run(make_advisor(model).ask("?", SNAPSHOT)) == NO_ANSWER_TEXT

    def test_blocked_answer(self):
        model = FakeModel(BlockedResponse())
        assert asyncio.run(make_advisor(model).ask("?", SNAPSHOT)) == NO_ANSWER_TEXT

    def test_unexpected_error_is_not_retried(self):
        model = FakeModel(RuntimeError("boom"), FakeResponse("unused"))
        answer = asyncio.run(make_advisor(model).ask("?", SNAPSHOT))

        assert answer == ERROR_TEXT
        assert len(model.prompts) == 1

    def test_transient_error_is_retried(self):
        model = FakeModel(
            google_exceptions.ServiceUnavailable("overloaded"),
            FakeResponse("Réponse"),
        )
        answer = asyncio.run(make_advisor(model).ask("?", SNAPSHOT))

        assert answer == "Réponse"
        assert len(model.prompts) == 2

    def test_persistent_transient_error(self):
        model = FakeModel(*[google_exceptions.ResourceExhausted("quota")] * 3)
        answer = asyncio.run(make_advisor(model, max_attempts=3).ask("?", SNAPSHOT))

        assert answer == ERROR_TEXT
        assert len(model.prompts) == 3


class TestConstruction:
    def test_requires_settings_or_model(self):
        with pytest.raises(ValueError):
            TreasuryAdvisor()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
