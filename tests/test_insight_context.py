"""
Unit tests for the insight context and InsightService.
"""

import json

import pytest

from analysis.insight_context import (
    InsightService, NarrativeGenerator, ChatMessage, build_insight_context, select_top,
    NO_INSIGHT_MESSAGE, GENERATOR_ERROR_MESSAGE
)
from analysis.summary_builder import Summary
from analysis.variance_classifier import Severity
from config.settings import Settings
from utils.periods import Period
from ledger_fixtures import make_alert


class ScriptedGenerator(NarrativeGenerator):
    """Returns a fixed reply, or raises it when it is an exception."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def generate(self, system_instruction, messages):
        self.calls.append((system_instruction, list(messages)))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.fixture
def ranked_alerts():
    critical = [make_alert(f"Despesa C{i}", Severity.CRITICAL, variation=50 - i) for i in range(7)]
    warning = [make_alert(f"Despesa W{i}", Severity.WARNING, variation=10 - i) for i in range(2)]
    ok = [make_alert("Receita", Severity.OK)]
    return critical + warning + ok


@pytest.fixture
def context(ranked_alerts):
    return build_insight_context(Period(2024, "MARÇO"), Summary(critical_count=7), ranked_alerts)


class TestInsightContext:
    """Test cases for building the insight payload."""

    def test_top_lists_are_bounded_and_ordered(self, ranked_alerts, context):
        assert [d.account for d in context.top_critical] == [f"Despesa C{i}" for i in range(5)]
        assert [d.account for d in context.top_warning] == ["Despesa W0", "Despesa W1"]

    def test_select_top_respects_limit(self, ranked_alerts):
        assert len(select_top(ranked_alerts, Severity.CRITICAL, limit=3)) == 3
        assert select_top(ranked_alerts, Severity.OK)[0].account_name == "Receita"

    def test_payload_shape(self, context):
        payload = json.loads(context.to_json())

        assert payload['period'] == "MARÇO/2024"
        assert payload['summary']['critical_count'] == 7
        assert set(payload['topCritical'][0]) == {"account", "department", "real", "budget", "variation"}
        assert payload['topWarning'][0]['variation'] == 10

    def test_serialization_truncated(self, context):
        assert len(context.to_json(max_chars=40)) == 40
        assert len(context.to_json(max_chars=None)) > 40


class TestInsightService:
    """Test cases for InsightService."""

    @pytest.mark.asyncio
    async def test_forwards_prompt_history_and_context(self, context):
        generator = ScriptedGenerator("Margens sob pressão.")
        service = InsightService(generator)
        history = [ChatMessage("user", "Oi"), ChatMessage("model", "Olá")]

        reply = await service.ask("Por que a despesa subiu?", context, history, store="Loja A")

        assert reply == "Margens sob pressão."
        instruction, messages = generator.calls[0]
        assert "Empresa: Loja A" in instruction
        assert "Período: MARÇO/2024" in instruction
        assert "Departamento: Consolidado" in instruction
        assert "Visão: DRE" in instruction
        assert [m.text for m in messages] == ["Oi", "Olá", "Por que a despesa subiu?"]

    @pytest.mark.asyncio
    async def test_context_truncated_in_instruction(self, context):
        generator = ScriptedGenerator("ok")
        service = InsightService(generator, max_context_chars=20)

        await service.ask("?", context)

        instruction = generator.calls[0][0]
        assert instruction.endswith(context.to_json()[:20])

    @pytest.mark.asyncio
    async def test_generator_failure_returns_fallback(self, context):
        service = InsightService(ScriptedGenerator(ConnectionError("offline")))

        assert await service.ask("?", context) == GENERATOR_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_reply_returns_default_message(self, context):
        assert await InsightService(ScriptedGenerator("")).ask("?", context) == NO_INSIGHT_MESSAGE
        assert await InsightService(ScriptedGenerator(None)).ask("?", context) == NO_INSIGHT_MESSAGE

    @pytest.mark.asyncio
    async def test_context_length_from_settings(self, context, tmp_path):
        (tmp_path / "thresholds.yaml").write_text("insights:\n  max_context_chars: 30\n", encoding="utf-8")
        generator = ScriptedGenerator("ok")
        service = InsightService.from_settings(generator, Settings(config_dir=tmp_path))

        await service.ask("?", context)

        assert service.max_context_chars == 30
        assert generator.calls[0][0].endswith(context.to_json()[:30])
