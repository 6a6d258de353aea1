"""
Integration tests for ControllerAnalysisEngine and AnalysisSession.
"""

import asyncio

import pytest

from analysis import ControllerAnalysisEngine, AnalysisSession, AnalysisResult, Severity
from analysis.engine import validate_request
from config.settings import AlertThresholds
from config.account_mapping import Account
from data.models import AnalysisRequest, BudgetAssumption, BudgetAssumptionValue, BudgetMapping
from ledger_fixtures import ACCOUNTS, TENANT, RecordingStore, entry, budget, reference


def overrun_store(**kwargs):
    """March 2024 administrative expense 20% over budget, plus steady revenue."""
    return RecordingStore(
        entries=[
            entry("Despesa Administrativa", 70000, company="Loja A"),
            entry("Despesa Administrativa", 50000, company="Loja B"),
            entry("Despesa Administrativa", 100000, month="FEVEREIRO"),
            entry("Despesa Administrativa", 90000, year=2023),
            entry("Receita Bruta", 500000, company="Loja A", nature="C"),
            entry("Receita Bruta", 490000, company="Loja A", month="FEVEREIRO", nature="C"),
        ],
        **budget({"Despesa Administrativa": 100000, "Receita Bruta": 500000}),
        **kwargs,
    )


class TestValidateRequest:
    """Test cases for request validation."""

    def test_valid_request(self):
        assert validate_request(AnalysisRequest(TENANT, 2024, "março")) == []

    @pytest.mark.parametrize("request_args", [
        ("", 2024, "MARÇO"),
        (None, 2024, "MARÇO"),
        (TENANT, None, "MARÇO"),
        (TENANT, 24, "MARÇO"),
        (TENANT, "20x4", "MARÇO"),
        (TENANT, 2024, ""),
        (TENANT, 2024, "MARCH"),
    ])
    def test_invalid_requests(self, request_args):
        assert validate_request(AnalysisRequest(*request_args))


class TestControllerAnalysisEngine:
    """Test cases for the analysis pipeline."""

    @pytest.mark.asyncio
    async def test_invalid_input_fetches_nothing(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)
        request = AnalysisRequest("", 2024, "MARÇO")

        result = await engine.analyze(request, reference())

        assert result == AnalysisResult(request=request)
        assert result.alerts == ()
        assert result.error is None
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_expense_overrun_is_critical(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)

        result = await engine.analyze(AnalysisRequest(TENANT, 2024, "MARÇO"), reference())

        assert result.error is None
        assert not result.is_loading
        worst = result.alerts[0]
        assert worst.account_name == "Despesa Administrativa"
        assert worst.real_value == pytest.approx(120000)
        assert worst.variation_vs_budget == pytest.approx(20)
        assert worst.variation_vs_previous_period == pytest.approx(20)
        assert worst.severity is Severity.CRITICAL
        assert worst.account_code == "4.1"
        assert {b.company_name: b.value for b in worst.company_breakdown} == {"Loja A": 70000, "Loja B": 50000}

        assert result.summary.critical_count == 1
        assert result.summary.total_accounts == 2
        assert result.summary.overall_health is Severity.CRITICAL
        assert [a.account_name for a in result.top_critical] == ["Despesa Administrativa"]
        assert result.ai_context.period == "MARÇO/2024"
        assert result.ai_context.top_critical[0].variation == pytest.approx(20)

    @pytest.mark.asyncio
    async def test_repeated_analysis_is_identical(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)
        request = AnalysisRequest(TENANT, 2024, "MARÇO")

        first = await engine.analyze(request, reference())
        second = await engine.analyze(request, reference())

        assert first == second

    @pytest.mark.asyncio
    async def test_source_failures_reported_with_partial_results(self, settings):
        store = overrun_store(fail_periods={(2023, "MARÇO")}, fail_budget=True)
        engine = ControllerAnalysisEngine(settings, store, store, store)

        result = await engine.analyze(AnalysisRequest(TENANT, 2024, "MARÇO"), reference())

        assert "timeout fetching MARÇO/2023" in result.error
        assert "budget: connection refused" in result.error
        assert "; " in result.error
        assert len(result.alerts) == 2
        assert all(a.budget_value == 0 for a in result.alerts)
        assert all(a.same_month_last_year_value == 0 for a in result.alerts)

    @pytest.mark.asyncio
    async def test_company_filter_restricts_query(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)

        result = await engine.analyze(AnalysisRequest(TENANT, 2024, "MARÇO", company_filter=("c2",)), reference())

        assert all(call[3] == ("Loja B", "c2") for call in store.calls)
        assert [a.real_value for a in result.alerts] == [50000]

    @pytest.mark.asyncio
    async def test_threshold_override(self, settings):
        store = RecordingStore(
            entries=[entry("Despesa Administrativa", 108)],
            **budget({"Despesa Administrativa": 100}),
        )
        engine = ControllerAnalysisEngine(settings, store, store, store)
        request = AnalysisRequest(TENANT, 2024, "MARÇO")

        default = await engine.analyze(request, reference())
        strict = await engine.analyze(request, reference(), AlertThresholds(2, 7))

        assert default.alerts[0].severity is Severity.WARNING
        assert strict.alerts[0].severity is Severity.CRITICAL

    @pytest.mark.asyncio
    async def test_no_companies_yields_empty_result(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)

        result = await engine.analyze(AnalysisRequest(TENANT, 2024, "MARÇO", company_filter=("h1",)), reference())

        assert result.alerts == ()
        assert result.error is None
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_non_numeric_year_returns_empty_result(self, settings):
        store = overrun_store()
        engine = ControllerAnalysisEngine(settings, store, store, store)
        request = AnalysisRequest(TENANT, "20x4", "MARÇO")

        result = await engine.analyze(request, reference())

        assert result == AnalysisResult(request=request)
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_mapping_on_same_named_chart_line(self, settings):
        store = RecordingStore(
            entries=[entry("Despesa Administrativa", 120000)],
            assumptions=[
                BudgetAssumption(id="p1", name="Orcamento ADM"),
                BudgetAssumption(id="p2", name="Despesa Administrativa"),
            ],
            assumption_values=[
                BudgetAssumptionValue("p1", 2024, "MARÇO", 100000),
                BudgetAssumptionValue("p2", 2024, "MARÇO", 999),
            ],
            mappings=[BudgetMapping(id="m1", assumption_id="p1", account_id="a-adm-2", target_type="conta_dre")],
        )
        chart = list(ACCOUNTS) + [Account(id="a-adm-2", name="Despesa Administrativa", code="4.1.2")]
        engine = ControllerAnalysisEngine(settings, store, store, store)

        result = await engine.analyze(AnalysisRequest(TENANT, 2024, "MARÇO"), reference(chart))

        alert = result.alerts[0]
        assert alert.account_code == "4.1"
        assert alert.budget_value == 100000
        assert alert.variation_vs_budget == pytest.approx(20)


class TestAnalysisSession:
    """Test cases for last-request-wins publishing."""

    @staticmethod
    async def _until(predicate):
        for _ in range(100):
            if predicate():
                return
            await asyncio.sleep(0)
        raise AssertionError("condition not reached")

    @pytest.mark.asyncio
    async def test_stale_result_is_not_published(self, settings):
        gate = asyncio.Event()
        store = overrun_store(gates={"org-slow": gate})
        session = AnalysisSession(ControllerAnalysisEngine(settings, store, store, store))

        slow = asyncio.ensure_future(session.refresh(AnalysisRequest("org-slow", 2024, "MARÇO"), reference()))
        await self._until(lambda: len(store.calls) == 3)
        assert session.state.is_loading

        latest = await session.refresh(AnalysisRequest(TENANT, 2024, "MARÇO"), reference())
        assert session.state is latest

        gate.set()
        stale = await slow

        assert stale.request.tenant_id == "org-slow"
        assert session.state is latest
        assert session.state.request.tenant_id == TENANT
        assert not session.state.is_loading

    @pytest.mark.asyncio
    async def test_submit_cancels_previous_request(self, settings):
        gate = asyncio.Event()
        store = overrun_store(gates={"org-slow": gate})
        session = AnalysisSession(ControllerAnalysisEngine(settings, store, store, store))

        first = session.submit(AnalysisRequest("org-slow", 2024, "MARÇO"), reference())
        await self._until(lambda: len(store.calls) == 3)
        session.submit(AnalysisRequest(TENANT, 2024, "MARÇO"), reference())

        state = await session.wait()

        assert first.cancelled()
        assert state.request.tenant_id == TENANT
        assert state.alerts[0].severity is Severity.CRITICAL

    @pytest.mark.asyncio
    async def test_failed_refresh_publishes_error_and_stops_loading(self, settings):
        class FailingEngine(ControllerAnalysisEngine):
            async def analyze(self, request, reference, thresholds=None):
                raise RuntimeError("registry unavailable")

        store = overrun_store()
        session = AnalysisSession(FailingEngine(settings, store, store, store))
        request = AnalysisRequest(TENANT, 2024, "MARÇO")

        result = await session.refresh(request, reference())

        assert result.error == "registry unavailable"
        assert session.state is result
        assert not session.state.is_loading
        assert session.state.alerts == ()

    @pytest.mark.asyncio
    async def test_invalid_year_through_session(self, settings):
        store = overrun_store()
        session = AnalysisSession(ControllerAnalysisEngine(settings, store, store, store))

        state = await session.refresh(AnalysisRequest(TENANT, "20x4", "MARÇO"), reference())

        assert not state.is_loading
        assert state.alerts == ()
        assert store.calls == []
