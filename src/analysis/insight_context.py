"""
Insight context for the external narrative generator.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config.settings import Settings
from analysis.summary_builder import Summary
from analysis.variance_classifier import Alert, Severity
from utils.periods import Period

NO_INSIGHT_MESSAGE = "Não foi possível gerar um insight no momento."
GENERATOR_ERROR_MESSAGE = (
    "Ocorreu um erro ao consultar o assistente. Verifique sua conexão e tente novamente."
)

SYSTEM_INSTRUCTION = """Você é um CFO virtual especialista em análise de resultados.
Analise os dados financeiros fornecidos e responda de forma consultiva e profissional.
Foque em margens, custos e variações significativas. Forneça insights estratégicos baseados nos dados apresentados.

CONTEXTO:
Empresa: {store}
Período: {period}
Departamento: {department}
Visão: {view}

DADOS (JSON):
{data}"""


@dataclass(frozen=True)
class AlertDigest:
    """Compact projection of an alert for the narrative prompt."""
    account: str
    department: str
    real: float
    budget: float
    variation: float

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertDigest":
        return cls(
            account=alert.account_name,
            department=alert.department,
            real=alert.real_value,
            budget=alert.budget_value,
            variation=alert.variation_vs_budget,
        )


@dataclass(frozen=True)
class InsightContext:
    """Pre-aggregated payload handed to the narrative generator."""
    period: str
    summary: Summary
    top_critical: Tuple[AlertDigest, ...] = ()
    top_warning: Tuple[AlertDigest, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period,
            'summary': self.summary.to_dict(),
            'topCritical': [asdict(d) for d in self.top_critical],
            'topWarning': [asdict(d) for d in self.top_warning],
        }

    def to_json(self, max_chars: Optional[int] = 15000) -> str:
        """Serialize, cut at ``max_chars`` characters."""
        text = json.dumps(self.to_dict(), ensure_ascii=False)
        return text[:max_chars] if max_chars else text


def select_top(alerts: Sequence[Alert], severity: Severity, limit: int = 5) -> List[Alert]:
    """First ``limit`` alerts of a severity, from an already ranked list."""
    return [a for a in alerts if a.severity is severity][:limit]


def build_insight_context(period: Period, summary: Summary, alerts: Sequence[Alert],
                          top_n: int = 5) -> InsightContext:
    """
    Package the summary and the worst offenders of a period.

    Does not call the narrative generator.
    """
    return InsightContext(
        period=period.label,
        summary=summary,
        top_critical=tuple(AlertDigest.from_alert(a) for a in select_top(alerts, Severity.CRITICAL, top_n)),
        top_warning=tuple(AlertDigest.from_alert(a) for a in select_top(alerts, Severity.WARNING, top_n)),
    )


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the assistant conversation."""
    role: str  # 'user' or 'model'
    text: str


class NarrativeGenerator(ABC):
    """External free-text generation service."""

    @abstractmethod
    async def generate(self, system_instruction: str, messages: Sequence[ChatMessage]) -> Optional[str]:
        """Return generated text for the conversation."""


class InsightService:
    """Forwards a question plus the insight context to the narrative generator.

    Generator failures never escape: they become a fixed user-facing message.
    """

    def __init__(self, generator: NarrativeGenerator, max_context_chars: int = 15000):
        self.generator = generator
        self.max_context_chars = max_context_chars
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, generator: NarrativeGenerator, settings: Settings) -> "InsightService":
        """Service truncating the context at the configured length."""
        return cls(generator, max_context_chars=settings.get_max_context_chars())

    def build_system_instruction(self, context: InsightContext, store: str = "Consolidado",
                                 department: Optional[str] = None, view: Optional[str] = None) -> str:
        return SYSTEM_INSTRUCTION.format(
            store=store,
            period=context.period,
            department=department or "Consolidado",
            view=view or "DRE",
            data=context.to_json(self.max_context_chars),
        )

    async def ask(self, prompt: str, context: InsightContext,
                  history: Sequence[ChatMessage] = (), store: str = "Consolidado",
                  department: Optional[str] = None, view: Optional[str] = None) -> str:
        """
        Ask the generator about the analysed period.

        Returns:
            Generated text, or a fallback message when the generator fails or
            returns nothing
        """
        messages = list(history) + [ChatMessage(role='user', text=prompt)]
        system_instruction = self.build_system_instruction(context, store, department, view)

        try:
            text = await self.generator.generate(system_instruction, messages)
        except Exception as e:
            self.logger.error(f"Narrative generator failed: {e}", exc_info=True)
            return GENERATOR_ERROR_MESSAGE

        return text or NO_INSIGHT_MESSAGE
