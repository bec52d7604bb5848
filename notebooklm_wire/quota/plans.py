"""NotebookLM subscription plans and their published limits."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    STANDARD = "standard"
    PLUS = "plus"
    PRO = "pro"
    ULTRA = "ultra"


class PlanLimits(BaseModel):
    """Ceilings for one plan.

    Static ceilings never reset; daily ceilings use a rolling 24h window and
    deep research a rolling 30-day window.
    """

    model_config = ConfigDict(frozen=True)

    # Static
    notebooks: int = Field(..., ge=0)
    sources_per_notebook: int = Field(..., ge=0)
    words_per_source: int = Field(..., ge=0)
    file_size_mb: int = Field(..., ge=0)

    # Daily
    chats_per_day: int = Field(..., ge=0)
    audio_overviews_per_day: int = Field(..., ge=0)
    video_overviews_per_day: int = Field(..., ge=0)
    reports_per_day: int = Field(..., ge=0)
    flashcards_per_day: int = Field(..., ge=0)
    quizzes_per_day: int = Field(..., ge=0)

    # Monthly
    deep_research_per_month: int = Field(..., ge=0)


def _limits(
    notebooks: int,
    sources: int,
    chats: int,
    audio: int,
    video: int,
    generated: int,
    deep_research: int,
) -> PlanLimits:
    return PlanLimits(
        notebooks=notebooks,
        sources_per_notebook=sources,
        words_per_source=500_000,
        file_size_mb=200,
        chats_per_day=chats,
        audio_overviews_per_day=audio,
        video_overviews_per_day=video,
        reports_per_day=generated,
        flashcards_per_day=generated,
        quizzes_per_day=generated,
        deep_research_per_month=deep_research,
    )


PLAN_LIMITS: dict[Plan, PlanLimits] = {
    Plan.STANDARD: _limits(100, 50, 50, 3, 3, 10, 10),
    Plan.PLUS: _limits(200, 100, 200, 6, 6, 20, 90),
    Plan.PRO: _limits(500, 300, 500, 20, 20, 100, 600),
    Plan.ULTRA: _limits(500, 600, 5000, 200, 200, 1000, 6000),
}


class WindowKind(str, Enum):
    STATIC = "static"
    PER_SCOPE = "per_scope"
    DAILY = "daily"
    MONTHLY = "monthly"


WINDOW_LENGTH_MS = {
    WindowKind.DAILY: 24 * 60 * 60 * 1000,
    WindowKind.MONTHLY: 30 * 24 * 60 * 60 * 1000,
}


class Operation(str, Enum):
    """Quota-tracked client operations."""

    CREATE_NOTEBOOK = "create_notebook"
    ADD_SOURCE = "add_source"
    CHAT = "chat"
    CREATE_AUDIO_OVERVIEW = "create_audio_overview"
    CREATE_VIDEO_OVERVIEW = "create_video_overview"
    CREATE_REPORT = "create_report"
    CREATE_FLASHCARDS = "create_flashcards"
    CREATE_QUIZ = "create_quiz"
    DEEP_RESEARCH = "deep_research"


@dataclass(frozen=True)
class QuotaRule:
    """Which counter an operation consumes and which plan field caps it."""

    resource: str
    window: WindowKind
    limit_field: str
    label: str


QUOTA_RULES: dict[Operation, QuotaRule] = {
    Operation.CREATE_NOTEBOOK: QuotaRule("notebooks", WindowKind.STATIC, "notebooks", "Notebook"),
    Operation.ADD_SOURCE: QuotaRule("sources", WindowKind.PER_SCOPE, "sources_per_notebook", "Source"),
    Operation.CHAT: QuotaRule("chats", WindowKind.DAILY, "chats_per_day", "Daily chat"),
    Operation.CREATE_AUDIO_OVERVIEW: QuotaRule(
        "audio_overviews", WindowKind.DAILY, "audio_overviews_per_day", "Daily audio overview"
    ),
    Operation.CREATE_VIDEO_OVERVIEW: QuotaRule(
        "video_overviews", WindowKind.DAILY, "video_overviews_per_day", "Daily video overview"
    ),
    Operation.CREATE_REPORT: QuotaRule("reports", WindowKind.DAILY, "reports_per_day", "Daily report"),
    Operation.CREATE_FLASHCARDS: QuotaRule(
        "flashcards", WindowKind.DAILY, "flashcards_per_day", "Daily flashcards"
    ),
    Operation.CREATE_QUIZ: QuotaRule("quizzes", WindowKind.DAILY, "quizzes_per_day", "Daily quiz"),
    Operation.DEEP_RESEARCH: QuotaRule(
        "deep_research", WindowKind.MONTHLY, "deep_research_per_month", "Monthly deep research"
    ),
}

RULES_BY_RESOURCE: dict[str, QuotaRule] = {rule.resource: rule for rule in QUOTA_RULES.values()}
