"""Code-repair and analysis service client.

Both tasks go to a chat model. Repair returns a whole file, which the model
sometimes wraps in Markdown fences; those are stripped before the content is
written back. Analysis uses structured output so the verdict is a field, not
something fished out of prose.
"""

import asyncio
from enum import Enum
import re
from typing import Literal

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field
import structlog

from ..errors import ExternalServiceError

logger = structlog.get_logger()

SERVICE_NAME = "code_repair"

# Error text sent to the model is capped; stack traces can be huge
MAX_ERROR_CHARS = 4000

REPAIR_SYSTEM_PROMPT = (
    "You are an expert code repair agent. You will be given a file content and an "
    "error message. You must output ONLY the fixed file content. Do not include "
    "markdown formatting or explanations."
)

ANALYSIS_SYSTEM_PROMPT = """You are a senior QA engineer reviewing a project before deployment.

You will be given the results of automated checks (readiness, tests) and a sample
of the project's files. Decide whether the project is safe to deploy.

Return:
- verdict: "pass" if the project can be deployed as-is, otherwise "fail"
- summary: two or three sentences explaining the verdict
- findings: concrete problems, each with a severity and, when known, the file path
"""

_LEADING_FENCE = re.compile(r"^\s*```[\w+-]*[ \t]*\n")
_TRAILING_FENCE = re.compile(r"\n```\s*$")


class RepairTask(str, Enum):
    REPAIR = "repair"
    ANALYZE = "analyze"


class RepairRequest(BaseModel):
    """One request to the code-repair service."""

    task: RepairTask = RepairTask.REPAIR
    file_path: str
    error_or_findings: str
    file_content: str


class AnalysisFinding(BaseModel):
    severity: Literal["info", "warning", "error"] = "warning"
    message: str
    file_path: str | None = None


class AnalysisReport(BaseModel):
    """Structured QA verdict returned by the analysis task."""

    verdict: Literal["pass", "fail"]
    summary: str = ""
    findings: list[AnalysisFinding] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.verdict == "pass"


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapped around the whole text."""
    stripped = _LEADING_FENCE.sub("", text, count=1)
    if stripped != text:
        stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped


class CodeRepairClient:
    """Sends repair and analysis requests to a chat model."""

    def __init__(self, llm: BaseChatModel, timeout: float = 120.0):
        self.llm = llm
        self.timeout = timeout

    async def repair(self, request: RepairRequest) -> str:
        """Return the repaired file content.

        Raises:
            ExternalServiceError: On model failure, timeout or an empty reply
        """
        messages = [
            SystemMessage(content=REPAIR_SYSTEM_PROMPT),
            HumanMessage(
                content=(
                    f"File: {request.file_path}\n"
                    f"Error:\n{request.error_or_findings[:MAX_ERROR_CHARS]}\n\n"
                    f"Content:\n{request.file_content}"
                )
            ),
        ]
        response = await self._invoke(self.llm, messages, request)
        content = response.content if isinstance(response.content, str) else ""
        cleaned = strip_code_fences(content)
        if not cleaned.strip():
            raise ExternalServiceError(SERVICE_NAME, "empty repair response")

        logger.info(
            "code_repair_completed",
            file_path=request.file_path,
            content_length=len(cleaned),
        )
        return cleaned

    async def analyze(self, request: RepairRequest) -> AnalysisReport:
        """Return a structured verdict for the given findings."""
        structured = self.llm.with_structured_output(AnalysisReport)
        messages = [
            SystemMessage(content=ANALYSIS_SYSTEM_PROMPT),
            HumanMessage(
                content=(
                    f"Project: {request.file_path}\n\n"
                    f"Automated checks:\n{request.error_or_findings[:MAX_ERROR_CHARS]}\n\n"
                    f"Files:\n{request.file_content}"
                )
            ),
        ]
        report = await self._invoke(structured, messages, request)
        if not isinstance(report, AnalysisReport):
            raise ExternalServiceError(SERVICE_NAME, "analysis returned no structured report")

        logger.info(
            "code_analysis_completed",
            verdict=report.verdict,
            findings=len(report.findings),
        )
        return report

    async def _invoke(self, runnable, messages: list, request: RepairRequest):
        try:
            return await asyncio.wait_for(runnable.ainvoke(messages), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning("code_repair_timeout", task=request.task.value, timeout=self.timeout)
            raise ExternalServiceError(SERVICE_NAME, f"timed out after {self.timeout}s") from e
        except Exception as e:
            logger.warning(
                "code_repair_failed",
                task=request.task.value,
                file_path=request.file_path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(SERVICE_NAME, str(e)) from e
