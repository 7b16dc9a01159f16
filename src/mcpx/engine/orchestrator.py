"""ExecutionEngine — the five-phase intent → result pipeline.

Phases run strictly in order for each request:

1. **Discovery** — match the intent against the tool index.
2. **Synthesis** — generate a wrapper program for the matched tools.
3. **Security** — deny-list validation plus risk assessment; high-risk
   programs go through the approval gate.
4. **Routing** — pick a sandbox backend from the security tier, the target
   language and the caller's preference.
5. **Execution** — run the program, tokenize PII in its output, summarize,
   check the run against recent history for anomalies and audit.

:meth:`ExecutionEngine.execute` never raises: every failure comes back as an
:class:`~mcpx.sandbox.models.ExecutionResult` with ``success=False`` and an
``error_kind``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel, Field

from mcpx.discovery.index import ToolIndex
from mcpx.discovery.matcher import SemanticMatcher
from mcpx.engine.settings import EngineSettings
from mcpx.errors import ApprovalError, EngineError, ErrorKind
from mcpx.results.anomaly import AnomalyDetector
from mcpx.results.audit import AuditLog, AuditSeverity
from mcpx.results.summarizer import estimate_tokens, extract_result, summarize
from mcpx.sandbox.docker_sandbox import DockerSandbox
from mcpx.sandbox.limits import parse_reported_size
from mcpx.sandbox.manager import SandboxManager
from mcpx.sandbox.models import Backend, ExecutionMetrics, ExecutionResult
from mcpx.sandbox.registry import ACTIVE_CONTAINERS, CONTAINER_METRICS
from mcpx.sandbox.supervisor import CleanupSupervisor
from mcpx.security.approval import ApprovalGate
from mcpx.security.gatekeeper import Gatekeeper
from mcpx.security.models import ApprovalRequest, ApprovalStatus, RiskAssessment, RiskLevel, SecurityValidation
from mcpx.security.pii import PIITokenizer
from mcpx.security.risk import RiskAssessor
from mcpx.security.validator import CodeValidator
from mcpx.synthesis.synthesizer import CodeSynthesizer
from mcpx.synthesis.typemap import normalize_language
from mcpx.utils.telemetry import (
    ATTR_BACKEND,
    ATTR_ERROR_KIND,
    ATTR_EXECUTION_MS,
    ATTR_INTENT_LENGTH,
    ATTR_LANGUAGE,
    ATTR_REQUIRES_APPROVAL,
    ATTR_RISK_LEVEL,
    ATTR_RISK_SCORE,
    ATTR_SUCCESS,
    ATTR_TIMEOUT_MS,
    ATTR_TOOL_COUNT,
    ATTR_TOOL_NAMES,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

NO_RELEVANT_TOOLS = "No relevant tools"
SECURITY_VALIDATION_FAILED = "Security validation failed"


class ExecuteOptions(BaseModel):
    """Per-request overrides for :meth:`ExecutionEngine.execute`."""

    timeout_ms: int | None = Field(default=None, gt=0)
    sandbox: Backend | None = Field(default=None, description="Preferred backend.")
    max_tools: int | None = Field(default=None, ge=1)
    approval_wait: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds to wait for an external approval decision when no gatekeeper is set.",
    )


class ExecutionEngine:
    """Composes discovery, synthesis, security, sandboxing and result handling.

    Args:
        settings: Engine settings; defaults apply when omitted.
        index: A prebuilt tool index. When given, :meth:`initialize` does not
            read ``settings.tools_dir``.
        gatekeeper: Decides approval requests inline. Without one, high-risk
            programs wait ``approval_wait`` seconds for an external decision
            through :attr:`approval_gate` and are otherwise refused.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        index: ToolIndex | None = None,
        gatekeeper: Gatekeeper | None = None,
        validator: CodeValidator | None = None,
        sandbox: SandboxManager | None = None,
        audit: AuditLog | None = None,
        docker_client: Any = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._index = index if index is not None else ToolIndex()
        self._prebuilt = index is not None
        self._matcher = SemanticMatcher(self._index, threshold=self._settings.match_threshold)
        self._synthesizer = CodeSynthesizer()
        self._validator = validator or CodeValidator(patterns_file=self._settings.patterns_file)
        self._assessor = RiskAssessor()
        self._gate = ApprovalGate()
        self._gatekeeper = gatekeeper
        self._docker_client = docker_client
        self._sandbox = sandbox or SandboxManager(self._settings.sandbox, docker_client=docker_client)
        self._audit = audit if audit is not None else AuditLog(self._settings.audit_log)
        self._anomalies = AnomalyDetector()
        self._supervisor: CleanupSupervisor | None = None
        self._ready = False

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def index(self) -> ToolIndex:
        return self._index

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def approval_gate(self) -> ApprovalGate:
        return self._gate

    @property
    def supervisor(self) -> CleanupSupervisor | None:
        return self._supervisor

    async def initialize(self) -> None:
        """Build the tool index and start the cleanup supervisor if enabled.

        Raises:
            SchemaError: The tools directory is missing or holds a bad file.
            DuplicateToolError: Two files define the same tool name.
        """
        if self._ready:
            return
        if not self._prebuilt:
            count = await self._index.build_async(self._settings.tools_dir)
            logger.info("Indexed %d tool(s) from %s", count, self._settings.tools_dir)

        cleanup = self._settings.cleanup
        if cleanup.enabled and self._supervisor is None:
            self._supervisor = CleanupSupervisor(
                client=self._docker_client,
                interval_seconds=cleanup.interval_seconds,
                max_age_hours=cleanup.max_age_hours,
                max_cleanup_per_run=cleanup.max_cleanup_per_run,
            )
            self._supervisor.start()
        self._ready = True

    async def shutdown(self) -> None:
        """Stop the supervisor, remove any container still tracked and close the audit file."""
        if self._supervisor is not None:
            await self._supervisor.stop()
            self._supervisor = None
        removed = await DockerSandbox.emergency_cleanup(client=self._docker_client)
        if removed:
            logger.info("Removed %d leftover container(s) on shutdown", removed)
        self._audit.close()
        self._ready = False

    async def execute(
        self,
        intent: str,
        language: str | None = None,
        options: ExecuteOptions | None = None,
    ) -> ExecutionResult:
        """Run *intent* through all five phases. Never raises."""
        opts = options or ExecuteOptions()
        started = time.monotonic()
        with _tracer.start_as_current_span("mcpx.execute") as span:
            span.set_attribute(ATTR_INTENT_LENGTH, len(intent))
            try:
                result = await self._run(intent, language or self._settings.language, opts, span)
            except EngineError as exc:
                logger.warning("Execution failed (%s): %s", exc.kind.value, exc)
                self._audit.error(exc, context="execute")
                result = ExecutionResult.failure(str(exc), kind=exc.kind)
            except Exception as exc:
                logger.exception("Unexpected error while executing intent")
                self._audit.error(exc, context="execute")
                result = ExecutionResult.failure(str(exc) or type(exc).__name__)

            span.set_attribute(ATTR_SUCCESS, result.success)
            span.set_attribute(ATTR_EXECUTION_MS, int((time.monotonic() - started) * 1000))
            if result.error_kind is not None:
                span.set_attribute(ATTR_ERROR_KIND, result.error_kind.value)
        return result

    def stats(self) -> dict[str, Any]:
        return {
            "tools": self._index.stats(),
            "audit": self._audit.stats(),
            "pending_approvals": len(self._gate.pending()),
            "containers": {**CONTAINER_METRICS.model_dump(), "active": len(ACTIVE_CONTAINERS)},
            "supervisor": self._supervisor.status().model_dump() if self._supervisor else None,
            "anomalies": self._anomalies.stats(),
        }

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _run(self, intent: str, language: str, opts: ExecuteOptions, span: Any) -> ExecutionResult:
        lang = normalize_language(language)
        span.set_attribute(ATTR_LANGUAGE, lang)
        await self.initialize()

        # 1. discovery
        limit = opts.max_tools or self._settings.max_tools
        matches = self._matcher.search(intent, limit=limit)
        self._audit.discovery(intent, len(matches), tools=[m.name for m in matches])
        span.set_attribute(ATTR_TOOL_COUNT, len(matches))
        if not matches:
            return ExecutionResult.failure(NO_RELEVANT_TOOLS, kind=ErrorKind.DISCOVERY)
        span.set_attribute(ATTR_TOOL_NAMES, [m.name for m in matches])
        logger.info("Matched %d tool(s): %s", len(matches), ", ".join(m.name for m in matches))

        # 2. synthesis
        program = self._synthesizer.synthesize([m.entry.tool for m in matches], lang, intent)

        # 3. security
        blocked = await self._check_security(program.code, opts, span)
        if blocked is not None:
            return blocked

        # 4 + 5. routing and execution
        config = self._settings.sandbox.with_timeout(opts.timeout_ms)
        span.set_attribute(ATTR_TIMEOUT_MS, config.resource_limits.timeout_ms)
        with _tracer.start_as_current_span("mcpx.sandbox") as sandbox_span:
            result = await self._sandbox.execute(
                program.code,
                lang,
                config,
                tier=self._settings.security_tier,
                preference=opts.sandbox,
            )
            if result.backend is not None:
                sandbox_span.set_attribute(ATTR_BACKEND, result.backend.value)

        result = self._process_result(result)
        self._check_anomalies(result)
        self._audit.execution(
            program.code,
            result.success,
            result.metrics.execution_time_ms,
            language=lang,
            backend=result.backend.value if result.backend else None,
            error_kind=result.error_kind.value if result.error_kind else None,
            pii_tokenized=result.pii_tokenized,
        )
        return result

    async def _check_security(self, code: str, opts: ExecuteOptions, span: Any) -> ExecutionResult | None:
        """Validate and assess *code*. Returns a failed result when it may not run."""
        with _tracer.start_as_current_span("mcpx.security"):
            validation = await self._validator.validate(code)
            assessment = self._assessor.assess(code, validation)

        needs_approval = self._gate.requires_approval(assessment, validation)
        span.set_attribute(ATTR_RISK_SCORE, assessment.risk_score)
        span.set_attribute(ATTR_RISK_LEVEL, assessment.risk_level.value)
        span.set_attribute(ATTR_REQUIRES_APPROVAL, needs_approval)

        if assessment.risk_level is RiskLevel.CRITICAL:
            severity = AuditSeverity.CRITICAL
        elif needs_approval:
            severity = AuditSeverity.WARNING
        else:
            severity = AuditSeverity.INFO
        self._audit.security(
            severity,
            f"Code validation completed: {assessment.risk_level.value} risk",
            risk_score=assessment.risk_score,
            validation_score=validation.risk_score,
            issues=[issue.description for issue in validation.issues],
        )
        if not needs_approval:
            return None

        request = await self._seek_approval(code, assessment, validation, opts)
        if request.status is ApprovalStatus.APPROVED:
            self._audit.security(
                AuditSeverity.WARNING,
                "High-risk execution approved",
                approval_request_id=request.id,
                actor=request.decided_by,
            )
            return None

        self._audit.security(
            AuditSeverity.WARNING,
            "Execution blocked pending approval" if not request.is_decided else "Execution rejected",
            approval_request_id=request.id,
            status=request.status.value,
            reason=request.reason,
        )
        blocked = ExecutionResult.failure(SECURITY_VALIDATION_FAILED, kind=ErrorKind.APPROVAL)
        blocked.approval_request_id = request.id
        return blocked

    async def _seek_approval(
        self,
        code: str,
        assessment: RiskAssessment,
        validation: SecurityValidation,
        opts: ExecuteOptions,
    ) -> ApprovalRequest:
        request = self._gate.request(code, assessment, validation)
        if self._gatekeeper is not None:
            try:
                decision = await self._gatekeeper.decide(request)
            except ApprovalError as exc:
                logger.warning("Gatekeeper gave no decision for %s: %s", request.id, exc.reason)
                self._gate.reject(request.id, "system", exc.reason or "no decision")
            else:
                if decision.approved:
                    self._gate.approve(request.id, decision.actor, decision.reason or None)
                else:
                    self._gate.reject(request.id, decision.actor, decision.reason or "rejected")
        elif opts.approval_wait > 0:
            await self._gate.wait_for_decision(request.id, opts.approval_wait)
        return self._gate.get(request.id) or request

    def _check_anomalies(self, result: ExecutionResult) -> None:
        memory_mb = (parse_reported_size(result.metrics.memory_used) or 0) / 1024**2
        detection = self._anomalies.analyze(result.metrics.execution_time_ms, memory_mb, self._audit.recent(10))
        if not detection.detected:
            return
        logger.warning(
            "Anomalies detected (%s risk): %s",
            detection.risk_level.value,
            "; ".join(a.description for a in detection.anomalies),
        )
        self._audit.security(
            AuditSeverity.WARNING,
            "Anomalies detected in execution",
            risk_level=detection.risk_level.value,
            anomalies=[a.model_dump(mode="json") for a in detection.anomalies],
        )

    @staticmethod
    def _process_result(result: ExecutionResult) -> ExecutionResult:
        """Tokenize PII, summarize and extract the structured payload."""
        tokenizer = PIITokenizer()
        output = result.output or ""
        error = result.error
        pii = False
        if output and tokenizer.contains_pii(output):
            output = tokenizer.tokenize(output)
            pii = True
        if error and tokenizer.contains_pii(error):
            error = tokenizer.tokenize(error)
            pii = True

        summary = summarize(output if result.success else (error or ""))
        metrics = ExecutionMetrics(
            execution_time_ms=result.metrics.execution_time_ms,
            memory_used=result.metrics.memory_used,
            tokens_in_summary=estimate_tokens(summary),
        )
        return result.model_copy(
            update={
                "output": output if result.output is not None else None,
                "error": error,
                "summary": summary,
                "metrics": metrics,
                "pii_tokenized": pii,
                "data": extract_result(output) if result.success else None,
            }
        )
