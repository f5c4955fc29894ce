"""Brain MCP Server.

FastMCP 2.0 implementation of the brain reasoning tools. The server drives
an LLM through structured reasoning sessions (thoughts, revisions, branches,
hypotheses, conclusions) and returns the finished session.

Tools:
1. brain_think - Sequential thinking with revisions
2. brain_analyze - Multi-step analysis with alternatives and assumptions
3. brain_solve - Solution candidates, verification and implementation plan
4. brain_reflect - Critique and improve an existing analysis
5. sequential_thinking - Caller-driven thinking, one thought per call
6. brain_analyze_simple - Template frameworks without LLM calls
7. brain_patterns_info - Describe the template frameworks
8. brain_status - Server and session status

Run with: brain-mcp
Or: python -m brain_mcp.server
"""

# Note: We intentionally do NOT use `from __future__ import annotations` here
# because it causes issues with Pydantic/FastMCP type resolution at decorator time.
# Python 3.11+ supports PEP 604 union syntax (X | Y) natively.

import asyncio
from datetime import timedelta
from typing import Any, Literal

import orjson
from dotenv import load_dotenv
from fastmcp import Context, FastMCP
from loguru import logger

from brain_mcp.config import get_config
from brain_mcp.models.llm_client import LLMClient
from brain_mcp.tools.frameworks import analyze_with_pattern, patterns_info
from brain_mcp.tools.orchestrator import Orchestrator
from brain_mcp.tools.reasoning_engine import ReasoningEngine
from brain_mcp.tools.reasoning_types import (
    AnalysisDepth,
    OutputDetail,
    ProcessingOptions,
    ReflectionFocus,
    SolutionApproach,
    ThinkingContext,
    ThinkingStyle,
)
from brain_mcp.tools.reflection import ReflectionProcessor, ReflectionRequest
from brain_mcp.tools.sequential_thinking import SequentialThinkingManager
from brain_mcp.utils.errors import (
    SessionNotFoundError,
    ThinkingError,
    ToolExecutionError,
)
from brain_mcp.utils.logging import configure_logging, log_context

# Load environment variables from .env file (for local development)
load_dotenv()

_config = get_config()
configure_logging(_config.logging.level, _config.logging.format, _config.logging.file or None)

SERVER_NAME = _config.server.name
SERVER_TRANSPORT = _config.server.transport
SERVER_HOST = _config.server.host
SERVER_PORT = _config.server.port

TOOL_NAMES = [
    "brain_think",
    "brain_analyze",
    "brain_solve",
    "brain_reflect",
    "sequential_thinking",
    "brain_analyze_simple",
    "brain_patterns_info",
    "brain_status",
]


def _json(data: dict[str, Any] | None, *, indent: bool = True) -> str:
    """Serialize data to JSON string with proper typing.

    Type-safe wrapper around orjson.dumps that returns str.
    """
    if data is None:
        data = {}
    opts = orjson.OPT_INDENT_2 if indent else 0
    result: bytes = orjson.dumps(data, option=opts, default=str)
    return result.decode("utf-8")


# =============================================================================
# Type Definitions
# =============================================================================

ThinkingStyleStr = Literal[
    "analytical",
    "systematic",
    "creative",
    "scientific",
    "critical",
    "strategic",
    "intuitive",
    "collaborative",
]
DepthStr = Literal["surface", "detailed", "comprehensive"]
ApproachStr = Literal["systematic", "creative", "scientific", "iterative"]
FocusStr = Literal[
    "assumptions",
    "logic_gaps",
    "alternative_approaches",
    "evidence_quality",
    "bias_detection",
    "consistency_check",
    "completeness",
    "feasibility",
]
PatternStr = Literal["problem_solving", "root_cause", "pros_cons", "swot", "cause_effect"]
DetailStr = Literal["summary", "detailed", "complete"]


# =============================================================================
# Initialize FastMCP Server
# =============================================================================

mcp = FastMCP(
    name=SERVER_NAME,
    instructions="""Brain reasoning tools: the server runs the reasoning, you pick the mode.

=== LLM-DRIVEN MODES ===

1. brain_think(problem, thinking_style?, context?, options?)
   Sequential thoughts, automatic revision of weak thoughts, optional
   hypothesis when options.require_evidence is true.

2. brain_analyze(subject, depth?, focus_areas?, consider_alternatives?)
   Structured analysis: surface (3 steps), detailed (5), comprehensive (8),
   plus focus areas, alternative perspectives and assumption tracking.
   Returns key findings, assumptions, evidence quality, risks, opportunities.

3. brain_solve(problem_statement, approach?, constraints?, requirements?)
   Problem definition, solution candidates with viability hypotheses,
   evaluation, implementation plan and fallback options.

4. brain_reflect(original_analysis, focus)
   Critiques an analysis per focus area and suggests improvements.

=== CALLER-DRIVEN ===

5. sequential_thinking(thought, next_thought_needed, thought_number, total_thoughts)
   Records your own thoughts with revisions and branches. Start with
   `problem`, continue with the returned `session_id`.

=== TEMPLATES (no LLM) ===

6. brain_analyze_simple(problem, pattern) - problem_solving, root_cause,
   pros_cons, swot, cause_effect
7. brain_patterns_info(pattern?) - framework descriptions

8. brain_status() - server and session status
""",
)


# =============================================================================
# Tool Instances
# =============================================================================

_orchestrator: Orchestrator | None = None
_reflection_processor: ReflectionProcessor | None = None
_engine: ReasoningEngine | None = None
_sequential_manager: SequentialThinkingManager | None = None


def get_engine() -> ReasoningEngine:
    """Get or create the LLM-backed reasoning engine."""
    global _engine
    if _engine is None:
        llm = _config.llm
        client = LLMClient(
            base_url=llm.base_url or None,
            model=llm.model,
            timeout=llm.timeout,
            max_retries=llm.max_retries,
            default_temperature=llm.temperature,
        )
        _engine = ReasoningEngine(client, timeout=float(llm.timeout), max_tokens=llm.max_tokens)
        logger.info(f"Reasoning engine ready (model={llm.model})")
    return _engine


def get_orchestrator() -> Orchestrator:
    """Get or create the orchestrator for think, analyze and solve."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator(get_engine(), pacing=_config.pacing)
    return _orchestrator


def get_reflection_processor() -> ReflectionProcessor:
    """Get or create the reflection processor."""
    global _reflection_processor
    if _reflection_processor is None:
        _reflection_processor = ReflectionProcessor(get_engine(), pacing=_config.pacing)
    return _reflection_processor


def get_sequential_manager() -> SequentialThinkingManager:
    """Get or create the sequential thinking manager."""
    global _sequential_manager
    if _sequential_manager is None:
        _sequential_manager = SequentialThinkingManager(
            max_thoughts_per_session=_config.session.max_thoughts_per_session
        )
    return _sequential_manager


# =============================================================================
# Input Validation Helpers
# =============================================================================


def _check_length(field: str, value: str, minimum: int, maximum: int) -> None:
    """Raise ValueError when ``value`` is outside [minimum, maximum] characters."""
    size = len(value.strip())
    if size < minimum:
        raise ValueError(f"{field} must be at least {minimum} characters (got {size})")
    if size > maximum:
        raise ValueError(f"{field} exceeds maximum size ({maximum:,} chars, got {size:,})")


def _check_problem(field: str, value: str) -> None:
    limits = _config.input_limits
    _check_length(field, value, limits.min_problem_length, limits.max_problem_length)


def _parse_context(context: dict[str, Any] | None) -> ThinkingContext | None:
    return ThinkingContext.model_validate(context) if context else None


def _parse_options(options: dict[str, Any] | None) -> ProcessingOptions:
    return ProcessingOptions.model_validate(options or {})


def _tool_error(tool: str, e: Exception) -> str:
    """Serialize an unexpected failure and log it."""
    details: dict[str, Any] = {"type": type(e).__name__}
    if isinstance(e, ThinkingError):
        details.update(code=e.code, context=e.context)
    error = ToolExecutionError(tool, str(e), details)
    logger.error(f"{tool} failed: {e}")
    return _json(error.to_dict(), indent=False)


# =============================================================================
# TOOL 1: BRAIN_THINK
# =============================================================================


@mcp.tool
async def brain_think(
    problem: str,
    thinking_style: ThinkingStyleStr = "analytical",
    context: dict[str, Any] | None = None,
    options: dict[str, Any] | None = None,
    initial_thoughts: int = 5,
    ctx: Context | None = None,
) -> str:
    """Think through a problem step by step.

    The server generates initial thoughts, keeps going until the thought
    budget or time limit is reached, revises low-confidence thoughts and
    finally synthesizes an answer.

    Args:
        problem: Problem to think about (10-2000 characters)
        thinking_style: analytical, systematic, creative, scientific, critical,
            strategic, intuitive or collaborative
        context: Optional domain, background, constraints, requirements,
            stakeholders, timeframe, resources
        options: Optional max_thoughts (1-50), allow_revision, enable_branching,
            require_evidence, confidence_threshold, time_limit (5-300 s),
            output_detail (summary/detailed/complete)
        initial_thoughts: Thoughts generated before the continuation loop

    Returns:
        JSON with final_answer, confidence, recommendations, next_steps,
        processing_info and, unless summary output, the thought process

    """
    try:
        _check_problem("problem", problem)
        parsed_options = _parse_options(options)
        with log_context(tool="brain_think"):
            if ctx:
                await ctx.info(f"Thinking ({thinking_style}) about: {problem[:50]}...")
            result = await get_orchestrator().think(
                problem,
                ThinkingStyle(thinking_style),
                _parse_context(context),
                parsed_options,
                initial_thoughts=max(initial_thoughts, 1),
            )
        return _json(result.to_dict())

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_think", e)


# =============================================================================
# TOOL 2: BRAIN_ANALYZE
# =============================================================================


@mcp.tool
async def brain_analyze(
    subject: str,
    depth: DepthStr = "detailed",
    focus_areas: list[str] | None = None,
    consider_alternatives: bool = True,
    track_assumptions: bool = True,
    thinking_style: ThinkingStyleStr = "analytical",
    context: dict[str, Any] | None = None,
    options: dict[str, Any] | None = None,
    ctx: Context | None = None,
) -> str:
    """Analyze a subject in structured steps.

    Args:
        subject: What to analyze (10-2000 characters)
        depth: surface, detailed or comprehensive
        focus_areas: Extra areas that each get their own step
        consider_alternatives: Explore critical alternative stances on a branch
        track_assumptions: Close with an assumptions step
        thinking_style: Style used for the analysis steps
        context: Optional thinking context (see brain_think)
        options: Optional processing options (see brain_think)

    Returns:
        JSON with the synthesized answer plus key_findings, assumptions,
        evidence_quality, risk_factors and opportunities

    """
    try:
        _check_problem("subject", subject)
        parsed_options = _parse_options(options)
        with log_context(tool="brain_analyze"):
            if ctx:
                await ctx.info(f"Analyzing ({depth}): {subject[:50]}...")
            result = await get_orchestrator().analyze(
                subject,
                ThinkingStyle(thinking_style),
                _parse_context(context),
                parsed_options,
                depth=AnalysisDepth(depth),
                focus_areas=focus_areas,
                consider_alternatives=consider_alternatives,
                track_assumptions=track_assumptions,
            )
        return _json(result.to_dict())

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_analyze", e)


# =============================================================================
# TOOL 3: BRAIN_SOLVE
# =============================================================================


@mcp.tool
async def brain_solve(
    problem_statement: str,
    approach: ApproachStr = "systematic",
    constraints: list[str] | None = None,
    requirements: list[str] | None = None,
    verify_hypotheses: bool = True,
    max_iterations: int = 10,
    context: dict[str, Any] | None = None,
    options: dict[str, Any] | None = None,
    ctx: Context | None = None,
) -> str:
    """Solve a problem: define it, generate candidates, pick and plan one.

    Args:
        problem_statement: Problem to solve (10-2000 characters)
        approach: systematic, creative, scientific or iterative
        constraints: Constraints every candidate must respect
        requirements: Requirements the solution must meet
        verify_hypotheses: Test each candidate's viability as a hypothesis
        max_iterations: Maximum solution candidates (1-10)
        context: Optional thinking context (see brain_think)
        options: Optional processing options (see brain_think)

    Returns:
        JSON with proposed_solution, implementation_steps, potential_obstacles,
        success_criteria, test_plan and fallback_options

    """
    try:
        _check_problem("problem_statement", problem_statement)
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        parsed_options = _parse_options(options)
        with log_context(tool="brain_solve"):
            if ctx:
                await ctx.info(f"Solving ({approach}): {problem_statement[:50]}...")
            result = await get_orchestrator().solve(
                problem_statement,
                _parse_context(context),
                parsed_options,
                approach=SolutionApproach(approach),
                constraints=constraints,
                requirements=requirements,
                verify_hypotheses=verify_hypotheses,
                max_iterations=max_iterations,
            )
        return _json(result.to_dict())

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_solve", e)


# =============================================================================
# TOOL 4: BRAIN_REFLECT
# =============================================================================


@mcp.tool
async def brain_reflect(
    original_analysis: str,
    focus: list[FocusStr],
    improvement_goals: list[str] | None = None,
    new_information: str | None = None,
    alternative_viewpoints: list[str] | None = None,
    context: dict[str, Any] | None = None,
    output_detail: DetailStr = "detailed",
    ctx: Context | None = None,
) -> str:
    """Reflect on an existing analysis and suggest improvements.

    Args:
        original_analysis: Analysis to critique (50-5000 characters)
        focus: Aspects to examine (assumptions, logic_gaps, alternative_approaches,
            evidence_quality, bias_detection, consistency_check, completeness,
            feasibility)
        improvement_goals: What the revision should achieve
        new_information: Facts that arrived after the analysis was written
        alternative_viewpoints: Perspectives to weigh against the analysis
        context: Optional thinking context (see brain_think)
        output_detail: summary, detailed or complete

    Returns:
        JSON with identified_issues, improvements, recommended_actions,
        confidence and, when warranted, revised_analysis

    """
    try:
        limits = _config.input_limits
        _check_length(
            "original_analysis",
            original_analysis,
            limits.min_analysis_length,
            limits.max_analysis_length,
        )
        request = ReflectionRequest(
            original_analysis=original_analysis,
            focus=[ReflectionFocus(f) for f in focus],
            improvement_goals=improvement_goals or [],
            new_information=new_information,
            alternative_viewpoints=alternative_viewpoints or [],
            context=_parse_context(context),
        )
        with log_context(tool="brain_reflect"):
            if ctx:
                await ctx.info(f"Reflecting on analysis ({len(request.focus)} focus areas)")
            result = await get_reflection_processor().process(request)
        return _json(result.to_dict(OutputDetail(output_detail)))

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_reflect", e)


# =============================================================================
# TOOL 5: SEQUENTIAL_THINKING
# =============================================================================


@mcp.tool
async def sequential_thinking(
    thought: str,
    next_thought_needed: bool,
    thought_number: int,
    total_thoughts: int,
    session_id: str | None = None,
    problem: str | None = None,
    is_revision: bool = False,
    revises_thought: int | None = None,
    branch_id: str | None = None,
    branch_from_thought: int | None = None,
    confidence: float = 0.8,
    ctx: Context | None = None,
) -> str:
    """Record one of your own thoughts in a thinking session.

    Start a session by passing `problem`; continue it with the returned
    `session_id`. Set `next_thought_needed` to false on the last thought to
    close the session with a summary.

    Args:
        thought: Content of this thought
        next_thought_needed: Whether more thoughts follow
        thought_number: Your position in the sequence (1-based)
        total_thoughts: Your current estimate of the total
        session_id: Existing session to continue
        problem: Problem statement, required when starting a session
        is_revision: This thought revises an earlier one
        revises_thought: Sequence number of the revised thought
        branch_id: Branch to record the thought on (created on first use)
        branch_from_thought: Thought the branch starts from; optional once the branch exists
        confidence: Your confidence in this thought (0.0-1.0)

    Returns:
        JSON with current_thought, progress and session state

    """
    try:
        if thought_number < 1 or total_thoughts < 1:
            raise ValueError("thought_number and total_thoughts must be at least 1")
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence must be between 0.0 and 1.0 (got {confidence})")
        if problem and not session_id:
            _check_problem("problem", problem)
        _start_cleanup_task()

        with log_context(session_id=session_id, tool="sequential_thinking"):
            step = get_sequential_manager().add_thought(
                thought=thought,
                next_thought_needed=next_thought_needed,
                thought_number=thought_number,
                total_thoughts=total_thoughts,
                session_id=session_id,
                problem=problem,
                is_revision=is_revision,
                revises_thought=revises_thought,
                branch_id=branch_id,
                branch_from_thought=branch_from_thought,
                confidence=confidence,
            )
        if ctx:
            await ctx.info(
                f"Thought {thought_number}/{total_thoughts} recorded ({step.progress_percent}%)"
            )
        return _json(step.to_dict())

    except SessionNotFoundError:
        return _json({"error": f"Session not found or expired: {session_id}"}, indent=False)
    except ThinkingError as e:
        return _json(e.to_dict(), indent=False)
    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("sequential_thinking", e)


# =============================================================================
# TOOL 6-7: TEMPLATE FRAMEWORKS
# =============================================================================


@mcp.tool
async def brain_analyze_simple(
    problem: str,
    pattern: PatternStr = "problem_solving",
    context: str | None = None,
    ctx: Context | None = None,
) -> str:
    """Apply a template reasoning framework without calling an LLM.

    Args:
        problem: Problem or decision to frame
        pattern: problem_solving, root_cause, pros_cons, swot or cause_effect
        context: Optional background shown with the problem

    Returns:
        JSON with the framework sections, its steps and a markdown rendering

    """
    try:
        _check_problem("problem", problem)
        result = analyze_with_pattern(problem, pattern, context)
        if ctx:
            await ctx.info(f"Applied {result.pattern.name} framework")
        return _json(result.to_dict())

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_analyze_simple", e)


@mcp.tool
async def brain_patterns_info(
    pattern: PatternStr | None = None,
    ctx: Context | None = None,
) -> str:
    """Describe the template frameworks.

    Args:
        pattern: Optional framework to describe; lists all when omitted

    Returns:
        JSON with the framework description, steps and use case, or the list

    """
    try:
        return _json(patterns_info(pattern))

    except ValueError as e:
        return _json({"error": str(e)}, indent=False)
    except Exception as e:
        return _tool_error("brain_patterns_info", e)


# =============================================================================
# TOOL 8: BRAIN_STATUS
# =============================================================================


@mcp.tool
async def brain_status(
    session_id: str | None = None,
    ctx: Context | None = None,
) -> str:
    """Get server status or a sequential thinking session's state.

    Args:
        session_id: Optional sequential thinking session to inspect

    Returns:
        JSON with server info, model, session counts and cleanup settings,
        or the session record

    """
    try:
        manager = get_sequential_manager()

        if session_id:
            try:
                with manager.registry.session(session_id) as session:
                    return _json(session.session.to_dict())
            except SessionNotFoundError:
                return _json({"error": f"Session not found: {session_id}"}, indent=False)

        status_result: dict[str, Any] = {
            "server": {
                "name": SERVER_NAME,
                "transport": SERVER_TRANSPORT,
                "tools": TOOL_NAMES,
            },
            "model": {
                "name": _config.llm.model,
                "base_url": _config.llm.base_url or None,
                "engine_ready": _engine is not None,
            },
            "sessions": {
                "active": manager.active_sessions(),
                "max_thoughts_per_session": _config.session.max_thoughts_per_session,
            },
            "cleanup": {
                "max_age_minutes": _config.session.max_age_minutes,
                "interval_seconds": _config.session.cleanup_interval_seconds,
                "task_running": _cleanup_task is not None and not _cleanup_task.done(),
            },
        }

        if ctx:
            await ctx.info(f"Server ready, {manager.active_sessions()} active sessions")

        return _json(status_result)

    except Exception as e:
        return _tool_error("brain_status", e)


# =============================================================================
# Automatic Session Cleanup
# =============================================================================

_cleanup_task: asyncio.Task[None] | None = None


async def _cleanup_stale_sessions() -> None:
    """Background task to clean up stale sequential thinking sessions."""
    max_age = timedelta(minutes=_config.session.max_age_minutes)
    interval = _config.session.cleanup_interval_seconds
    logger.info(
        f"Session cleanup task started (max_age={_config.session.max_age_minutes}m, "
        f"interval={interval}s)"
    )

    while True:
        try:
            await asyncio.sleep(interval)
            get_sequential_manager().sweep_expired(max_age)

        except asyncio.CancelledError:
            logger.info("Session cleanup task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in cleanup task: {e}")


def _start_cleanup_task() -> None:
    """Start the background cleanup task if not already running."""
    global _cleanup_task
    try:
        loop = asyncio.get_running_loop()
        if _cleanup_task is None or _cleanup_task.done():
            _cleanup_task = loop.create_task(_cleanup_stale_sessions())
            logger.debug("Cleanup task scheduled")
    except RuntimeError:
        logger.debug("No event loop available, cleanup task will start with server")


def _stop_cleanup_task() -> None:
    """Stop the background cleanup task."""
    global _cleanup_task
    if _cleanup_task is not None and not _cleanup_task.done():
        _cleanup_task.cancel()
        _cleanup_task = None
        logger.debug("Cleanup task stopped")


# =============================================================================
# SERVER ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the Brain MCP server."""
    logger.info(f"Starting {SERVER_NAME} (transport: {SERVER_TRANSPORT})")

    _start_cleanup_task()

    try:
        if SERVER_TRANSPORT == "stdio":
            mcp.run(transport="stdio")
        elif SERVER_TRANSPORT == "http":
            mcp.run(transport="streamable-http", host=SERVER_HOST, port=SERVER_PORT)
        elif SERVER_TRANSPORT == "sse":
            mcp.run(transport="sse", host=SERVER_HOST, port=SERVER_PORT)
        else:
            logger.warning(f"Unknown transport '{SERVER_TRANSPORT}', falling back to stdio")
            mcp.run(transport="stdio")
    finally:
        _stop_cleanup_task()


if __name__ == "__main__":
    main()
