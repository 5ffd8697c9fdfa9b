#!/usr/bin/env python3
"""
Elicit MCP Server
Adaptive requirements elicitation

This server exposes the question engine as MCP tools: start a questioning
session for a topic, pull the next question, submit answers and watch
confidence converge toward the target.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from elicit.config import build_engine_config, load_config
from elicit.engine import TERMINAL_STATUSES, QuestionEngine
from elicit.errors import (
    ElicitError,
    InvalidConfidenceError,
    SessionAlreadyExistsError,
    SessionNotFoundError,
    ValidationError,
)
from elicit.helpers.ambiguity import extract_ambiguous_parts
from elicit.models import Answer, Question, QuestionContext
from elicit.templates import BUNDLED_TEMPLATES_PATH, FileTemplateSource


# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("elicit-server")

# Global config - loaded once at startup
ELICIT_CONFIG = load_config()


# =============================================================================
# Session Registry
# =============================================================================

class SessionRegistry:
    """In-process map of session id -> engine plus the session's topic, phase and target."""

    def __init__(self):
        self._sessions: dict[str, dict[str, Any]] = {}

    def add(
        self,
        session_id: str,
        engine: QuestionEngine,
        topic: str,
        phase: str,
        target_confidence: Optional[float] = None,
    ) -> None:
        if session_id in self._sessions:
            raise SessionAlreadyExistsError(session_id)
        self._sessions[session_id] = {
            "engine": engine,
            "topic": topic,
            "phase": phase,
            "target_confidence": target_confidence,
        }

    def get(self, session_id: str) -> dict[str, Any]:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def pop(self, session_id: str) -> dict[str, Any]:
        session = self.get(session_id)
        del self._sessions[session_id]
        return session

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


sessions = SessionRegistry()


# =============================================================================
# MCP Server Setup
# =============================================================================

mcp = FastMCP(
    name="elicit-server",
)


def _question_dict(question: Optional[Question]) -> Optional[dict[str, Any]]:
    if question is None:
        return None
    return question.model_dump(mode="json")


def _resolve_templates_path(templates_path: Optional[str]) -> Path:
    configured = templates_path or ELICIT_CONFIG["engine"].get("templates_path")
    return Path(configured) if configured else BUNDLED_TEMPLATES_PATH


# =============================================================================
# Tools
# =============================================================================

@mcp.tool()
async def start_questioning(
    topic: str,
    phase: str = "brainstorm",
    session_id: Optional[str] = None,
    target_confidence: Optional[float] = None,
    templates_path: Optional[str] = None,
) -> dict[str, Any]:
    """
    Start an adaptive questioning session for a topic.

    Args:
        topic: What is being elicited (substituted into question templates)
        phase: Workflow phase (init, brainstorm, specify, decompose, implement)
        session_id: Optional ID to resume a persisted session
        target_confidence: Stop once overall confidence reaches this (0.0-1.0)
        templates_path: YAML/JSON template catalog (defaults to the bundled one)

    Returns:
        Session ID and the effective settings
    """
    try:
        if not topic or not topic.strip():
            raise ValidationError("topic", "must not be empty")

        config = build_engine_config(ELICIT_CONFIG)
        if target_confidence is not None and not 0.0 <= target_confidence <= 1.0:
            raise InvalidConfidenceError("target_confidence", target_confidence)

        session_id = session_id or str(uuid.uuid4())
        if session_id in sessions:
            raise SessionAlreadyExistsError(session_id)

        engine = QuestionEngine(
            config=config,
            template_source=FileTemplateSource(_resolve_templates_path(templates_path)),
        )
        await engine.initialize(session_id)
        engine.validate_phase(phase)

        sessions.add(session_id, engine, topic.strip(), phase, target_confidence)
        logger.info(f"Started questioning session {session_id} on '{topic.strip()}' ({phase})")

        return {
            "success": True,
            "session_id": session_id,
            "topic": topic.strip(),
            "phase": phase,
            "target_confidence": engine.target_confidence_for(phase, target_confidence),
            "max_questions": config.max_questions_per_session,
            "template_count": len(engine.template_data.templates),
            "resumed_questions": len(engine.asked_question_ids),
            "message": "Questioning session started. Call get_next_question to begin.",
        }

    except ElicitError as e:
        logger.warning(f"Failed to start questioning: {e.message}")
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to start questioning: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def get_next_question(session_id: str, phase: Optional[str] = None) -> dict[str, Any]:
    """
    Get the next highest-value question for the session.

    Args:
        session_id: Session from start_questioning
        phase: Switch to another workflow phase before selecting

    Returns:
        The question (or null when questioning should stop) and session status
    """
    try:
        session = sessions.get(session_id)
        engine: QuestionEngine = session["engine"]
        context = QuestionContext(
            phase=phase or session["phase"],
            topic=session["topic"],
            target_confidence=session["target_confidence"],
        )
        question = await engine.generate_next_question(context)
        session["phase"] = context.phase
        confidence = engine.calculate_confidence(engine.answers)

        response = {
            "success": True,
            "question": _question_dict(question),
            "status": engine.status.value,
            "confidence": round(confidence, 4),
            "questions_asked": len(engine.asked_question_ids),
        }
        if question is None:
            response["message"] = f"No further questions ({engine.status.value})"
        return response

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to get next question: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def submit_answer(
    session_id: str,
    question_id: str,
    answer: str,
    confidence: float = 0.8,
) -> dict[str, Any]:
    """
    Submit an answer and get updated confidence plus any follow-ups.

    Args:
        session_id: Session from start_questioning
        question_id: ID of the question being answered
        answer: Free-text answer
        confidence: How sure the answerer is (0.0-1.0)

    Returns:
        Updated confidence, ambiguity flags, clarification and follow-up
        questions, and whether to keep asking
    """
    try:
        if not 0.0 <= confidence <= 1.0:
            raise InvalidConfidenceError("confidence", confidence)
        if not answer or not answer.strip():
            raise ValidationError("answer", "must not be empty")

        session = sessions.get(session_id)
        engine: QuestionEngine = session["engine"]

        submitted = Answer(question_id=question_id, answer=answer, confidence=confidence)
        overall = await engine.process_answer(submitted)
        ambiguous = engine.detect_ambiguity(answer)

        clarification = None
        follow_ups = []
        if engine.status not in TERMINAL_STATUSES:
            question = engine.get_question(question_id)
            if ambiguous and question is not None:
                clarification = await engine.generate_clarification_question(question, answer)
            follow_ups = await engine.get_follow_up_questions(submitted)
        result = engine.calculate_confidence_result(engine.answers)

        return {
            "success": True,
            "question_id": question_id,
            "confidence": round(overall, 4),
            "factors": result.factors.model_dump(),
            "missing_categories": result.missing,
            "ambiguous": ambiguous,
            "ambiguous_parts": extract_ambiguous_parts(answer) if ambiguous else [],
            "clarification": _question_dict(clarification),
            "follow_ups": [_question_dict(q) for q in follow_ups],
            "should_continue": engine.should_continue_questioning(overall),
            "status": engine.status.value,
            "insights": result.insights,
        }

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to submit answer: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def get_follow_up_questions(session_id: str, question_id: str) -> dict[str, Any]:
    """
    Expand an already-answered question into follow-up questions.

    Args:
        session_id: Session from start_questioning
        question_id: Answered question to expand

    Returns:
        Follow-up questions (empty past the max follow-up depth)
    """
    try:
        engine: QuestionEngine = sessions.get(session_id)["engine"]
        answer = next((a for a in engine.answers if a.question_id == question_id), None)
        if answer is None:
            raise ValidationError("question_id", f"question {question_id} has no answer yet")

        follow_ups = await engine.get_follow_up_questions(answer)
        return {
            "success": True,
            "question_id": question_id,
            "depth": engine.get_depth(question_id),
            "follow_ups": [_question_dict(q) for q in follow_ups],
        }

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to get follow-up questions: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def generate_questions(
    session_id: str,
    count: int = 5,
    phase: Optional[str] = None,
    topic: Optional[str] = None,
) -> dict[str, Any]:
    """
    Preview a diverse batch of questions without asking them.

    Args:
        session_id: Session from start_questioning
        count: Maximum number of questions
        phase: Phase to sample (defaults to the session phase)
        topic: Topic override (defaults to the session topic)

    Returns:
        Up to `count` questions, one per category first, by priority
    """
    try:
        if count < 0:
            raise ValidationError("count", "must be >= 0")
        session = sessions.get(session_id)
        engine: QuestionEngine = session["engine"]
        questions = engine.generate_questions(
            topic or session["topic"], phase or session["phase"], count
        )
        return {
            "success": True,
            "questions": [_question_dict(q) for q in questions],
        }

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to generate questions: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def get_questioning_stats(session_id: str) -> dict[str, Any]:
    """
    Get effectiveness stats and the current result for a session.

    Args:
        session_id: Session from start_questioning

    Returns:
        Question counts, confidence gain, top categories, insights and
        suggested next questions
    """
    try:
        engine: QuestionEngine = sessions.get(session_id)["engine"]
        stats = engine.get_stats()
        result = engine.get_result()
        return {
            "success": True,
            "session_id": session_id,
            "stats": stats.model_dump(mode="json"),
            "overall_confidence": round(result.overall_confidence, 4),
            "should_continue": result.should_continue,
            "answered": len(result.answers),
            "insights": result.insights,
            "next_questions": [_question_dict(q) for q in result.next_questions],
            "persistence_failures": engine.persistence_failures,
        }

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to get questioning stats: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def close_questioning(session_id: str) -> dict[str, Any]:
    """
    Close a questioning session and release its resources.

    Args:
        session_id: Session from start_questioning

    Returns:
        Final confidence and question count
    """
    try:
        session = sessions.pop(session_id)
        engine: QuestionEngine = session["engine"]
        final_confidence = engine.calculate_confidence(engine.answers)
        total = len(engine.asked_question_ids)
        await engine.close()
        logger.info(f"Closed questioning session {session_id}")
        return {
            "success": True,
            "session_id": session_id,
            "final_confidence": round(final_confidence, 4),
            "total_questions": total,
        }

    except ElicitError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Failed to close questioning session: {e}")
        return {"success": False, "error": str(e)}


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Run the MCP server."""
    logger.info("Starting Elicit (adaptive questioning) MCP Server...")
    mcp.run()


if __name__ == "__main__":
    main()
