"""Report generation: transcript -> evaluation prompt -> scored report body.

The scoring call is best-effort. Any upstream or parsing failure degrades to a
canned report body so callers always get a complete, valid report.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import structlog

from interview_coach.config import QUESTION_THRESHOLD
from interview_coach.database.schemas import Message, MessageRole, ReportBody
from interview_coach.errors import InsufficientDataError

logger = structlog.get_logger()

SCORE_FIELDS = ("overall_score", "expression", "content", "structure", "language")
LIST_FIELDS = ("strengths", "improvements", "recommendations")
WIRE_NAMES = {"overall_score": "overallScore"}
MIN_LIST_ITEMS = 3
DEFAULT_SCORE = 75

FALLBACK_LISTS = {
    "strengths": [
        "Answers were clearly structured and easy to follow",
        "Offered concrete examples from past projects",
        "Expressed ideas fluently and naturally",
    ],
    "improvements": [
        "Explain technical details more thoroughly",
        "Analyse the reasoning behind decisions in more depth",
        "Back up results with more quantified data",
    ],
    "recommendations": [
        "Keep practising the STAR method for behavioural questions",
        "Prepare answers for deeper technical follow-up questions",
        "Practise thinking quickly under pressure",
    ],
}

CODE_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedReportBody:
    body: ReportBody


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = Union[ParsedReportBody, ParseFailure]


def count_interviewer_messages(messages: List[Message]) -> int:
    return sum(1 for m in messages if m.role == MessageRole.INTERVIEWER)


def fallback_report_body() -> ReportBody:
    return ReportBody(
        overall_score=DEFAULT_SCORE,
        expression=DEFAULT_SCORE,
        content=DEFAULT_SCORE,
        structure=DEFAULT_SCORE,
        language=DEFAULT_SCORE,
        strengths=list(FALLBACK_LISTS["strengths"]),
        improvements=list(FALLBACK_LISTS["improvements"]),
        recommendations=list(FALLBACK_LISTS["recommendations"]),
    )


def serialize_transcript(messages: List[Message]) -> str:
    lines = []
    for msg in messages:
        speaker = "Interviewer" if msg.role == MessageRole.INTERVIEWER else "Candidate"
        lines.append(f"{speaker}: {msg.content}")
    return "\n".join(lines)


def build_evaluation_prompt(transcript: str, interview_type: str) -> str:
    return f"""You are an expert interview assessor. Based on the interview below, produce an
objective, honest evaluation report that matches how the candidate actually performed.

INTERVIEW TYPE: {interview_type}

TRANSCRIPT:
{transcript}

SCORING PRINCIPLES (derive every score from the transcript, never from examples or templates):
1. overallScore - overall fit: content, professionalism, logic, language, motivation for the role
   - 0-50: poor performance or clearly missing key abilities
   - 51-70: some ability but inconsistent or lacking depth
   - 71-85: good performance with most of the required abilities
   - 86-100: excellent performance, clearly suited to the role
2. expression - clear, organised, confident and logically consistent answers
3. content - specific answers, real cases, demonstrated professional skill
4. structure - organised reasoning (e.g. STAR, MECE) rather than jumpy or chaotic answers
5. language - clear, professional and appropriate wording; mature tone

Use the same 0-100 bands for every score.

Respond ONLY with a valid JSON object. Do NOT include any explanation, markdown, or extra text.
{{
  "overallScore": <number 0-100>,
  "expression": <number 0-100>,
  "content": <number 0-100>,
  "structure": <number 0-100>,
  "language": <number 0-100>,
  "strengths": ["at least 3 specific strengths grounded in the candidate's answers"],
  "improvements": ["at least 3 specific areas to improve; do not invent facts"],
  "recommendations": ["at least 3 concrete, practicable exercises tied to the weaknesses"]
}}

IMPORTANT:
1. Do not reuse example scores; compute every score from this conversation.
2. Scores must reflect the candidate's real performance and must not be random.
3. Do not add any text outside the JSON object."""


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` in ``text``, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next one.
        start = text.find("{", start + 1)
    return None


def _clamp_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return DEFAULT_SCORE
        else:
            return DEFAULT_SCORE
    if value != value:  # NaN
        return DEFAULT_SCORE
    return int(round(max(0.0, min(100.0, float(value)))))


def _validate_list(field: str, value: Any) -> List[str]:
    fallback = FALLBACK_LISTS[field]
    if not isinstance(value, list):
        logger.warning("Report field is not a list, using fallback", field=field)
        return list(fallback)
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if not items:
        logger.warning("Report field has no usable items, using fallback", field=field)
        return list(fallback)
    for extra in fallback:
        if len(items) >= MIN_LIST_ITEMS:
            break
        if extra not in items:
            items.append(extra)
    return items


def parse_report_response(text: Optional[str]) -> ParseResult:
    """Decode a scoring response into a validated report body."""
    if not text or not text.strip():
        return ParseFailure("empty response")

    cleaned = CODE_FENCE.sub("", text).strip()
    candidate = extract_json_object(cleaned)
    if candidate is None:
        return ParseFailure("no JSON object found")

    try:
        raw = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ParseFailure(f"invalid JSON: {e.msg}")
    if not isinstance(raw, dict):
        return ParseFailure("JSON root is not an object")

    values: Dict[str, Any] = {}
    for field in SCORE_FIELDS:
        values[field] = _clamp_score(raw.get(WIRE_NAMES.get(field, field)))
    for field in LIST_FIELDS:
        values[field] = _validate_list(field, raw.get(field))
    return ParsedReportBody(ReportBody(**values))


class ReportGenerator:
    def __init__(self, completion_client):
        self.completion_client = completion_client

    async def generate(self, messages: List[Message], interview_type: str) -> ReportBody:
        """Score a chat transcript.

        Raises InsufficientDataError when the interviewer has asked fewer than
        QUESTION_THRESHOLD questions. Never raises for completion failures.
        """
        asked = count_interviewer_messages(messages)
        if asked < QUESTION_THRESHOLD:
            raise InsufficientDataError(
                f"Not enough conversation to generate a report: {asked} of "
                f"{QUESTION_THRESHOLD} interviewer questions so far. Please continue the interview."
            )

        prompt = build_evaluation_prompt(serialize_transcript(messages), interview_type)
        try:
            text = await self.completion_client.request_report(prompt)
        except Exception as e:
            logger.error("Report generation failed, using fallback report",
                         error=str(e), error_type=type(e).__name__)
            return fallback_report_body()

        result = parse_report_response(text)
        if isinstance(result, ParseFailure):
            logger.warning("Could not parse report response, using fallback report",
                           reason=result.reason, content_preview=(text or "")[:200])
            return fallback_report_body()

        logger.info("Report generated", overall_score=result.body.overall_score)
        return result.body
