"""Chat-completion client for the interviewer and the report evaluator."""
import httpx
from typing import Dict, List, Optional
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import structlog

from interview_coach.config import REPORT_READY_SENTINEL, settings
from interview_coach.database.schemas import Message, MessageRole, Personality
from interview_coach.errors import UpstreamUnavailableError

logger = structlog.get_logger()

INTERVIEWER_RULES = f"""You are a professional interviewer running a {{interview_type}} interview.

Your responsibilities:
1. Ask in-depth questions that follow from the candidate's answers.
2. Ask exactly one question at a time.
3. Use your questions to judge whether the candidate fits this field or role.
4. Cover past experience, skill depth, problem solving, motivation and values, and career plans.
5. Keep questions specific and open-ended; avoid yes/no questions.
6. Adapt each question to the previous answer so the interview gets progressively deeper.
7. Never answer for the candidate; only ask questions and give brief feedback when needed.
8. Keep a professional tone that matches the selected interview style.
9. You may add a short scenario to make a question concrete, but still ask only one question.
10. IMPORTANT: once you have gathered enough information to evaluate the candidate, stop asking
    questions and reply with exactly "{REPORT_READY_SENTINEL}" and nothing else. Until then keep
    asking and deepening the interview.

Follow these rules strictly.

"""

PERSONALITY_STYLES = {
    Personality.FRIENDLY: """Your interview style is friendly and encouraging. You should:
- Use a warm, supportive tone
- Give positive feedback
- Help the candidate relax and show their real ability
- Gently prompt for more detail when an answer is incomplete""",
    Personality.FORMAL: """Your interview style is formal and professional. You should:
- Use a formal, professional tone
- Ask structured questions
- Ask for concrete cases and evidence
- Stay objective and neutral""",
    Personality.STRESS_TEST: """Your interview style is challenging and stress-testing. You should:
- Ask demanding questions
- Challenge the candidate's answers and ask for deeper justification
- Simulate the pressure of a real interview
- Test how the candidate performs under pressure""",
}

OPENING_INSTRUCTION = (
    "Please ask the first interview question. It should invite the candidate to introduce "
    "themselves or open the conversation. Keep it concise, professional and suited to the interview type."
)

EVALUATOR_SYSTEM_PROMPT = (
    "You are an expert interview assessor who analyses interview performance "
    "and gives constructive, evidence-based feedback. You reply with JSON only."
)


def build_system_prompt(personality: Personality, interview_type: str) -> str:
    return INTERVIEWER_RULES.format(interview_type=interview_type) + PERSONALITY_STYLES[Personality(personality)]


def to_chat_messages(history: List[Message], system_prompt: str) -> List[Dict[str, str]]:
    """Map the transcript onto chat roles: interviewer -> assistant, user -> user."""
    messages = [{"role": "system", "content": system_prompt}]
    for msg in history:
        role = "assistant" if msg.role == MessageRole.INTERVIEWER else "user"
        messages.append({"role": role, "content": msg.content})
    return messages


class CompletionClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.api_url = api_url or settings.OPENAI_API_URL
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_retries = max_retries or settings.LLM_MAX_RETRIES
        self._transport = transport

    async def _post(self, payload: Dict) -> Dict:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()

    async def _chat_completion(
        self, messages: List[Dict[str, str]], temperature: float, max_tokens: int
    ) -> str:
        """Call the completion endpoint with retries on transient transport errors."""
        if not self.api_key:
            raise UpstreamUnavailableError("Completion API key is not configured")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            logger.info("Making LLM request", model=self.model, message_count=len(messages))
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                reraise=True,
            ):
                with attempt:
                    data = await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.error("LLM HTTP error", status_code=e.response.status_code, response=e.response.text[:500])
            raise UpstreamUnavailableError(f"Completion API returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamUnavailableError(str(e)) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("Malformed LLM response", data_preview=str(data)[:200])
            raise UpstreamUnavailableError("Malformed completion response") from e

        if not isinstance(content, str) or not content.strip():
            logger.error("LLM returned empty response")
            raise UpstreamUnavailableError("Empty response from LLM")

        content = content.strip()
        logger.info("LLM response received", response_length=len(content))
        return content

    async def request_opening_question(self, interview_type: str, personality: Personality) -> str:
        messages = [
            {"role": "system", "content": build_system_prompt(personality, interview_type)},
            {"role": "user", "content": OPENING_INSTRUCTION},
        ]
        return await self._chat_completion(messages, temperature=0.7, max_tokens=200)

    async def request_next_turn(
        self,
        history: List[Message],
        personality: Personality,
        interview_type: str,
        new_user_text: str,
    ) -> str:
        """Next interviewer utterance, or the report-ready sentinel."""
        messages = to_chat_messages(history, build_system_prompt(personality, interview_type))
        messages.append({"role": "user", "content": new_user_text})
        temperature = 0.8 if Personality(personality) == Personality.STRESS_TEST else 0.7
        return await self._chat_completion(messages, temperature=temperature, max_tokens=500)

    async def request_report(self, prompt: str) -> str:
        messages = [
            {"role": "system", "content": EVALUATOR_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        return await self._chat_completion(messages, temperature=0.2, max_tokens=1000)
