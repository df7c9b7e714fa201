"""
services/ai_service.py — Flashcard and quiz generation on top of LLMService.

The model is asked for strict JSON, which is validated with pydantic.  When
that fails, a heuristic parser salvages what it can and the result is flagged
``degraded`` so the client can tell the user the output may be rough.
"""

import json
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from config import Config
from errors import AIOutputError, ValidationError
from logging_config import get_logger
from services.llm import LLMService

logger = get_logger(__name__)

MIN_SOURCE_CHARS = 20

FLASHCARD_SYSTEM_PROMPT = "You are a helpful study assistant."

FLASHCARD_USER_PROMPT = """You are a study assistant. Generate up to {limit} clear question-answer pairs from the following text.
- Output MUST be a single JSON array, nothing else.
- Each element must be an object with exactly two fields: "question" and "answer".
- Keep questions concise and focused on key ideas. Keep answers short (one or two sentences).
- Use plain text, no markdown, no explanations outside the JSON.
Text:
\"\"\"{text}\"\"\"
Return JSON only."""

QUIZ_SYSTEM_PROMPT = """You are a helpful assistant that generates multiple-choice quizzes in strict JSON only.
Return a JSON object exactly like:
{{
  "title": "Short quiz title",
  "questions": [
    {{
      "questionText": "...",
      "choices": ["...", "...", "...", "..."],
      "correctAnswer": "..."
    }}
  ]
}}
Each question must have 3-4 choices. Ensure exactly n questions (n={n}). Use the provided context for question content. Do not include any extra commentary or backticks."""

QUIZ_USER_PROMPT = """Context:
{context}

Generate {n} questions."""

DEFAULT_CHOICES = ["Option 1", "Option 2", "Option 3"]


# ── Output models ─────────────────────────────────────────────────────────────

class GeneratedFlashcard(BaseModel):
    question: str
    answer: str

    @model_validator(mode="before")
    @classmethod
    def accept_short_keys(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("question", data.get("q", ""))
            data.setdefault("answer", data.get("a", ""))
        return data

    @field_validator("question", "answer", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v).strip()


class GeneratedQuestion(BaseModel):
    questionText: str = Field(min_length=1)
    choices: List[str] = Field(min_length=2, max_length=4)
    correctAnswer: str = Field(min_length=1)

    @model_validator(mode="after")
    def answer_in_choices(self):
        if self.correctAnswer not in self.choices:
            raise ValueError("correctAnswer must be one of the choices")
        return self


class GeneratedQuiz(BaseModel):
    title: str = "Generated Quiz"
    questions: List[GeneratedQuestion] = Field(min_length=1)


# ── Parsing helpers ───────────────────────────────────────────────────────────

def _try_json(text: str):
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _slice_between(raw: str, open_ch: str, close_ch: str) -> Optional[str]:
    start = raw.find(open_ch)
    end = raw.rfind(close_ch)
    if start != -1 and end > start:
        return raw[start:end + 1]
    return None


_Q_LINE = re.compile(r"^Q[:\-\s]+(.+)", re.IGNORECASE)
_A_LINE = re.compile(r"^A[:\-\s]+(.+)", re.IGNORECASE)
_INLINE = re.compile(r"Question[:\s]+(.+?)\s+Answer[:\s]+(.+)", re.IGNORECASE)


def heuristic_pairs(raw: str) -> List[dict]:
    """Recover Q/A pairs from free-form model output."""
    lines = [l.strip() for l in re.split(r"\r?\n", raw or "") if l.strip()]
    pairs = []
    i = 0
    while i < len(lines):
        line = lines[i]
        q = _Q_LINE.match(line)
        a = _A_LINE.match(lines[i + 1]) if i + 1 < len(lines) else None
        if q and a:
            pairs.append({"question": q.group(1).strip(), "answer": a.group(1).strip()})
            i += 2
            continue
        parts = line.split(" - ")
        if len(parts) == 2:
            pairs.append({"question": parts[0].strip(), "answer": parts[1].strip()})
        else:
            inline = _INLINE.search(line)
            if inline:
                pairs.append({"question": inline.group(1).strip(), "answer": inline.group(2).strip()})
        i += 1
    return pairs


def _strict_flashcards(raw: str) -> Optional[List[GeneratedFlashcard]]:
    candidates = [raw, _slice_between(raw, "[", "]")]
    for candidate in candidates:
        if not candidate:
            continue
        parsed = _try_json(candidate)
        if not isinstance(parsed, list):
            continue
        cards = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            try:
                cards.append(GeneratedFlashcard.model_validate(item))
            except PydanticValidationError:
                continue
        return cards
    return None


def _lenient_question(q: dict) -> dict:
    text = str(q.get("questionText") or q.get("question") or "Question text missing").strip()
    choices = q.get("choices") if isinstance(q.get("choices"), list) else []
    choices = [str(c) for c in choices[:4]]
    answer = q.get("correctAnswer") or q.get("answer") or (choices[0] if choices else "Option 1")
    return {
        "questionText": text,
        "choices": choices or list(DEFAULT_CHOICES),
        "correctAnswer": str(answer),
    }


class AIService:
    """Generates study material from free text."""

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or LLMService()

    # ── Flashcards ────────────────────────────────────────────────────────────

    async def generate_flashcards(self, text: Optional[str]) -> Tuple[List[dict], bool]:
        """Return ``(cards, degraded)``; cards are ``{question, answer}`` dicts."""
        text = (text or "").strip()
        if len(text) < MIN_SOURCE_CHARS:
            raise ValidationError("No input text provided or text too short.")

        limit = Config.MAX_GENERATED_FLASHCARDS
        raw = await self.llm.complete(
            FLASHCARD_SYSTEM_PROMPT,
            FLASHCARD_USER_PROMPT.format(limit=limit, text=text),
            temperature=0.2,
            max_tokens=Config.FLASHCARD_MAX_TOKENS,
        )
        if not raw or not raw.strip():
            raise AIOutputError("No content returned from AI.", raw=raw or "")

        degraded = False
        cards = _strict_flashcards(raw)
        if cards is None:
            degraded = True
            cards = [GeneratedFlashcard.model_validate(p) for p in heuristic_pairs(raw)]

        normalized = [c.model_dump() for c in cards if c.question and c.answer][:limit]
        if not normalized:
            logger.warning("ai.flashcards.unparseable", raw_chars=len(raw))
            raise AIOutputError(
                "AI output could not be parsed to JSON array of {question,answer}.", raw=raw
            )

        logger.info("ai.flashcards.generated", count=len(normalized), degraded=degraded)
        return normalized, degraded

    # ── Quizzes ───────────────────────────────────────────────────────────────

    @staticmethod
    def clamp_questions(num_questions) -> int:
        try:
            n = int(num_questions)
        except (TypeError, ValueError):
            n = 5
        return min(Config.MAX_GENERATED_QUESTIONS, max(1, n))

    async def generate_quiz(self, context_text: str, num_questions=5) -> Tuple[dict, bool]:
        """Return ``({title, questions}, degraded)``."""
        n = self.clamp_questions(num_questions)
        raw = await self.llm.complete(
            QUIZ_SYSTEM_PROMPT.format(n=n),
            QUIZ_USER_PROMPT.format(context=context_text, n=n),
            temperature=0.3,
            max_tokens=Config.QUIZ_MAX_TOKENS,
        )
        if not raw or not raw.strip():
            raise AIOutputError("Empty response from AI.", raw=raw or "")

        data = _try_json(_slice_between(raw, "{", "}") or raw)
        if not isinstance(data, dict):
            data = _try_json(raw)
        if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
            logger.warning("ai.quiz.unparseable", raw_chars=len(raw))
            raise AIOutputError("Failed to parse AI response as a quiz.", raw=raw)

        data["questions"] = data["questions"][:n]
        try:
            quiz = GeneratedQuiz.model_validate(data)
            result = {
                "title": quiz.title or "Generated Quiz",
                "questions": [q.model_dump() for q in quiz.questions],
            }
            degraded = False
        except PydanticValidationError as exc:
            logger.info("ai.quiz.lenient", errors=exc.error_count())
            questions = [_lenient_question(q) for q in data["questions"] if isinstance(q, dict)]
            if not questions:
                raise AIOutputError("Failed to parse AI response as a quiz.", raw=raw)
            result = {"title": str(data.get("title") or "Generated Quiz"), "questions": questions}
            degraded = True

        logger.info("ai.quiz.generated", count=len(result["questions"]), degraded=degraded)
        return result, degraded
