import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from loguru import logger
from pydantic import ValidationError

from bookwise.core.config import Settings
from bookwise.models import Book, QuizQuestion


class QuizGenerationError(Exception):
    """A generation attempt (or the whole retry sequence) did not yield a valid quiz."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


@dataclass
class QuizDraft:
    questions: List[QuizQuestion]
    ai_model: str
    attempts: int


# --------------------
# Response parsing
# --------------------

def _response_text(content: Any) -> str:
    # Gemini may answer with a list of parts instead of a single string
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content or "")


def _extract_json(text: str) -> Any:
    if not text or not text.strip():
        raise QuizGenerationError("Empty response from gemini")
    cleaned = text.strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    # Object first, then a bare list of questions
    parse_error: Optional[json.JSONDecodeError] = None
    for pattern in (r"\{.*\}", r"\[.*\]"):
        match = re.search(pattern, cleaned, flags=re.DOTALL)
        if not match:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            parse_error = e
    if parse_error is not None:
        raise QuizGenerationError(f"Failed to parse quiz JSON: {parse_error}")
    raise QuizGenerationError(f"No JSON object found in response. Content: {cleaned[:200]}")


def validate_questions(items: Any) -> List[QuizQuestion]:
    """Check the structure of generated question items.

    Every item needs a question, exactly four options, an answer and an
    explanation. The first violation raises ``QuizGenerationError``.
    """
    if not isinstance(items, list) or not items:
        raise QuizGenerationError("Quiz is empty")

    questions: List[QuizQuestion] = []
    for i, item in enumerate(items, start=1):
        try:
            question = QuizQuestion.model_validate(item)
        except ValidationError as e:
            raise QuizGenerationError(f"Question {i} is malformed: {e.errors()[0]['msg']}")
        if not question.question.strip():
            raise QuizGenerationError(f"Question {i} is empty")
        if len(question.options) != 4:
            raise QuizGenerationError(
                f"Question {i} must have exactly 4 options, got {len(question.options)}"
            )
        if not question.answer.strip():
            raise QuizGenerationError(f"Question {i} has no answer")
        if not question.explanation.strip():
            raise QuizGenerationError(f"Question {i} has no explanation")
        questions.append(question)
    return questions


def parse_quiz_payload(payload: Any) -> List[QuizQuestion]:
    # Accept both {"quiz": [...]} and a bare list of questions
    if isinstance(payload, dict):
        payload = payload.get("quiz")
    return validate_questions(payload)


def validate_quiz_json(data: Any) -> List[QuizQuestion]:
    """Validate a stored or hand-written quiz document.

    Accepts raw JSON text or an already-decoded JSON column value.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise QuizGenerationError(f"Invalid JSON format: {e}")
    return parse_quiz_payload(data)


# --------------------
# Prompt
# --------------------

SYSTEM_PROMPT = (
    "You are an expert literature teacher writing multiple-choice quizzes about books. "
    "Your output must be strict JSON only. No markdown, no prose, no extra text."
)


def build_book_info(book: Book) -> Dict[str, Any]:
    return {
        "title": book.title,
        "authors": book.authors or [],
        "description": book.description or "",
        "categories": book.categories or [],
        "publisher": book.publisher or "",
        "published_date": book.published_date or "",
    }


def build_quiz_prompt(book: Book, questions_count: int) -> str:
    book_info = json.dumps(build_book_info(book), indent=2, ensure_ascii=False)
    return (
        f"Book information:\n{book_info}\n\n"
        f"Create {questions_count} multiple-choice quiz questions about this book.\n"
        "Questions should cover the book's content, themes, author and key points.\n"
        "Give every question 4 options (A, B, C, D) and mark the correct answer.\n"
        "Add a short explanation for every question.\n\n"
        "Return JSON in this schema only:\n"
        "{\n"
        '  "quiz": [\n'
        "    {\n"
        '      "question": "question text",\n'
        '      "options": ["A) option1", "B) option2", "C) option3", "D) option4"],\n'
        '      "answer": "correct option (e.g. B) option2)",\n'
        '      "explanation": "explanation"\n'
        "    }\n"
        "  ]\n"
        "}"
    )


# --------------------
# Generator
# --------------------

class QuizGenerator:
    """Produces quiz questions for a book through Gemini, retrying with backoff."""

    def __init__(
        self,
        model_name: str,
        api_key: str = "",
        questions_count: int = 5,
        retry_limit: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 60.0,
        llm: Optional[Any] = None,
    ):
        self.model_name = model_name
        self.api_key = api_key
        self.questions_count = questions_count
        self.retry_limit = max(1, retry_limit)
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self._llm = llm

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuizGenerator":
        if not settings.GOOGLE_API_KEY:
            logger.warning("GOOGLE_API_KEY is not set, quiz generation will fail")
        return cls(
            model_name=settings.GEMINI_MODEL,
            api_key=settings.GOOGLE_API_KEY,
            questions_count=settings.QUIZ_QUESTIONS_COUNT,
            retry_limit=settings.QUIZ_RETRY_LIMIT,
            backoff_seconds=settings.QUIZ_BACKOFF_SECONDS,
            timeout_seconds=settings.QUIZ_ATTEMPT_TIMEOUT_SECONDS,
        )

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = ChatGoogleGenerativeAI(
                model=self.model_name,
                google_api_key=self.api_key or None,
                temperature=0.7,
                top_k=40,
                top_p=0.95,
                response_mime_type="application/json",
            )
        return self._llm

    def backoff_delay(self, attempt: int) -> float:
        return attempt * self.backoff_seconds

    async def _backoff(self, attempt: int) -> None:
        delay = self.backoff_delay(attempt)
        logger.info(f"Waiting {delay}s before retry...")
        await asyncio.sleep(delay)

    async def generate(self, book: Book) -> QuizDraft:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry_limit + 1):
            logger.info(
                f"[book={book.id}] Generating quiz for '{book.title}' "
                f"(attempt {attempt}/{self.retry_limit})"
            )
            try:
                questions = await self._generate_attempt(book)
            except Exception as e:
                last_error = e
                logger.warning(f"[book={book.id}] Attempt {attempt} failed: {e}")
                if attempt < self.retry_limit:
                    await self._backoff(attempt)
                continue

            logger.info(f"[book={book.id}] Quiz generated successfully for '{book.title}'")
            return QuizDraft(questions=questions, ai_model=self.model_name, attempts=attempt)

        raise QuizGenerationError(
            f"failed to generate quiz after {self.retry_limit} attempts: {last_error}",
            attempts=self.retry_limit,
        )

    async def _generate_attempt(self, book: Book) -> List[QuizQuestion]:
        prompt = build_quiz_prompt(book, self.questions_count)
        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(
                    [
                        SystemMessage(content=SYSTEM_PROMPT),
                        HumanMessage(content=prompt),
                    ]
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise QuizGenerationError(
                f"gemini api call timed out after {self.timeout_seconds}s"
            )
        except QuizGenerationError:
            raise
        except Exception as e:
            raise QuizGenerationError(f"gemini api call failed: {e}")

        content = _response_text(getattr(response, "content", None))
        return parse_quiz_payload(_extract_json(content))
