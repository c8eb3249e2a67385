from fastapi import Request

from bookwise.services.quiz_worker import QuizWorker


def get_quiz_worker(request: Request) -> QuizWorker:
    return request.app.state.quiz_worker
