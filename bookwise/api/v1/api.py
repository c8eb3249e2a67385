from fastapi import APIRouter

from bookwise.api.v1.books import router as books_router
from bookwise.api.v1.quizzes import router as quizzes_router

api_router = APIRouter()

# Include routers
api_router.include_router(books_router, prefix="/books", tags=["books"])
api_router.include_router(quizzes_router, prefix="/quiz", tags=["quiz"])
