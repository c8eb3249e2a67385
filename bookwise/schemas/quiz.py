from pydantic import BaseModel


class WorkerStats(BaseModel):
    """Snapshot of the quiz pipeline.

    Attributes:
        total_books: Number of stored books
        pending / generating / completed / failed: Books per quiz status
        queue_size: Book ids waiting in the in-memory queue
        worker_count: Size of the worker pool
        worker_running: Whether the pool is accepting jobs
    """

    total_books: int = 0
    pending: int = 0
    generating: int = 0
    completed: int = 0
    failed: int = 0
    queue_size: int = 0
    worker_count: int = 0
    worker_running: bool = False


class QuizEnqueueResult(BaseModel):
    book_id: int
    quiz_status: str
    queued: bool
