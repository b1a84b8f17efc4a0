"""
Database adapters for the question pool and composed quizzes.
"""
from .question_pool import QuestionPool
from .quiz_store import QuizStore

__all__ = ["QuestionPool", "QuizStore"]
