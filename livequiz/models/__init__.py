from livequiz.models.quiz import Admin, Question, Quiz, QuizStatus
from livequiz.models.state import Answer, Participant

__all__ = ["Admin", "Question", "Quiz", "QuizStatus", "Answer", "Participant"]
