class QuizSessionError(Exception):
    pass


class LockUnavailableError(QuizSessionError):
    pass


class ConcurrentModificationError(QuizSessionError):
    pass


class SessionNotFoundError(QuizSessionError):
    pass


class SessionNotActiveError(QuizSessionError):
    pass


class UnexpectedQuestionError(QuizSessionError):
    def __init__(self, *, expected_question_id: str | None, received_question_id: str) -> None:
        self.expected_question_id = expected_question_id
        self.received_question_id = received_question_id
        super().__init__(
            f"expected answer to {expected_question_id!r}, received {received_question_id!r}"
        )


class InvalidAnswerFormatError(QuizSessionError):
    def __init__(self, guidance: str) -> None:
        self.guidance = guidance
        super().__init__(guidance)


class NoVisibleQuestionsError(QuizSessionError):
    pass


class InvalidParticipantError(QuizSessionError):
    pass
