class InvalidQuestionDefinitionError(Exception):
    def __init__(self, question_id: str, problems: list[str]) -> None:
        self.question_id = question_id
        self.problems = problems
        super().__init__(f"question {question_id!r} is invalid: {'; '.join(problems)}")
