from __future__ import annotations

from quizflow.game.questions.types import (
    PersonalQuestion,
    PreferenceQuestion,
    QuestionPrompt,
    TrueFalseQuestion,
    YesNoQuestion,
)

TEXT_RETRY_SHORTLY = "Votre réponse précédente est encore en cours de traitement. Réessayez dans un instant."
TEXT_NO_QUESTIONS = "Le quiz n'est pas disponible pour le moment. Un administrateur a été prévenu."
TEXT_SESSION_ENDED = "Quiz arrêté. Envoyez START pour recommencer quand vous voulez."
TEXT_NO_ACTIVE_SESSION = "Aucun quiz en cours. Envoyez START pour commencer."


def _type_hint(prompt: QuestionPrompt) -> str:
    question = prompt.question
    if isinstance(question, TrueFalseQuestion):
        return "Répondez par Vrai ou Faux."
    if isinstance(question, YesNoQuestion):
        return "Répondez par Oui ou Non."
    if isinstance(question, PreferenceQuestion):
        return "Choisissez une option (numéro ou texte)."
    if isinstance(question, PersonalQuestion) and not question.required:
        return "Répondez librement, ou envoyez PASSER pour ignorer."
    return "Répondez librement."


def format_prompt(prompt: QuestionPrompt) -> str:
    question = prompt.question
    lines = [f"Question {prompt.number}/{prompt.total}", "", question.text, "", _type_hint(prompt)]
    if isinstance(question, PreferenceQuestion):
        lines.append("")
        lines.extend(f"{number}. {option}" for number, option in enumerate(question.options, start=1))
    if question.category:
        lines.extend(["", f"Catégorie : {question.category}"])
    return "\n".join(lines)


def format_completion(*, score: int, total_questions: int) -> str:
    return (
        "Merci d'avoir terminé le quiz !\n\n"
        f"Votre score : {score} points ({total_questions} questions)."
    )


def format_clarification(guidance: str, prompt: QuestionPrompt) -> str:
    return f"{guidance}\n\n{format_prompt(prompt)}"
