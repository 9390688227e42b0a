from datetime import timedelta

import pytest

from conftest import FakeClock, create_user, quiz_json
from toefl_quiz.data_access import DataAccess
from toefl_quiz.errors import AlreadyCompleted, Forbidden, Gone, NotFound, PersistenceFailed
from toefl_quiz.grading import percentage, submit_quiz
from toefl_quiz.models import Quiz, utcnow
from toefl_quiz.quiz_service import create_quiz
from toefl_quiz.quota import QuotaManager
from toefl_quiz.rate_limit import RateLimiter
from toefl_quiz.validation import GenerateQuizRequest, SubmitQuizRequest, normalize_and_validate


REQUEST = GenerateQuizRequest.model_validate({"category": "grammar", "difficulty": "medium", "questionsCount": 5})
MISSING_ID = "3f2b8c1e-9d4a-4e5b-8c7d-1a2b3c4d5e6f"


def _make_quiz(db, user_id=None, ip="5.5.5.5"):
    quota = QuotaManager(db, RateLimiter(clock=FakeClock()))
    admission = quota.admit(user_id, {"x-forwarded-for": ip})
    generated = normalize_and_validate(quiz_json(5, answers=["A", "B", "C", "D"]))
    created = create_quiz(db, REQUEST, generated, admission, quota)
    questions = db.get(Quiz, created.quiz_id).questions
    return created, questions


def _submission(quiz_id, questions, answers, time_spent=300):
    return SubmitQuizRequest.model_validate({
        "quizId": quiz_id,
        "answers": [{"questionId": q.id, "answer": a} for q, a in zip(questions, answers) if a is not None],
        "timeSpent": time_spent,
    })


def test_scores_and_persists_answers(db):
    created, questions = _make_quiz(db)
    # Correct key is A B C D A; three right, one wrong, one unanswered
    req = _submission(created.quiz_id, questions, ["A", "B", "C", "A", None])

    result = submit_quiz(db, None, created.session_token, req)

    assert (result.score, result.total, result.percentage, result.time_spent) == (3, 5, 60, 300)
    db.expire_all()
    quiz = db.get(Quiz, created.quiz_id)
    assert quiz.completed and quiz.score == 3 and quiz.time_spent_seconds == 300
    assert [q.user_answer for q in quiz.questions] == ["A", "B", "C", "A", None]
    assert [q.is_correct for q in quiz.questions] == [True, True, True, False, False]


def test_comparison_is_case_sensitive(db):
    created, questions = _make_quiz(db)
    req = _submission(created.quiz_id, questions, ["a", "b", "c", "d", "a"])
    assert submit_quiz(db, None, created.session_token, req).score == 0


def test_second_submission_is_rejected_and_score_kept(db):
    created, questions = _make_quiz(db)
    submit_quiz(db, None, created.session_token, _submission(created.quiz_id, questions, ["A"] * 5))
    with pytest.raises(AlreadyCompleted):
        submit_quiz(db, None, created.session_token, _submission(created.quiz_id, questions, ["A", "B", "C", "D", "A"]))
    db.expire_all()
    assert db.get(Quiz, created.quiz_id).score == 2


def test_guest_quiz_requires_matching_token(db):
    created, questions = _make_quiz(db)
    req = _submission(created.quiz_id, questions, ["A"] * 5)
    with pytest.raises(Forbidden):
        submit_quiz(db, None, None, req)
    with pytest.raises(Forbidden):
        submit_quiz(db, None, "someone-else", req)


def test_expired_guest_quiz_is_gone(db):
    created, questions = _make_quiz(db)
    req = _submission(created.quiz_id, questions, ["A"] * 5)
    later = utcnow() + timedelta(hours=25)
    with pytest.raises(Gone):
        submit_quiz(db, None, created.session_token, req, now=later)
    db.expire_all()
    quiz = db.get(Quiz, created.quiz_id)
    assert not quiz.completed and quiz.score == 0


def test_member_quiz_rejects_other_users_and_guests(db):
    create_user("alice")
    create_user("bob")
    created, questions = _make_quiz(db, user_id="alice")
    req = _submission(created.quiz_id, questions, ["A"] * 5)
    with pytest.raises(Forbidden):
        submit_quiz(db, "bob", None, req)
    with pytest.raises(Forbidden):
        submit_quiz(db, None, None, req)
    assert submit_quiz(db, "alice", None, req).score == 2


def test_unknown_quiz_is_not_found(db):
    req = SubmitQuizRequest.model_validate({"quizId": MISSING_ID, "answers": [], "timeSpent": 0})
    with pytest.raises(NotFound):
        submit_quiz(db, None, None, req)


def test_failed_answer_write_leaves_quiz_incomplete(db, monkeypatch):
    created, questions = _make_quiz(db)

    def broken_record(self, quiz_id, updates):
        raise PersistenceFailed("Failed to save answers")

    monkeypatch.setattr(DataAccess, "record_answers", broken_record)
    with pytest.raises(PersistenceFailed):
        submit_quiz(db, None, created.session_token, _submission(created.quiz_id, questions, ["A"] * 5))
    db.expire_all()
    assert db.get(Quiz, created.quiz_id).completed is False


@pytest.mark.parametrize("correct, total, expected", [(3, 5, 60), (1, 3, 33), (2, 3, 67), (1, 8, 13), (0, 5, 0), (5, 5, 100)])
def test_percentage_rounds_half_up(correct, total, expected):
    assert percentage(correct, total) == expected


def test_overlapping_submission_cannot_overwrite_the_first(db, monkeypatch):
    from toefl_quiz.db import SessionLocal

    created, questions = _make_quiz(db)
    all_right = _submission(created.quiz_id, questions, ["A", "B", "C", "D", "A"])
    all_wrong = _submission(created.quiz_id, questions, ["D"] * 5)
    list_questions = DataAccess.list_questions
    raced = []

    def list_then_race(self, quiz_id):
        rows = list_questions(self, quiz_id)
        if not raced:
            raced.append(True)
            # Another request completes the quiz after this one passed its completed check
            with SessionLocal() as other:
                assert submit_quiz(other, None, created.session_token, all_right).score == 5
        return rows

    monkeypatch.setattr(DataAccess, "list_questions", list_then_race)
    with pytest.raises(AlreadyCompleted):
        submit_quiz(db, None, created.session_token, all_wrong)

    db.expire_all()
    quiz = db.get(Quiz, created.quiz_id)
    assert quiz.completed and quiz.score == 5
    assert [q.user_answer for q in quiz.questions] == ["A", "B", "C", "D", "A"]


def test_long_answers_are_stored_and_graded(db):
    created, questions = _make_quiz(db)
    essay = "A" * 1000
    result = submit_quiz(db, None, created.session_token, _submission(created.quiz_id, questions, [essay] * 5))
    assert result.score == 0
    db.expire_all()
    assert db.get(Quiz, created.quiz_id).questions[0].user_answer == essay
