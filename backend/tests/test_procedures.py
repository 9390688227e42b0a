from datetime import date, datetime, timedelta

from conftest import create_user
from toefl_quiz.models import AuthUser, Quiz, QuizQuestion
from toefl_quiz.procedures import (
    check_and_reserve_quiz_limit,
    cleanup_expired_guest_quizzes,
    remaining_daily_quizzes,
    rollback_quiz_reservation,
    update_user_streak,
)


TODAY = date(2026, 10, 18)


def _user(db, username="alice"):
    db.expire_all()
    return db.get(AuthUser, username)


def test_reservation_stops_at_daily_cap(db):
    create_user("alice")
    results = [check_and_reserve_quiz_limit(db, "alice", 3, TODAY) for _ in range(4)]
    assert results == [True, True, True, False]
    assert _user(db).daily_quizzes_count == 3
    assert remaining_daily_quizzes(db, "alice", 3, TODAY) == 0


def test_counter_resets_on_a_new_day(db):
    create_user("alice", daily_quizzes_count=3, last_quiz_date=TODAY - timedelta(days=1))
    assert check_and_reserve_quiz_limit(db, "alice", 3, TODAY)
    user = _user(db)
    assert user.daily_quizzes_count == 1
    assert user.last_quiz_date == TODAY


def test_unknown_user_has_no_capacity(db):
    assert not check_and_reserve_quiz_limit(db, "ghost", 3, TODAY)


def test_active_pro_subscription_is_unlimited(db):
    create_user("paul", subscription_status="pro", subscription_end=datetime(2099, 1, 1))
    assert all(check_and_reserve_quiz_limit(db, "paul", 3, TODAY) for _ in range(5))
    assert remaining_daily_quizzes(db, "paul", 3, TODAY) is None


def test_lapsed_pro_subscription_is_capped(db):
    create_user("paul", subscription_status="pro", subscription_end=datetime(2000, 1, 1))
    results = [check_and_reserve_quiz_limit(db, "paul", 3, TODAY) for _ in range(4)]
    assert results[-1] is False


def test_rollback_releases_one_slot_and_never_goes_negative(db):
    create_user("alice")
    check_and_reserve_quiz_limit(db, "alice", 3, TODAY)
    rollback_quiz_reservation(db, "alice", TODAY)
    rollback_quiz_reservation(db, "alice", TODAY)
    assert _user(db).daily_quizzes_count == 0


def test_streak_progression(db):
    create_user("alice")
    update_user_streak(db, "alice", TODAY)
    assert _user(db).streak_days == 1
    update_user_streak(db, "alice", TODAY)
    assert _user(db).streak_days == 1
    update_user_streak(db, "alice", TODAY + timedelta(days=1))
    assert _user(db).streak_days == 2
    update_user_streak(db, "alice", TODAY + timedelta(days=5))
    assert _user(db).streak_days == 1


def test_cleanup_removes_only_expired_guest_quizzes(db):
    create_user("alice")
    now = datetime(2026, 10, 18, 12, 0)
    expired = Quiz(session_token="t1", expires_at=now - timedelta(minutes=1), category="grammar",
                   difficulty="easy", questions_count=5)
    live = Quiz(session_token="t2", expires_at=now + timedelta(hours=1), category="grammar",
                difficulty="easy", questions_count=5)
    owned = Quiz(user_id="alice", category="grammar", difficulty="easy", questions_count=5)
    db.add_all([expired, live, owned])
    db.flush()
    db.add(QuizQuestion(quiz_id=expired.id, question_type="multiple_choice", question_text="Q?",
                        options=["A", "B", "C", "D"], correct_answer="A", explanation="E", order_index=0))
    db.commit()

    assert cleanup_expired_guest_quizzes(db, now) == 1
    db.expire_all()
    assert {q.session_token for q in db.query(Quiz).all()} == {"t2", None}
    assert db.query(QuizQuestion).count() == 0


def test_purge_uses_its_own_session():
    from toefl_quiz.cleanup import purge_expired_guest_quizzes
    from toefl_quiz.db import SessionLocal

    with SessionLocal() as session:
        session.add(Quiz(session_token="old", expires_at=datetime(2000, 1, 1), category="reading",
                         difficulty="hard", questions_count=5))
        session.commit()
    assert purge_expired_guest_quizzes(SessionLocal) == 1
    assert purge_expired_guest_quizzes(SessionLocal) == 0
