import pytest

from toefl_quiz.prompts import SYSTEM_PROMPT, build_prompt, mixed_prompt


CATEGORIES = ["reading", "grammar", "vocabulary", "listening", "mixed"]
DIFFICULTIES = ["easy", "medium", "hard"]


@pytest.mark.parametrize("category", CATEGORIES)
@pytest.mark.parametrize("difficulty", DIFFICULTIES)
def test_prompts_are_non_empty_and_deterministic(category, difficulty):
    first = build_prompt(category, difficulty, 7)
    second = build_prompt(category, difficulty, 7)
    assert first == second
    assert first.system == SYSTEM_PROMPT
    assert first.task.strip()
    assert '"questions"' in first.task
    assert "correct_answer" in first.task


def test_count_and_difficulty_are_embedded():
    prompt = build_prompt("vocabulary", "hard", 12)
    assert "Generate 12 TOEFL-style vocabulary questions" in prompt.task
    assert "C1-C2" in prompt.task


def test_reading_passage_length_depends_on_difficulty():
    assert "100-150 words" in build_prompt("reading", "easy", 5).task
    assert "150-200 words" in build_prompt("reading", "medium", 5).task
    assert "200-250 words" in build_prompt("reading", "hard", 5).task


def test_grammar_focus_depends_on_difficulty():
    assert "conditionals" in build_prompt("grammar", "medium", 5).task
    assert "basic verb tenses" in build_prompt("grammar", "easy", 5).task


def test_unknown_category_uses_mixed_template():
    assert build_prompt("speaking", "easy", 5).task == mixed_prompt("easy", 5)


def test_template_json_braces_are_rendered():
    task = build_prompt("grammar", "easy", 5).task
    assert "{{" not in task
    assert '"question_type": "error_identification"' in task
