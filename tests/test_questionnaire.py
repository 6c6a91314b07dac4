# SPDX-License-Identifier: AGPL-3.0-only

"""
Tests for questionnaire rendering.
"""

from datetime import date

import pytest

from evidence.errors import MalformedInputError
from evidence.questionnaire import (
    QUESTIONNAIRE_SECTIONS,
    QUESTIONNAIRE_TITLE,
    UNANSWERED,
    filled_answers,
    question_ids,
    render_questionnaire,
)


class TestQuestionnaire:
    """Test the fixed questionnaire and its text rendering."""

    def test_fifteen_sections_with_unique_ids(self):
        assert len(QUESTIONNAIRE_SECTIONS) == 15
        ids = question_ids()
        assert len(ids) == len(set(ids))
        assert all(qid.split(".")[0] == s.id for s in QUESTIONNAIRE_SECTIONS for qid in (q.id for q in s.questions))

    def test_filled_answers_ignores_blank_and_unknown(self):
        answers = {"1.1": "  Пневмония в 2019 ", "1.2": "   ", "99.9": "лишнее"}

        assert filled_answers(answers) == {"1.1": "Пневмония в 2019"}

    def test_render(self):
        text = render_questionnaire({"9.7": "ЭКГ в 2025 году"}, date(2026, 10, 17))
        lines = text.splitlines()

        assert lines[0] == QUESTIONNAIRE_TITLE
        assert lines[1] == "Дата заполнения: 17.10.2026"
        assert "9. СЕРДЕЧНО-СОСУДИСТАЯ СИСТЕМА" in lines
        assert "Ответ: ЭКГ в 2025 году" in lines
        assert text.count(f"Ответ: {UNANSWERED}") == len(question_ids()) - 1

    def test_render_requires_an_answer(self):
        with pytest.raises(MalformedInputError):
            render_questionnaire({}, date(2026, 10, 17))
