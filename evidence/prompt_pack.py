# SPDX-License-Identifier: AGPL-3.0-only

"""
Prompt packs for document analysis.

Image prompts ask for full OCR plus classification. Text prompts (questionnaire
answers, typed-in documents) ask for differential-diagnosis reasoning first:
a free-text complaint cannot be OCR'd from evidence, so every complaint is
expanded into plausible diagnoses and the examinations that confirm or exclude
them before any article is assigned.
"""

from typing import List, Optional

from .models import Article, DocumentType, FITNESS_CATEGORY_LABELS


SYSTEM_PROMPT = (
    "Ты медицинский эксперт военно-врачебной экспертизы. Определяй категорию годности "
    "строго по Расписанию болезней. Отвечай только валидным JSON без пояснений и markdown."
)

DOCUMENT_KIND_LABELS = {
    "analysis": "анализ",
    "examination": "обследование",
    "consultation": "консультация врача",
}

# Truncation limits for free text embedded into prompts
MAX_TEXT_CHARS = 12000
MAX_ARTICLES_IN_PROMPT = 120

RESPONSE_SCHEMA = """{
  "extractedText": "полный текст документа",
  "documentDate": "дата документа в формате ДД.ММ.ГГГГ или null",
  "documentTypeCode": "код типа документа из списка или null",
  "suggestedTitle": "краткое название документа",
  "links": [
    {
      "articleNumber": "номер статьи из списка",
      "category": "буква категории годности (А, Б, В, Г, Д)",
      "confidence": "число от 0 до 100: вероятность, что применяется именно эта статья",
      "explanation": "обоснование в 1-2 предложениях",
      "recommendations": ["какое обследование, анализ или консультация нужны для подтверждения"]
    }
  ],
  "primaryArticleNumber": "номер наиболее вероятной статьи или null",
  "category": "итоговая категория годности",
  "confidence": "число от 0 до 100",
  "explanation": "краткое обоснование итоговой категории (2-3 предложения)",
  "recommendations": ["Пункт 1", "Пункт 2"]
}"""


def _format_categories() -> str:
    return "\n".join(f"- {letter} - {label}" for letter, label in FITNESS_CATEGORY_LABELS.items())


def _format_document_types(document_types: List[DocumentType]) -> str:
    if not document_types:
        return "- (список типов недоступен)"
    return "\n".join(f"- {t.code}: {t.name}" for t in document_types)


def _format_articles(articles: List[Article]) -> str:
    active = [a for a in articles if a.active][:MAX_ARTICLES_IN_PROMPT]
    if not active:
        return "- (каталог статей недоступен)"
    lines = []
    for a in active:
        suffix = f" ({a.category})" if a.category else ""
        lines.append(f"- Статья {a.number}: {a.title}{suffix}")
    return "\n".join(lines)


def _reference_block(document_types: List[DocumentType], articles: List[Article]) -> str:
    return (
        "Категории годности:\n"
        f"{_format_categories()}\n\n"
        "Допустимые типы документов (documentTypeCode):\n"
        f"{_format_document_types(document_types)}\n\n"
        "Допустимые статьи Расписания болезней (articleNumber), используй только номера из этого списка:\n"
        f"{_format_articles(articles)}"
    )


def build_image_prompt(document_types: List[DocumentType], articles: List[Article],
                       document_kind: Optional[str] = None) -> str:
    """
    Build the prompt for a scanned document or photo.

    Args:
        document_types: Canonical document types
        articles: Article catalog
        document_kind: Optional caller hint (analysis, examination, consultation)
    """
    kind_hint = ""
    if document_kind:
        kind_hint = f" (тип, указанный пользователем: {DOCUMENT_KIND_LABELS.get(document_kind, document_kind)})"

    return f"""Проанализируй этот медицинский документ{kind_hint} и выполни следующие задачи:

1. Извлеки весь текст из документа (OCR), включая:
   - название медицинского учреждения
   - дату проведения
   - результаты анализов и обследований
   - заключения врачей и диагнозы
   - рекомендации

2. Определи тип документа и дату документа.

3. Для каждой статьи Расписания болезней, к которой может относиться документ, укажи категорию годности,
   вероятность применения статьи (0-100), обоснование и список недостающих обследований и консультаций.
   Если документ не относится ни к одной статье, верни пустой список links.

{_reference_block(document_types, articles)}

Верни результат строго в формате JSON:
{RESPONSE_SCHEMA}
"""


def build_text_prompt(text: str, document_types: List[DocumentType], articles: List[Article]) -> str:
    """
    Build the prompt for free-form text such as questionnaire answers.

    Args:
        text: Free text submitted by the person
        document_types: Canonical document types
        articles: Article catalog
    """
    return f"""Ниже приведены ответы человека на медицинский опросник или текст медицинского документа.

Текст:
{text[:MAX_TEXT_CHARS]}

Выполни дифференциальную диагностику перед классификацией:

1. Выдели каждую жалобу или сведение об анамнезе.
2. Для каждой жалобы перечисли возможные диагнозы.
3. Для каждого диагноза перечисли обследования, анализы и консультации специалистов,
   необходимые для его подтверждения или исключения.
4. Только после этого сопоставь вероятные диагнозы со статьями Расписания болезней:
   для каждой статьи укажи категорию годности, вероятность применения (0-100), обоснование
   и рекомендации (обследования из шага 3). Жалоба без подтверждающих документов не может давать
   высокую вероятность.

В поле extractedText верни краткое структурированное изложение жалоб.

{_reference_block(document_types, articles)}

Верни результат строго в формате JSON:
{RESPONSE_SCHEMA}
"""
