# SPDX-License-Identifier: AGPL-3.0-only

"""
Recommendation synthesis.

Turns the raw recommendation strings of an article's links into a short,
categorized action plan: strings are routed into buckets by ordered keyword
rules, near-duplicates are dropped, buckets backed only by old documents are
marked stale, and the result is rendered as three numbered sections.
"""

import re
from datetime import date
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from .config import config
from .models import ActionPlan, PlanBucket, RecommendationEvidence

BUCKET_ANALYSES = "analyses"
BUCKET_IMAGING = "imaging"
BUCKET_CARDIAC = "cardiac"
BUCKET_CONSULTATIONS = "consultations"
BUCKET_HOSPITALIZATION = "hospitalization"
BUCKET_DOCUMENTATION = "documentation"
BUCKET_REPEAT = "repeat"
BUCKET_OTHER = "other"


# Specialists a plan may send the person to; stems match every case form
SPECIALTIES: List[str] = [
    "аллерголог", "гастроэнтеролог", "гематолог", "гинеколог", "дерматолог",
    "кардиолог", "нарколог", "невролог", "нейрохирург", "нефролог", "окулист",
    "онколог", "ортопед", "отоларинголог", "офтальмолог", "психиатр", "психолог",
    "пульмонолог", "ревматолог", "стоматолог", "терапевт", "травматолог",
    "уролог", "хирург", "эндокринолог", "ЛОР",
]

_SPECIALTY_PATTERN = re.compile(
    r"(?<![а-яё])(" + "|".join(sorted(SPECIALTIES, key=len, reverse=True)) + r")(?:[а-яё]*)",
    re.IGNORECASE,
)


def _rule(pattern: str) -> Callable[[str], bool]:
    compiled: Pattern = re.compile(pattern, re.IGNORECASE)
    return lambda text: compiled.search(text) is not None


def _any_rule(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: any(predicate(text) for predicate in predicates)


# Ordered (predicate, bucket) rules, first match wins
BUCKET_RULES: List[Tuple[Callable[[str], bool], str]] = [
    (_rule(r"анализ|кров|моч[аиеу]|биохим|\bОАК\b|\bОАМ\b|гормон|\bТТГ\b|глюкоз|холестерин"), BUCKET_ANALYSES),
    (_rule(r"\bМРТ\b|\bКТ\b|рентген|\bУЗИ\b|томограф|флюорограф|денситометр"), BUCKET_IMAGING),
    (_rule(r"\bЭКГ\b|холтер|\bЭхоКГ\b|\bСМАД\b|ритм|велоэргометр"), BUCKET_CARDIAC),
    (_any_rule(_rule(r"консультац|осмотр|при[её]м"), lambda text: _SPECIALTY_PATTERN.search(text) is not None),
     BUCKET_CONSULTATIONS),
    (_rule(r"стационар|госпитализ"), BUCKET_HOSPITALIZATION),
    (_rule(r"выписк|справк|карт[аыуе]|архив|документ"), BUCKET_DOCUMENTATION),
    (_rule(r"повтор|обнов|актуализ|пересда|контрол"), BUCKET_REPEAT),
]

BUCKET_ORDER = [
    BUCKET_ANALYSES,
    BUCKET_IMAGING,
    BUCKET_CARDIAC,
    BUCKET_CONSULTATIONS,
    BUCKET_HOSPITALIZATION,
    BUCKET_DOCUMENTATION,
    BUCKET_REPEAT,
    BUCKET_OTHER,
]

# (plain form, stale form)
BUCKET_TEMPLATES: Dict[str, Tuple[str, str]] = {
    BUCKET_ANALYSES: ("Сдать анализы: {items}.", "Обновить анализы: {items}"),
    BUCKET_IMAGING: ("Пройти инструментальные обследования: {items}.", "Повторить инструментальные обследования: {items}"),
    BUCKET_CARDIAC: ("Пройти исследования сердца: {items}.", "Повторить исследования сердца: {items}"),
    BUCKET_CONSULTATIONS: ("Получить консультации специалистов: {items}.", "Повторно получить консультации специалистов: {items}"),
    BUCKET_HOSPITALIZATION: ("Пройти обследование в стационаре: {items}.", "Повторно пройти обследование в стационаре: {items}"),
    BUCKET_DOCUMENTATION: ("Собрать медицинские документы: {items}.", "Обновить медицинские документы: {items}"),
    BUCKET_REPEAT: ("Повторить: {items}.", "Повторить: {items}"),
    BUCKET_OTHER: ("Также: {items}.", "Также обновить: {items}"),
}
STALE_SUFFIX = " (последние данные {months} мес. назад)."

# Export sections and the buckets routed into each
SECTIONS: List[Tuple[str, List[str]]] = [
    ("Анализы", [BUCKET_ANALYSES]),
    ("Обследования", [
        BUCKET_IMAGING, BUCKET_CARDIAC, BUCKET_HOSPITALIZATION,
        BUCKET_REPEAT, BUCKET_DOCUMENTATION, BUCKET_OTHER,
    ]),
    ("Консультации", [BUCKET_CONSULTATIONS]),
]

OUTDATED_ADVISORY = (
    "Большинство документов устарело: перед медицинским освидетельствованием "
    "рекомендуется обновить обследования."
)

def classify(text: str) -> str:
    """Return the first bucket whose rule matches the string."""
    for predicate, bucket in BUCKET_RULES:
        if predicate(text):
            return bucket
    return BUCKET_OTHER


def dedup_key(text: str, prefix_length: int) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())[:prefix_length]


def is_near_duplicate(candidate: str, kept: str, prefix_length: int) -> bool:
    """True when one string's first prefix_length characters start the other's."""
    a = dedup_key(candidate, prefix_length)
    b = dedup_key(kept, prefix_length)
    return a.startswith(b) or b.startswith(a)


def extract_specialties(items: List[str]) -> List[str]:
    """Collect specialist names mentioned in the strings, in order of appearance."""
    found: List[str] = []
    for item in items:
        for match in _SPECIALTY_PATTERN.finditer(item):
            name = match.group(1)
            name = "ЛОР" if name.upper() == "ЛОР" else name.lower()
            if name not in found:
                found.append(name)
    return found


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from earlier to later."""
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if later.day < earlier.day:
        months -= 1
    return max(0, months)


def subtract_months(day: date, months: int) -> date:
    year, month = divmod(day.year * 12 + (day.month - 1) - months, 12)
    month += 1
    # clamp to the last day of the target month
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, min(day.day, candidate))
        except ValueError:
            continue
    return date(year, month, 28)


class RecommendationSynthesizer:
    """Pure action-plan builder; today is always passed in."""

    def __init__(self, staleness_months: Optional[int] = None, prefix_length: Optional[int] = None):
        synthesis = config.get_synthesis_config()
        self.staleness_months = staleness_months if staleness_months is not None else synthesis["staleness_months"]
        self.prefix_length = prefix_length if prefix_length is not None else synthesis["dedup_prefix_length"]

    def synthesize(self, evidence: List[RecommendationEvidence], today: date) -> ActionPlan:
        """
        Build the action plan for one article.

        Args:
            evidence: Recommendations of each link with its document date
            today: Reference date for staleness

        Returns:
            Bucketed plan with rendered text
        """
        cutoff = subtract_months(today, self.staleness_months)

        flattened: List[Tuple[str, Optional[date]]] = []
        for entry in evidence:
            for text in entry.recommendations:
                text = (text or "").strip()
                if text:
                    flattened.append((text, entry.document_date))

        grouped: Dict[str, List[Tuple[str, Optional[date]]]] = {}
        for text, doc_date in flattened:
            grouped.setdefault(classify(text), []).append((text, doc_date))

        buckets = []
        for name in BUCKET_ORDER:
            if name in grouped:
                buckets.append(self._build_bucket(name, grouped[name], today, cutoff))

        old_count = sum(1 for _, d in flattened if d is not None and d < cutoff)
        mostly_outdated = bool(flattened) and old_count * 2 > len(flattened)

        plan = ActionPlan(buckets=buckets, mostly_outdated=mostly_outdated)
        plan.text = self.render(plan)
        return plan

    def _build_bucket(self, name: str, entries: List[Tuple[str, Optional[date]]],
                      today: date, cutoff: date) -> PlanBucket:
        kept: List[str] = []
        for text, _ in entries:
            if any(is_near_duplicate(text, existing, self.prefix_length) for existing in kept):
                continue
            kept.append(text)

        dates = [d for _, d in entries if d is not None]
        oldest = min(dates) if dates else None
        stale = oldest is not None and oldest < cutoff
        months_old = months_between(oldest, today) if oldest is not None else None

        bucket = PlanBucket(name=name, items=kept, oldest_date=oldest, stale=stale, months_old=months_old)
        bucket.sentence = self._sentence(bucket)
        return bucket

    @staticmethod
    def _sentence(bucket: PlanBucket) -> str:
        items = bucket.items
        if bucket.name == BUCKET_CONSULTATIONS:
            items = extract_specialties(bucket.items) or bucket.items
        joined = "; ".join(items)

        plain, stale = BUCKET_TEMPLATES[bucket.name]
        if bucket.stale:
            return stale.format(items=joined) + STALE_SUFFIX.format(months=bucket.months_old)
        return plain.format(items=joined)

    @staticmethod
    def render(plan: ActionPlan) -> str:
        """Render the three numbered sections plus the advisory line."""
        lines = []
        number = 0
        for title, bucket_names in SECTIONS:
            sentences = [
                b.sentence for name in bucket_names
                for b in [plan.bucket(name)] if b is not None
            ]
            if not sentences:
                continue
            number += 1
            lines.append(f"{number}. {title}:")
            lines.extend(f"   - {s}" for s in sentences)

        if plan.mostly_outdated:
            lines.append(OUTDATED_ADVISORY)
        return "\n".join(lines)
