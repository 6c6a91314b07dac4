# SPDX-License-Identifier: AGPL-3.0-only

"""
Extended medical questionnaire.

Fifteen fixed anamnesis sections. Answers are rendered into a plain-text
document that is stored like any other document and analyzed through the text
path of the orchestrator.
"""

from datetime import date
from typing import Dict, List, NamedTuple, Optional

from .errors import MalformedInputError

QUESTIONNAIRE_TITLE = "РАСШИРЕННЫЙ МЕДИЦИНСКИЙ ОПРОСНИК ПРИЗЫВНИКА"
UNANSWERED = "Не заполнено"


class Question(NamedTuple):
    id: str
    label: str
    hint: Optional[str] = None


class Section(NamedTuple):
    id: str
    title: str
    questions: List[Question]


QUESTIONNAIRE_SECTIONS: List[Section] = [
    Section("1", "Общий и инфекционный анамнез", [
        Question("1.1", "Переносили ли вы тяжёлые инфекционные заболевания (пневмония, менингит, гепатиты, "
                        "COVID-19 с осложнениями, туберкулёз и др.)?",
                 "Укажите возраст, длительность, была ли госпитализация, осложнения."),
        Question("1.2", "Были ли частые ОРВИ (более 4–5 раз в год), затяжные инфекции, длительное "
                        "восстановление после болезней?"),
        Question("1.3", "Есть ли хронические очаги инфекции (тонзиллит, синусит, кариес)?"),
    ]),
    Section("2", "Онкологический и дерматологический статус", [
        Question("2.1", "Есть ли невусы (крупные, выступающие, травмируемые, изменяющиеся в размере/цвете)?"),
        Question("2.2", "Имеются ли доброкачественные новообразования (липомы, фибромы, гемангиомы и др.)?"),
        Question("2.3", "Наблюдались ли у дерматолога или онколога? Проводилась ли дерматоскопия, "
                        "удаление образований?"),
    ]),
    Section("3", "Система крови и гемостаз", [
        Question("3.1", "Бывает ли кровоточивость дёсен, носовые кровотечения?",
                 "Как часто, спонтанно или после нагрузки?"),
        Question("3.2", "Бывают ли синяки без причины, длительное заживление ран?"),
        Question("3.3", "Диагностировались ли анемия, нарушения свертываемости крови?"),
    ]),
    Section("4", "Эндокринная система и обмен веществ", [
        Question("4.1", "Ваш рост и вес (указать текущие и колебания за последние годы)."),
        Question("4.2", "Наблюдались ли у эндокринолога? По какому поводу?"),
        Question("4.3", "Есть ли сахарный диабет, нарушение толерантности к глюкозе, заболевания "
                        "щитовидной железы?"),
        Question("4.4", "Отмечали ли: хроническую усталость, снижение умственной или физической "
                        "работоспособности, резкие перепады веса, потливость, тремор, сердцебиение?"),
    ]),
    Section("5", "Психоэмоциональное состояние", [
        Question("5.1", "Бывали ли эпизоды депрессии, тревоги, апатии, панических атак?",
                 "Длительность, частота, обращались ли к врачу?"),
        Question("5.2", "Насколько быстро и резко меняется настроение?"),
        Question("5.3", "Есть ли: нарушения сна, повышенная утомляемость, раздражительность, трудности "
                        "концентрации внимания?"),
        Question("5.4", "Назначалась ли когда-либо психотерапия или медикаментозное лечение?"),
    ]),
    Section("6", "Неврологический анамнез", [
        Question("6.1", "Наблюдались ли у невролога? Диагнозы?"),
        Question("6.2", "Головные боли: как часто, характер (давящие, пульсирующие), длительность, связь "
                        "с нагрузкой, стрессом, погодой?"),
        Question("6.3", "Сопровождаются ли головные боли тошнотой, рвотой, светобоязнью?"),
        Question("6.4", "Бывали ли обмороки, головокружения, онемение конечностей?"),
        Question("6.5", "Как протекали роды (со слов матери): гипоксия, родовая травма, асфиксия?"),
    ]),
    Section("7", "Органы зрения", [
        Question("7.1", "Есть ли нарушения зрения (близорукость, дальнозоркость, астигматизм)?"),
        Question("7.2", "Пользуетесь ли очками или контактными линзами?"),
        Question("7.3", "Есть ли: быстрая утомляемость глаз, головные боли при зрительной нагрузке, "
                        "двоение, «мушки»?"),
        Question("7.4", "Дата последнего осмотра офтальмолога, данные (если есть)."),
    ]),
    Section("8", "ЛОР-органы и слух", [
        Question("8.1", "Были ли отиты (острые, хронические)?", "Госпитализация или амбулаторное лечение?"),
        Question("8.2", "Есть ли снижение слуха, шум, звон в ушах?"),
        Question("8.3", "Часто ли бывают насморки, синуситы, заложенность носа?"),
        Question("8.4", "Проводились ли КТ/рентген околоносовых пазух, аудиометрия?"),
    ]),
    Section("9", "Сердечно-сосудистая система", [
        Question("9.1", "Есть ли заболевания сердца или сосудов?"),
        Question("9.2", "Бывают ли: перебои в работе сердца, ощущение «замирания», учащённое сердцебиение?"),
        Question("9.3", "Появляются ли боли или покалывания в груди при физической нагрузке?"),
        Question("9.4", "Бывает ли: одышка, мелькание «мушек», шум в ушах, головокружение?"),
        Question("9.5", "Часто ли болели ангинами в детстве?"),
        Question("9.6", "Есть ли наследственные сердечно-сосудистые заболевания у родственников "
                        "(уточнить какие)?"),
        Question("9.7", "Когда последний раз выполняли ЭКГ, ЭхоКГ, Холтер?"),
    ]),
    Section("10", "Дыхательная система и аллергия", [
        Question("10.1", "Есть ли аллергия (пищевая, лекарственная, сезонная)?"),
        Question("10.2", "Бывает ли заложенность носа, слезотечение, чихание весной/летом?"),
        Question("10.3", "Курите ли (стаж, количество)?"),
        Question("10.4", "Отмечали ли нехватку воздуха, давление в грудной клетке, кашель после курения "
                         "или физической нагрузки?"),
        Question("10.5", "Диагностировалась ли бронхиальная астма, обструктивный бронхит?"),
    ]),
    Section("11", "Пищеварительная система и челюстно-лицевой аппарат", [
        Question("11.1", "Есть ли нарушения прикуса?"),
        Question("11.2", "Бывают ли щелчки, боли в височно-нижнечелюстном суставе?"),
        Question("11.3", "Есть ли симптомы со стороны ЖКТ: жжение за грудиной, изжога, отрыжка, боли в животе?"),
        Question("11.4", "Связаны ли боли с приёмом пищи, временем суток, сезоном?"),
        Question("11.5", "Диагностировались ли гастрит, язвенная болезнь, ГЭРБ?"),
    ]),
    Section("12", "Кожа и подкожные структуры", [
        Question("12.1", "Есть ли высыпания, пятна, шелушение, изменения цвета кожи?"),
        Question("12.2", "Меняются ли они со временем, зудят, воспаляются?"),
        Question("12.3", "Обращались ли к дерматологу, проводилось ли лечение?"),
    ]),
    Section("13", "Опорно-двигательный аппарат", [
        Question("13.1", "Отмечали ли плоскостопие (быстро стаптывается обувь)?"),
        Question("13.2", "Есть ли: боли в спине, усталость при длительном стоянии или сидении, "
                         "ограничение подвижности?"),
        Question("13.3", "Бывают ли боли, отёки, воспаление суставов (крупных, мелких)?"),
        Question("13.4", "Диагностировались ли сколиоз, остеохондроз, артриты?"),
    ]),
    Section("14", "Мочевыделительная система", [
        Question("14.1", "Проводилось ли УЗИ почек и мочевого пузыря?"),
        Question("14.2", "Есть ли: боли в пояснице, учащённое или болезненное мочеиспускание, задержка или "
                         "затруднение оттока мочи?"),
        Question("14.3", "Были ли инфекции мочевых путей, изменения в анализах мочи?"),
    ]),
    Section("15", "Хирургический и травматологический анамнез", [
        Question("15.1", "Были ли операции (какие, когда, осложнения)?"),
        Question("15.2", "Переносили ли травмы, переломы, ЧМТ, вывихи?"),
        Question("15.3", "Есть ли последствия травм (боли, ограничения, неврологические симптомы)?"),
        Question("15.4", "Есть ли пищевая или медикаментозная аллергия?"),
    ]),
]


def question_ids() -> List[str]:
    return [q.id for s in QUESTIONNAIRE_SECTIONS for q in s.questions]


def filled_answers(answers: Dict[str, str]) -> Dict[str, str]:
    """Keep non-blank answers to known questions."""
    known = set(question_ids())
    return {
        qid: value.strip()
        for qid, value in (answers or {}).items()
        if qid in known and isinstance(value, str) and value.strip()
    }


def questionnaire_title(filled_on: date) -> str:
    return f"Медицинский опросник от {filled_on.strftime('%d.%m.%Y')}"


def render_questionnaire(answers: Dict[str, str], filled_on: date) -> str:
    """
    Render answers into the questionnaire document text.

    Raises:
        MalformedInputError: if no question has a non-blank answer
    """
    filled = filled_answers(answers)
    if not filled:
        raise MalformedInputError("Заполните хотя бы один вопрос", detail="no answered questions")

    lines = [QUESTIONNAIRE_TITLE, f"Дата заполнения: {filled_on.strftime('%d.%m.%Y')}", ""]
    for section in QUESTIONNAIRE_SECTIONS:
        lines.append(f"{section.id}. {section.title.upper()}")
        lines.append("")
        for question in section.questions:
            lines.append(f"{question.id}. {question.label}")
            lines.append(f"Ответ: {filled.get(question.id, UNANSWERED)}")
            lines.append("")
        lines.append("")
    return "\n".join(lines)
