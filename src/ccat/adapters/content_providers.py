import json
import os
from collections.abc import Callable

from pydantic import ValidationError

from src.config import ExamConfig
from src.ccat.domain.models import (
    Difficulty,
    Level,
    NonVerbalSubType,
    QuantitativeSubType,
    Question,
    QuestionType,
    VerbalSubType,
)
from src.ccat.domain.ports import IContentProvider
from src.shared.telemetry import Telemetry, measure_time

# Questions per sub-type generated for each level
_PER_SUB_TYPE = {Level.LEVEL_10: 8, Level.LEVEL_11: 12, Level.LEVEL_12: 20}

_ANALOGY_PAIRS = [
    ("Bird", "Nest", "Bee", "Hive", ["Hive", "Honey", "Flower", "Sting"]),
    ("Fish", "Water", "Bird", "Air", ["Air", "Tree", "Feather", "Sky"]),
    ("Pen", "Write", "Knife", "Cut", ["Cut", "Sharp", "Kitchen", "Fork"]),
    ("Glove", "Hand", "Sock", "Foot", ["Foot", "Shoe", "Leg", "Toe"]),
    ("Author", "Book", "Composer", "Symphony", ["Symphony", "Piano", "Concert", "Song"]),
]

_SENTENCES = [
    (
        "Although the test was difficult, Maya felt ___ when she finished.",
        "Bien que l'examen soit difficile, Maya se sentait ___ à la fin.",
        ["confident", "confused", "sleepy", "hungry"],
        ["confiante", "confuse", "endormie", "affamée"],
    ),
    (
        "The bridge was closed ___ the heavy storm.",
        "Le pont était fermé ___ la forte tempête.",
        ["because of", "instead of", "in spite of", "apart from"],
        ["à cause de", "au lieu de", "malgré", "à part"],
    ),
]

_CLASSIFICATION_SETS = [
    (["apple", "banana", "carrot", "cherry"], 2, "A carrot is a vegetable."),
    (["violin", "guitar", "drum", "cello"], 2, "A drum has no strings."),
    (["square", "triangle", "circle", "pentagon"], 2, "A circle has no straight sides."),
]


def _verbal(level: Level, sub_type: VerbalSubType, index: int) -> Question:
    qid = f"gen-{level.value}-{sub_type.value}-{index}"
    common = {
        "id": qid,
        "type": QuestionType.VERBAL,
        "sub_type": sub_type.value,
        "level": level,
        "difficulty": level.default_difficulty,
    }
    if sub_type is VerbalSubType.ANALOGIES:
        a, b, c, _, options = _ANALOGY_PAIRS[index % len(_ANALOGY_PAIRS)]
        return Question(
            stem=f"{a} is to {b} as {c} is to:",
            stem_fr=f"{a} est à {b} comme {c} est à:",
            options=options,
            correct_index=0,
            explanation=f"The same relationship links {a} to {b} and {c} to {options[0]}.",
            **common,
        )
    if sub_type is VerbalSubType.SENTENCE_COMPLETION:
        stem, stem_fr, options, options_fr = _SENTENCES[index % len(_SENTENCES)]
        return Question(
            stem=stem,
            stem_fr=stem_fr,
            options=options,
            options_fr=options_fr,
            correct_index=0,
            explanation="Only the first option fits the meaning of the sentence.",
            **common,
        )
    words, odd, why = _CLASSIFICATION_SETS[index % len(_CLASSIFICATION_SETS)]
    return Question(
        stem="Which word does NOT belong with the others?",
        stem_fr="Quel mot n'appartient PAS au groupe?",
        options=words,
        correct_index=odd,
        explanation=why,
        **common,
    )


def _quantitative(level: Level, sub_type: QuantitativeSubType, index: int) -> Question:
    qid = f"gen-{level.value}-{sub_type.value}-{index}"
    common = {
        "id": qid,
        "type": QuestionType.QUANTITATIVE,
        "sub_type": sub_type.value,
        "level": level,
        "difficulty": level.default_difficulty,
    }
    base = {Level.LEVEL_10: 2, Level.LEVEL_11: 3, Level.LEVEL_12: 4}[level]

    if sub_type is QuantitativeSubType.NUMBER_ANALOGIES:
        n1 = base + index % 10
        n3 = n1 + 1
        answer = n3 * 2
        options = [str(answer), str(answer - 1), str(answer + 1), str(answer * 2)]
        return Question(
            stem=f"{n1} : {n1 * 2} :: {n3} : ?",
            stem_fr=f"{n1} : {n1 * 2} :: {n3} : ?",
            options=options,
            options_fr=options,
            correct_index=0,
            explanation="The relationship is multiply by 2.",
            explanation_fr="La relation est multiplier par 2.",
            **common,
        )
    if sub_type is QuantitativeSubType.QUANTITATIVE_ANALOGIES:
        a, b = base + index % 7, base + 1 + index % 5
        total = a + b
        options = [str(total), str(total - 1), str(total + 1), str(total - 2)]
        return Question(
            stem=f"If {a - 1} + {b - 1} = {total - 2}, then {a} + {b} = ?",
            stem_fr=f"Si {a - 1} + {b - 1} = {total - 2}, alors {a} + {b} = ?",
            options=options,
            options_fr=options,
            correct_index=0,
            explanation=f"Simple addition: {a} + {b} = {total}.",
            **common,
        )
    x, y = base + index % 4, base + 5
    target = x * y
    options = [f"{x} + {y}", f"{x} - {y}", f"{x} × {y}", f"{y} - {x}"]
    return Question(
        stem=f"Using {x} and {y}, which expression equals {target}?",
        stem_fr=f"En utilisant {x} et {y}, quelle expression égale {target}?",
        options=options,
        options_fr=options,
        correct_index=2,
        explanation=f"{x} × {y} = {target}.",
        **common,
    )


_NON_VERBAL_TEXT = {
    NonVerbalSubType.FIGURE_MATRICES: (
        "Complete the pattern in this 2×2 matrix.",
        "Complétez le motif dans cette matrice 2×2.",
        ["Option A", "Option B", "Option C", "Option D"],
    ),
    NonVerbalSubType.FIGURE_CLASSIFICATION: (
        "Which figure does NOT belong with the others?",
        "Quelle figure n'appartient PAS avec les autres?",
        ["Figure A", "Figure B", "Figure C", "Figure D"],
    ),
    NonVerbalSubType.FIGURE_SERIES: (
        "What comes next in this series?",
        "Que vient ensuite dans cette série?",
        ["Next A", "Next B", "Next C", "Next D"],
    ),
}


def _non_verbal(level: Level, sub_type: NonVerbalSubType, index: int) -> Question:
    stem, stem_fr, options = _NON_VERBAL_TEXT[sub_type]
    return Question(
        id=f"gen-{level.value}-{sub_type.value}-{index}",
        type=QuestionType.NON_VERBAL,
        sub_type=sub_type.value,
        level=level,
        difficulty=level.default_difficulty,
        stem=stem,
        stem_fr=stem_fr,
        options=options,
        correct_index=index % len(options),
        explanation="The figures follow one consistent rule.",
        image_name=f"{sub_type.value}_{index % 10}",
    )


_BUILDERS: list[tuple[list, Callable[..., Question]]] = [
    (list(VerbalSubType), _verbal),
    (list(QuantitativeSubType), _quantitative),
    (list(NonVerbalSubType), _non_verbal),
]


def synthetic_filler(question_type: QuestionType, index: int) -> Question:
    """Volume top-up question. Difficulty cycles easy, medium, hard."""
    difficulty = list(Difficulty)[index % len(Difficulty)]
    if question_type is QuestionType.VERBAL:
        sub_type = VerbalSubType.ANALOGIES.value
        stem = f"SYN_{index % 50} is to A as SYN_{index % 50}B is to:"
        options = ["X", "Y", "Z", "W"]
        correct = 0
    elif question_type is QuestionType.QUANTITATIVE:
        sub_type = QuantitativeSubType.NUMBER_ANALOGIES.value
        a = index % 20 + 2
        stem = f"{a} : {a * a} :: {a + 1} : ?"
        options = [str(a * a + 1), str((a + 1) ** 2), str(a * a - 1), str(a * a + 2)]
        correct = 1
    else:
        sub_type = NonVerbalSubType.FIGURE_SERIES.value
        stem = f"Select the figure continuing pattern #{index % 40}"
        options = ["A", "B", "C", "D"]
        correct = index % 4

    return Question(
        id=f"syn-{question_type.value}-{index}",
        type=question_type,
        sub_type=sub_type,
        level=Level.LEVEL_12,
        difficulty=difficulty,
        stem=stem,
        options=options,
        correct_index=correct,
        explanation="Generated practice item.",
    )


class GeneratedContentProvider(IContentProvider):
    """
    Procedural corpus: every level gets every sub-type, sized by level.
    With `min_per_type` set, each question type is topped up with synthetic
    level-12 items until it reaches that volume across all levels.
    """

    def __init__(self, min_per_type: int = ExamConfig.MIN_QUESTIONS_PER_TYPE) -> None:
        self.min_per_type = min_per_type
        self.telemetry = Telemetry("GeneratedContentProvider")

    @measure_time("generate_questions")
    def load_questions(self) -> list[Question]:
        questions: list[Question] = []
        for level in Level:
            for sub_types, build in _BUILDERS:
                for sub_type in sub_types:
                    for i in range(_PER_SUB_TYPE[level]):
                        questions.append(build(level, sub_type, i))

        questions.extend(self.ensure_minimum_volume(questions))
        self.telemetry.log_info("Generated corpus", total=len(questions))
        return questions

    def ensure_minimum_volume(self, questions: list[Question]) -> list[Question]:
        """Returns the filler needed so every type reaches `min_per_type`."""
        filler: list[Question] = []
        for question_type in QuestionType:
            current = sum(1 for q in questions if q.type is question_type)
            needed = self.min_per_type - current
            if needed > 0:
                filler.extend(synthetic_filler(question_type, i) for i in range(needed))
        return filler


class JsonContentProvider(IContentProvider):
    """
    Loads a JSON seed file holding a list of question dicts.
    A missing or malformed file yields an empty corpus; the bank then falls
    back to placeholders.
    """

    def __init__(self, seed_file: str = ExamConfig.SEED_FILE) -> None:
        self.seed_file = seed_file
        self.telemetry = Telemetry("JsonContentProvider")

    def load_questions(self) -> list[Question]:
        if not os.path.exists(self.seed_file):
            self.telemetry.log_error(
                "Seed file NOT found", FileNotFoundError(f"Missing: {self.seed_file}")
            )
            return []

        try:
            with open(self.seed_file, encoding="utf-8") as f:
                data = json.load(f)
            questions = [Question(**q) for q in data]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            self.telemetry.log_error("Seed file unreadable", e, path=self.seed_file)
            return []

        self.telemetry.log_info(f"Loaded {len(questions)} questions.")
        return questions
