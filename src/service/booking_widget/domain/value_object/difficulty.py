from typing import Tuple


DIFFICULTY_LABELS = {1: 'Easy', 2: 'Easy', 3: 'Medium', 4: 'Hard', 5: 'Extreme'}
DIFFICULTY_LEVELS = {'Easy': 2, 'Medium': 3, 'Hard': 4, 'Extreme': 5}
DEFAULT_DIFFICULTY = ('Medium', 3)


def to_difficulty_label(value: object) -> str:
    if isinstance(value, str):
        for label in DIFFICULTY_LEVELS:
            if value.strip().lower() == label.lower():
                return label
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        label = DIFFICULTY_LABELS.get(int(value))
        if label and int(value) == value:
            return label
    return DEFAULT_DIFFICULTY[0]


def resolve_difficulty(level: object, label: object = None) -> Tuple[int, str]:
    """
    Map legacy encodings to (level 1-5, label)

    A numeric level in range is kept as-is; otherwise the level is derived
    from the label (or from a label-valued `level`).
    """
    resolved_label = to_difficulty_label(label if label is not None else level)
    if isinstance(level, (int, float)) and not isinstance(level, bool) and level in DIFFICULTY_LABELS:
        return int(level), (
            to_difficulty_label(label) if label is not None else DIFFICULTY_LABELS[int(level)]
        )
    return DIFFICULTY_LEVELS[resolved_label], resolved_label
