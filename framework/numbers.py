import math


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, as dashboards display percentages."""
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    """Whole-number percentage of part in total; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)
