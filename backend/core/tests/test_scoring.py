import pytest

from core import scoring
from core.nutrients import Nutrients


def test_empty_nutrients_score_zero_grade_b():
    assert scoring.score(Nutrients()) == ("B", 0)
    assert scoring.score(None) == ("B", 0)


@pytest.mark.parametrize("value,grade", [
    (-15, "A"), (-1, "A"), (0, "B"), (2, "B"), (3, "C"), (10, "C"),
    (11, "D"), (18, "D"), (19, "E"), (40, "E"),
])
def test_grade_boundaries(value, grade):
    assert scoring.grade_from_score(value) == grade


@pytest.mark.parametrize("thresholds,value,points", [
    (scoring.SUGAR_G, 4.5, 0),
    (scoring.SUGAR_G, 4.6, 1),
    (scoring.SUGAR_G, 45, 9),
    (scoring.SUGAR_G, 45.1, 10),
    (scoring.SAT_FAT_G, 0, 0),
    (scoring.SAT_FAT_G, 10.5, 10),
    (scoring.SODIUM_MG, 90, 0),
    (scoring.SODIUM_MG, 901, 10),
    (scoring.FIBER_G, 0.9, 0),
    (scoring.FIBER_G, 4.8, 5),
    (scoring.PROTEIN_G, 8.0, 4),
    (scoring.PROTEIN_G, 8.1, 5),
])
def test_step_points_edges(thresholds, value, points):
    assert scoring.step_points(value, thresholds) == points


def test_energy_is_banded_in_kilojoules():
    # 80 kcal = 334.7 kJ, 81 kcal = 338.9 kJ
    assert scoring.energy_points(80) == 0
    assert scoring.energy_points(81) == 1
    assert scoring.energy_points(900) == 10


@pytest.mark.parametrize("field,values", [
    ("energy_kcal", range(0, 1000, 7)),
    ("sugar_g", [x / 2 for x in range(0, 120)]),
    ("saturated_fat_g", [x / 4 for x in range(0, 60)]),
    ("sodium_mg", range(0, 1200, 13)),
])
def test_negative_points_never_decrease(field, values):
    previous = -1
    for v in values:
        pts = scoring.negative_points(Nutrients(**{field: float(v)}))
        assert pts >= previous
        previous = pts


def test_typical_label():
    n = Nutrients(energy_kcal=120, sugar_g=9, saturated_fat_g=1, sodium_mg=150,
                  fiber_g=2, protein_g=3)
    # N = 1 + 1 + 0 + 1, P = 2 + 1
    assert scoring.score(n) == ("B", 0)


def test_worst_case_is_e():
    n = Nutrients(energy_kcal=900, sugar_g=60, saturated_fat_g=20, sodium_mg=2000)
    assert scoring.score(n) == ("E", 40)


def test_protein_counts_even_when_negative_points_are_high():
    # The reference algorithm would ignore protein here (N >= 11, no fruit).
    assert scoring.PROTEIN_CAP_APPLIED is False
    base = Nutrients(energy_kcal=500, sugar_g=30, saturated_fat_g=6)
    with_protein = Nutrients(energy_kcal=500, sugar_g=30, saturated_fat_g=6, protein_g=20)
    assert scoring.negative_points(base) >= 11
    assert scoring.score(with_protein)[1] == scoring.score(base)[1] - 5
