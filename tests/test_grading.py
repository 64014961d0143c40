import unittest
from datetime import date

from notenmeister.domain.logic.grading import (
    GradeBand,
    calc_overall_average,
    calc_subject_grade,
    format_grade,
    grade_band,
    weighted_average,
)
from notenmeister.domain.models.entities import Grade, GradeType, Subject


def g(grade_type, value, weight=1.0, on=date(2024, 3, 1)):
    return Grade(id=f"{grade_type}-{value}-{weight}", type=GradeType(grade_type), value=value, weight=weight, date=on)


def subject(grades, main=False, final_grade=None):
    return Subject(id="s", name="Fach", is_main_subject=main, grades=tuple(grades), final_grade=final_grade)


class WeightedAverageTests(unittest.TestCase):
    def test_empty_is_zero(self):
        self.assertEqual(weighted_average([]), 0)

    def test_single_grade(self):
        self.assertEqual(weighted_average([g("Ex", 2)]), 2)

    def test_plain_mean(self):
        self.assertEqual(weighted_average([g("Ex", 1), g("Ex", 3)]), 2)

    def test_weights(self):
        self.assertAlmostEqual(weighted_average([g("Ex", 1, 3), g("Ex", 5, 1)]), 2.0)

    def test_zero_weight_sum_is_zero(self):
        self.assertEqual(weighted_average([g("Ex", 3, 0), g("M", 4, 0)]), 0)


class SubjectGradeTests(unittest.TestCase):
    def test_main_subject_sa_counts_double(self):
        grades = [g("SA", 2), g("SA", 4), g("Ex", 1)]
        self.assertAlmostEqual(calc_subject_grade(subject(grades, main=True)), 7 / 3)

    def test_main_subject_only_sa_falls_back(self):
        self.assertAlmostEqual(calc_subject_grade(subject([g("SA", 2)], main=True)), 2.0)

    def test_main_subject_without_sa(self):
        self.assertAlmostEqual(calc_subject_grade(subject([g("Ex", 2), g("MÜ", 3)], main=True)), 2.5)

    def test_minor_subject_only_sa(self):
        self.assertEqual(calc_subject_grade(subject([g("SA", 3)])), 3)

    def test_minor_subject_without_sa(self):
        self.assertEqual(calc_subject_grade(subject([g("Ex", 5)])), 5)

    def test_minor_subject_groups_weighted_equally(self):
        grades = [g("SA", 2), g("Ex", 4), g("M", 4), g("E", 4)]
        self.assertAlmostEqual(calc_subject_grade(subject(grades)), 3.0)

    def test_weights_apply_inside_groups(self):
        grades = [g("SA", 1, 2), g("SA", 4, 1), g("Ex", 3, 1)]
        self.assertAlmostEqual(calc_subject_grade(subject(grades, main=True)), (2 * 2 + 3) / 3)

    def test_empty_subject_is_zero(self):
        self.assertEqual(calc_subject_grade(subject([], main=True)), 0)
        self.assertEqual(calc_subject_grade(subject([], main=False)), 0)

    def test_final_grade_is_ignored(self):
        self.assertEqual(calc_subject_grade(subject([g("Ex", 4)], final_grade=1.0)), 4)

    def test_idempotent_and_no_mutation(self):
        s = subject([g("SA", 2), g("Ex", 3)], main=True)
        before = s.grades
        first = calc_subject_grade(s)
        self.assertEqual(calc_subject_grade(s), first)
        self.assertIs(s.grades, before)


class OverallAverageTests(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calc_overall_average([]), 0)

    def test_ignores_subjects_without_grades(self):
        subjects = [subject([g("Ex", 2)]), subject([])]
        self.assertEqual(calc_overall_average(subjects), 2)

    def test_unweighted_mean_of_subject_grades(self):
        subjects = [subject([g("Ex", 2)]), subject([g("Ex", 4), g("M", 4), g("SA", 4)], main=True)]
        self.assertEqual(calc_overall_average(subjects), 3.0)
        self.assertEqual(calc_overall_average(subjects), 3.0)

    def test_only_empty_subjects(self):
        self.assertEqual(calc_overall_average([subject([]), subject([])]), 0)


class FormattingTests(unittest.TestCase):
    def test_two_decimals(self):
        self.assertEqual(format_grade(2), "2.00")
        self.assertEqual(format_grade(7 / 3), "2.33")

    def test_round_half_away_from_zero(self):
        self.assertEqual(format_grade(2.345), "2.35")
        self.assertEqual(format_grade(2.125), "2.13")
        self.assertEqual(format_grade(2.344), "2.34")
        self.assertEqual(format_grade(-1.005), "-1.01")

    def test_band_boundaries(self):
        cases = [
            (1.0, GradeBand.EXCELLENT),
            (1.5, GradeBand.EXCELLENT),
            (1.51, GradeBand.GOOD),
            (2.5, GradeBand.GOOD),
            (2.51, GradeBand.SATISFACTORY),
            (3.5, GradeBand.SATISFACTORY),
            (3.51, GradeBand.SUFFICIENT),
            (4.5, GradeBand.SUFFICIENT),
            (4.51, GradeBand.POOR),
            (5.5, GradeBand.POOR),
            (5.51, GradeBand.INSUFFICIENT),
            (6.0, GradeBand.INSUFFICIENT),
        ]
        for value, band in cases:
            self.assertEqual(grade_band(value), band, value)


if __name__ == "__main__":
    unittest.main()
