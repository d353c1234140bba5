from __future__ import annotations

import unittest

from gruby_server.services.matching import (
    calculate_confidence_score,
    normalize_ingredient_name,
    tokenize,
)


class NormalizeIngredientNameTest(unittest.TestCase):
    def test_trims_lowercases_and_collapses_whitespace(self):
        self.assertEqual(normalize_ingredient_name("  Chicken   Breast "), "chicken breast")

    def test_handles_empty_values(self):
        self.assertEqual(normalize_ingredient_name(""), "")
        self.assertEqual(normalize_ingredient_name(None), "")

    def test_tokenize_singularizes_and_drops_stop_words(self):
        self.assertEqual(tokenize("Fresh Tomatoes and Berries"), ["tomato", "berry"])
        self.assertEqual(tokenize("glass"), ["glass"])

    def test_tokenize_keeps_stop_words_when_nothing_else_remains(self):
        self.assertEqual(tokenize("the"), ["the"])


class ConfidenceScoreTest(unittest.TestCase):
    def test_identical_text_scores_one(self):
        self.assertEqual(calculate_confidence_score("Chicken Breast", "chicken breast"), 1.0)

    def test_plural_forms_score_as_identical(self):
        self.assertEqual(calculate_confidence_score("tomatoes", "Tomato"), 1.0)

    def test_containment_scores_point_nine(self):
        score = calculate_confidence_score(
            "chicken breast", "Kroger Boneless Skinless Chicken Breasts"
        )
        self.assertEqual(score, 0.9)

    def test_partial_overlap_uses_shared_ratio(self):
        score = calculate_confidence_score("red bell pepper", "Green Bell Pepper")
        self.assertAlmostEqual(score, 0.6667, places=4)

    def test_partial_overlap_is_capped(self):
        score = calculate_confidence_score(
            "alpha beta gamma delta epsilon zeta",
            "alpha beta gamma delta epsilon theta",
        )
        self.assertEqual(score, 0.8)

    def test_stop_word_only_ingredient_matches_on_the_shared_word(self):
        self.assertEqual(calculate_confidence_score("fresh", "Fresh Basil"), 0.9)
        self.assertEqual(calculate_confidence_score("large", "Large Grade A Eggs"), 0.9)

    def test_stop_word_only_description_matches_on_the_shared_word(self):
        self.assertEqual(calculate_confidence_score("Fresh Basil", "fresh"), 0.9)

    def test_stop_word_only_names_without_overlap_score_zero(self):
        self.assertEqual(calculate_confidence_score("small", "Large Grade A Eggs"), 0.0)

    def test_disjoint_text_scores_zero(self):
        self.assertEqual(calculate_confidence_score("basil", "Cheddar Cheese"), 0.0)

    def test_empty_inputs_score_zero(self):
        self.assertEqual(calculate_confidence_score("", "Milk"), 0.0)
        self.assertEqual(calculate_confidence_score("milk", ""), 0.0)

    def test_score_stays_in_range(self):
        pairs = [
            ("olive oil", "Extra Virgin Olive Oil"),
            ("eggs", "Large Brown Eggs 12 ct"),
            ("soy sauce", "Kikkoman Less Sodium Soy Sauce"),
            ("parmesan cheese", "Shredded Parmesan"),
        ]
        for ingredient, description in pairs:
            score = calculate_confidence_score(ingredient, description)
            self.assertGreaterEqual(score, 0.0)
            self.assertLessEqual(score, 1.0)


if __name__ == "__main__":
    unittest.main()
