"""
Tests for text matching against candidate lists.

Every search method is tested against the same input with a matching and a
non-matching candidate, and each case is repeated negated with the opposite
expectation. Regex case sensitivity and the captures returned for
placeholders are tested separately.
"""

import unittest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from modmail_automator.rules.matching import check_text_match
from modmail_automator.rules.schema import SearchOptions

class TestCheckTextMatch(unittest.TestCase):
    def test_search_methods(self):
        """Test each search method, plain and negated"""
        text = "The quick brown fox"
        test_cases = [
            {'match_text': 'ick', 'method': 'includes', 'expected': True},
            {'match_text': 'boo', 'method': 'includes', 'expected': False},
            {'match_text': 'quick', 'method': 'includes-word', 'expected': True},
            {'match_text': 'ick', 'method': 'includes-word', 'expected': False},
            {'match_text': 'the', 'method': 'starts-with', 'expected': True},
            {'match_text': 'quick', 'method': 'starts-with', 'expected': False},
            {'match_text': 'fox', 'method': 'ends-with', 'expected': True},
            {'match_text': 'quick', 'method': 'ends-with', 'expected': False},
            {'match_text': 'the quick brown fox', 'method': 'full-exact', 'expected': True},
            {'match_text': 'quick', 'method': 'full-exact', 'expected': False},
            {'match_text': 'qu[ia]ck', 'method': 'regex', 'expected': True},
            {'match_text': 'qu[ou]ck', 'method': 'regex', 'expected': False},
        ]

        for case in test_cases:
            with self.subTest(case=case):
                options = SearchOptions(search_method=case['method'], case_sensitive=False, negate=False)
                result = check_text_match(text, [case['match_text']], options)
                self.assertEqual(bool(result), case['expected'], f"Failed for {case}")

                negated = SearchOptions(search_method=case['method'], case_sensitive=False, negate=True)
                result = check_text_match(text, [case['match_text']], negated)
                self.assertEqual(bool(result), not case['expected'], f"Failed for negated {case}")

    def test_regex_case_sensitivity(self):
        """Test that regex honours the case sensitivity option"""
        test_cases = [
            {'text': 'Quick', 'pattern': 'Quick', 'case_sensitive': True, 'expected': True,
             'description': 'Matching, case sensitive'},
            {'text': 'Quick', 'pattern': 'quick', 'case_sensitive': False, 'expected': True,
             'description': 'Matching, case insensitive'},
            {'text': 'Quick', 'pattern': 'quick', 'case_sensitive': True, 'expected': False,
             'description': 'Non-matching, case sensitive'},
        ]

        for case in test_cases:
            with self.subTest(case=case):
                options = SearchOptions(search_method='regex', case_sensitive=case['case_sensitive'], negate=False)
                result = check_text_match(case['text'], [case['pattern']], options)
                self.assertEqual(bool(result), case['expected'], f"Failed for {case['description']}")

    def test_literal_case_sensitivity(self):
        """Test that literal methods fold case unless asked not to"""
        self.assertTrue(check_text_match("BAN appeal", ["ban"]))
        self.assertIsNone(check_text_match("BAN appeal", ["ban"], SearchOptions(case_sensitive=True)))

    def test_defaults_to_includes(self):
        """Test that missing options mean a case insensitive substring search"""
        self.assertEqual(check_text_match("Please unban me", ["UNBAN"]), ["UNBAN"])
        self.assertEqual(check_text_match("Please unban me", ["UNBAN"], SearchOptions()), ["UNBAN"])

    def test_first_matching_candidate_wins(self):
        """Test that the first candidate in list order is the one captured"""
        result = check_text_match("appeal my ban", ["nothing", "ban", "appeal"])
        self.assertEqual(result, ["ban"])

    def test_regex_captures(self):
        """Test that regex returns the whole match followed by its groups"""
        options = SearchOptions(search_method='regex')
        result = check_text_match("Order 1234 from shop", [r"order (\d+) from (\w+)"], options)
        self.assertEqual(result, ["Order 1234 from shop", "1234", "shop"])

        # Groups that did not take part in the match become empty strings
        result = check_text_match("abc", [r"(a)(x)?"], options)
        self.assertEqual(result, ["a", "a", ""])

    def test_empty_candidates(self):
        """Test that an empty list never matches, but trivially passes when negated"""
        self.assertIsNone(check_text_match("anything", []))
        self.assertIsNone(check_text_match("anything", None))
        self.assertEqual(check_text_match("anything", [], SearchOptions(negate=True)), [''])

    def test_negated_pass_returns_sentinel(self):
        """Test that a passing negated check returns a truthy empty capture"""
        result = check_text_match("hello", ["goodbye"], SearchOptions(negate=True))
        self.assertEqual(result, [''])
        self.assertIsNone(check_text_match("hello goodbye", ["goodbye"], SearchOptions(negate=True)))

    def test_includes_word_escapes_candidate(self):
        """Test that includes-word treats the candidate as literal text"""
        options = SearchOptions(search_method='includes-word')
        self.assertTrue(check_text_match("is a.b here", ["a.b"], options))
        self.assertIsNone(check_text_match("is axb here", ["a.b"], options))

    def test_unknown_search_method(self):
        """Test that an unknown search method fails fast"""
        options = SearchOptions.model_construct(search_method='sounds-like', case_sensitive=False, negate=False)
        with self.assertRaises(ValueError):
            check_text_match("text", ["text"], options)

if __name__ == '__main__':
    unittest.main()
