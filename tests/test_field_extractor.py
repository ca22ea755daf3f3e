import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from field_extractor import (
    DATE_PATTERN,
    MAX_MATCHES,
    TIME_PATTERN,
    extract_fields,
    identify_dates,
    identify_names,
    identify_times,
    is_name,
)

WORDS = [
    "Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot", "Golf", "Hotel",
    "India", "Juliet", "Kilo", "Lima", "Mike", "November", "Oscar",
]


class TestNames(unittest.TestCase):

    def test_two_and_three_capitalized_words_are_names(self):
        grid = [["John Smith", "Ana Maria Lopez"]]
        self.assertEqual(identify_names(grid), ["John Smith", "Ana Maria Lopez"])

    def test_rejects_other_shapes(self):
        for cell in ["John", "John Michael Smith Junior", "JOHN SMITH", "john smith",
                     "McDonald Smith", "John Smith2", "", "   "]:
            with self.subTest(cell=cell):
                self.assertFalse(is_name(cell))

    def test_cells_are_trimmed_and_deduplicated(self):
        grid = [["  John Smith  ", "John Smith"], ["John   Smith", "Ana Lopez"]]
        self.assertEqual(identify_names(grid), ["John Smith", "John   Smith", "Ana Lopez"])

    def test_non_string_cells_are_ignored(self):
        grid = [[None, 42, 3.5, True, "Ana Lopez"]]
        self.assertEqual(identify_names(grid), ["Ana Lopez"])

    def test_capped_in_scan_order(self):
        grid = [[f"Person {word}" for word in WORDS[:8]], [f"Person {word}" for word in WORDS[8:]]]
        names = identify_names(grid)
        self.assertEqual(len(names), MAX_MATCHES)
        self.assertEqual(names, [f"Person {word}" for word in WORDS[:MAX_MATCHES]])


class TestDates(unittest.TestCase):

    def test_supported_formats(self):
        grid = [["15/01/2024", "2024-01-15", "1-2-24", "Due 3/4/2025 at noon"]]
        self.assertEqual(identify_dates(grid), ["15/01/2024", "2024-01-15", "1-2-24", "Due 3/4/2025 at noon"])

    def test_rejects_non_dates(self):
        grid = [["15.01.2024", "2024", "January 15", "12/2024"]]
        self.assertEqual(identify_dates(grid), [])

    def test_dedup_after_trim(self):
        grid = [[" 2024-01-15", "2024-01-15 "]]
        self.assertEqual(identify_dates(grid), ["2024-01-15"])

    def test_only_ascii_digits_count(self):
        grid = [["١٥/٠١/٢٠٢٤", "১৫-০১-২০২৪", "２０２４-０１-１５"]]
        self.assertEqual(identify_dates(grid), [])


class TestTimes(unittest.TestCase):

    def test_supported_formats(self):
        grid = [["14:30", "9:05 pm", "10:00:00 AM", "Meeting at 2:30"]]
        self.assertEqual(identify_times(grid), ["14:30", "9:05 pm", "10:00:00 AM", "Meeting at 2:30"])

    def test_rejects_non_times(self):
        grid = [["1430", "14h30", "ratio 3:1"]]
        self.assertEqual(identify_times(grid), [])

    def test_only_ascii_digits_count(self):
        grid = [["١٤:٣٠", "１４:３０"]]
        self.assertEqual(identify_times(grid), [])


class TestExtractFields(unittest.TestCase):

    def test_cell_can_be_both_date_and_time(self):
        fields = extract_fields([["2024-01-15 10:30", "Ana Lopez"]])
        self.assertEqual(fields, {
            "names": ["Ana Lopez"],
            "dates": ["2024-01-15 10:30"],
            "times": ["2024-01-15 10:30"],
        })

    def test_empty_grid(self):
        self.assertEqual(extract_fields([]), {"names": [], "dates": [], "times": []})

    def test_outputs_are_unique_pattern_matches_capped(self):
        grid = []
        for i in range(30):
            grid.append([f"{i % 28 + 1}/01/2024", f"{i % 12}:{i % 60:02d}", f"Person {WORDS[i % len(WORDS)]}", i])
        fields = extract_fields(grid)

        for key in ("names", "dates", "times"):
            values = fields[key]
            self.assertLessEqual(len(values), MAX_MATCHES)
            self.assertEqual(len(values), len(set(values)))
        self.assertTrue(all(DATE_PATTERN.search(v) for v in fields["dates"]))
        self.assertTrue(all(TIME_PATTERN.search(v) for v in fields["times"]))
        self.assertTrue(all(is_name(v) for v in fields["names"]))


if __name__ == "__main__":
    unittest.main()
