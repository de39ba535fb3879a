from __future__ import annotations

import unittest

from pydantic import ValidationError

from prose_check.core.masking import mask_entities
from prose_check.core.reconcile import (
    ErrorType,
    RawCorrection,
    adjust_for_masks,
    extract_context,
    normalize_category,
    resolve,
)

from fakes import FakeEntityRecognizer


def _raw(original, suggestion, start=None, end=None, category="grammar", explanation=""):
    return RawCorrection(
        category=category,
        start_index=start,
        end_index=end,
        original_text=original,
        suggested_replacement=suggestion,
        explanation=explanation,
    )


class RawCorrectionTests(unittest.TestCase):
    def test_accepts_legacy_keys(self):
        corr = RawCorrection.model_validate(
            {"type": "spelling", "original": "teh", "suggestion": "the", "start": 0, "end": 3}
        )
        self.assertEqual(corr.category, "spelling")
        self.assertEqual((corr.start_index, corr.end_index), (0, 3))
        self.assertEqual(corr.original_text, "teh")
        self.assertEqual(corr.suggested_replacement, "the")
        self.assertEqual(corr.explanation, "")

    def test_null_explanation_and_unknown_fields(self):
        corr = RawCorrection.model_validate(
            {"original_text": "a", "suggested_replacement": "b", "explanation": None, "confidence": 0.9}
        )
        self.assertEqual(corr.explanation, "")
        self.assertIsNone(corr.start_index)

    def test_missing_text_fields_rejected(self):
        with self.assertRaises(ValidationError):
            RawCorrection.model_validate({"category": "grammar", "start_index": 1})


class HelpersTests(unittest.TestCase):
    def test_normalize_category(self):
        self.assertIs(normalize_category("Spelling"), ErrorType.SPELLING)
        self.assertIs(normalize_category("misspelled"), ErrorType.SPELLING)
        self.assertIs(normalize_category("style"), ErrorType.STYLE)
        self.assertIs(normalize_category("tone"), ErrorType.STYLE)
        self.assertIs(normalize_category("punctuation"), ErrorType.GRAMMAR)
        self.assertIs(normalize_category(""), ErrorType.GRAMMAR)
        self.assertIs(normalize_category(None), ErrorType.GRAMMAR)

    def test_extract_context(self):
        text = "one two three four five six seven eight nine"
        start = text.index("five")
        end = start + len("five")
        self.assertEqual(
            extract_context(text, start, end),
            ("one two three four", "six seven eight nine"),
        )
        self.assertEqual(extract_context(text, start, end, words=2), ("three four", "six seven"))
        self.assertEqual(extract_context(text, 0, 3, words=2), ("", "two three"))
        self.assertEqual(extract_context(text, start, end, words=0), ("", ""))


class AdjustForMasksTests(unittest.TestCase):
    def test_shift_by_preceding_tokens(self):
        text = "Hello World, Paris is nice."
        masked = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))
        start = masked.masked_text.index("is nice")
        self.assertEqual(start, 30)

        [adjusted] = adjust_for_masks(
            [_raw("is nice", "is lovely", start, start + 7)],
            masked.masked_text,
            masked.entities,
        )
        self.assertEqual((adjusted.start_index, adjusted.end_index), (19, 26))
        self.assertEqual(text[19:26], "is nice")

    def test_tokens_after_correction_do_not_shift(self):
        text = "He go to Paris."
        masked = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))
        [adjusted] = adjust_for_masks([_raw("go", "goes", 3, 5)], masked.masked_text, masked.entities)
        self.assertEqual((adjusted.start_index, adjusted.end_index), (3, 5))

    def test_missing_indices_pass_through(self):
        corr = _raw("go", "goes")
        self.assertEqual(adjust_for_masks([corr], "go", []), [corr])


class ResolveTests(unittest.TestCase):
    def test_masked_chunk_maps_to_document_offsets(self):
        text = "Hello World, Paris is nice."
        masked = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))
        raw = [_raw("is nice", "is lovely", 30, 37, category="style")]

        [err] = resolve(raw, masked.masked_text, text, masked.entities, 0)

        self.assertEqual((err.start, err.end), (19, 26))
        self.assertEqual(err.word, "is nice")
        self.assertIs(err.type, ErrorType.STYLE)
        self.assertEqual(err.context_before, "Hello World, Paris")

    def test_repeated_word_maps_to_successive_occurrences(self):
        text = "the cat sat on the cat mat"
        raw = [_raw("cat", "dog", 0, 0), _raw("cat", "dog", 0, 0)]

        errors = resolve(raw, text, text, [], 0)

        self.assertEqual([(e.start, e.end) for e in errors], [(4, 7), (19, 22)])

    def test_out_of_order_corrections_found_from_start(self):
        text = "the cat sat on the cat mat"
        errors = resolve([_raw("mat", "rug"), _raw("sat", "sits")], text, text, [], 0)
        self.assertEqual([(e.start, e.end) for e in errors], [(23, 26), (8, 11)])

    def test_chunk_offset_and_document_context(self):
        document = "Intro text here. She go home now."
        chunk = "She go home now."
        offset = document.index(chunk)

        [err] = resolve([_raw("go", "goes")], chunk, chunk, [], offset, document_text=document, source="gpt")

        self.assertEqual((err.start, err.end), (offset + 4, offset + 6))
        self.assertEqual(document[err.start : err.end], "go")
        self.assertEqual(err.context_before, "Intro text here. She")
        self.assertEqual(err.context_after, "home now.")
        self.assertEqual(err.source, "gpt")

    def test_chunk_context_without_document(self):
        [err] = resolve([_raw("go", "goes")], "She go home.", "She go home.", [], 50)
        self.assertEqual((err.start, err.end), (54, 56))
        self.assertEqual((err.context_before, err.context_after), ("She", "home."))

    def test_unfound_text_uses_adjusted_indices(self):
        text = "Hello World, Paris is nice."
        masked = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))
        [err] = resolve([_raw("iz nice", "is nice", 30, 37)], masked.masked_text, text, masked.entities, 10)
        self.assertEqual((err.start, err.end), (29, 36))

    def test_unplaceable_correction_collapses_to_cursor(self):
        text = "the cat sat"
        raw = [_raw("cat", "dog"), _raw("xyz", "abc", 50, 60)]

        with self.assertLogs("prose_check.core.reconcile", level="WARNING"):
            errors = resolve(raw, text, text, [], 5)

        self.assertEqual((errors[1].start, errors[1].end), (12, 12))

    def test_tokens_in_flagged_text_are_restored(self):
        text = "Hello World, Paris is nice."
        masked = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))
        raw = [_raw("<ENTITY_PLACE_0> is nice", "<ENTITY_PLACE_0> is lovely")]

        [err] = resolve(raw, masked.masked_text, text, masked.entities, 0)

        self.assertEqual(err.word, "Paris is nice")
        self.assertEqual(err.suggestion, "Paris is lovely")
        self.assertEqual((err.start, err.end), (13, 26))

    def test_to_dict_shape(self):
        [err] = resolve([_raw("go", "goes", explanation="agreement")], "He go.", "He go.", [], 0, source="gpt")
        self.assertEqual(
            err.to_dict(),
            {
                "type": "grammar",
                "word": "go",
                "start": 3,
                "end": 5,
                "suggestion": "goes",
                "explanation": "agreement",
                "contextBefore": "He",
                "contextAfter": ".",
                "source": "gpt",
            },
        )


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
