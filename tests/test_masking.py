from __future__ import annotations

import unittest

from prose_check.core.masking import EntityType, MaskedEntity, mask_entities, unmask_entities
from prose_check.providers.nlp import EntityGroups

from fakes import FailingEntityRecognizer, FakeEntityRecognizer, StaticEntityRecognizer


class MaskEntitiesTests(unittest.TestCase):
    def test_single_place(self):
        text = "Hello World, Paris is nice."
        result = mask_entities(text, FakeEntityRecognizer(places=["Paris"]))

        self.assertEqual(result.masked_text, "Hello World, <ENTITY_PLACE_0> is nice.")
        self.assertEqual(result.original_text, text)
        self.assertEqual(
            result.entities,
            [MaskedEntity("Paris", "<ENTITY_PLACE_0>", 13, 18, EntityType.PLACE)],
        )

    def test_indices_follow_right_to_left_order(self):
        text = "Alice met Bob in Paris."
        rec = FakeEntityRecognizer(people=["Alice", "Bob"], places=["Paris"])
        result = mask_entities(text, rec)

        self.assertEqual(result.masked_text, "<ENTITY_PERSON_2> met <ENTITY_PERSON_1> in <ENTITY_PLACE_0>.")
        self.assertEqual([e.text for e in result.entities], ["Alice", "Bob", "Paris"])
        self.assertEqual([(e.start, e.end) for e in result.entities], [(0, 5), (10, 13), (17, 22)])
        for ent in result.entities:
            self.assertEqual(text[ent.start : ent.end], ent.text)

    def test_round_trip_restores_text(self):
        text = "On March 3 Ann from Acme Corp visited https://acme.example and Berlin."
        rec = FakeEntityRecognizer(
            people=["Ann"],
            places=["Berlin"],
            organizations=["Acme Corp"],
            dates=["March 3"],
            urls=["https://acme.example"],
        )
        result = mask_entities(text, rec)

        self.assertEqual(len(result.entities), 5)
        self.assertNotIn("Berlin", result.masked_text)
        self.assertEqual(unmask_entities(result.masked_text, result.entities), text)

    def test_duplicate_literals_map_to_distinct_occurrences(self):
        text = "Anna saw Anna."
        result = mask_entities(text, FakeEntityRecognizer(people=["Anna"]))

        self.assertEqual([(e.start, e.end) for e in result.entities], [(0, 4), (9, 13)])
        tokens = [e.replacement for e in result.entities]
        self.assertEqual(len(set(tokens)), 2)
        self.assertEqual(unmask_entities(result.masked_text, result.entities), text)

    def test_overlapping_candidates_keep_earlier_longer_span(self):
        text = "Mrs. Smith of Smith Ltd called."
        groups = EntityGroups(people=["Mrs. Smith"], organizations=["Smith", "Smith"])
        result = mask_entities(text, StaticEntityRecognizer(groups))

        self.assertEqual([e.text for e in result.entities], ["Mrs. Smith", "Smith"])
        self.assertEqual(result.entities[1].start, 14)
        self.assertEqual(unmask_entities(result.masked_text, result.entities), text)

    def test_shorter_name_skips_occurrence_inside_longer_one(self):
        text = "Smithson met Smith."
        for people in (["Smithson", "Smith"], ["Smith", "Smithson"]):
            result = mask_entities(text, StaticEntityRecognizer(EntityGroups(people=people)))
            self.assertEqual(result.masked_text, "<ENTITY_PERSON_1> met <ENTITY_PERSON_0>.")
            self.assertEqual([(e.start, e.end) for e in result.entities], [(0, 8), (13, 18)])
            self.assertEqual(unmask_entities(result.masked_text, result.entities), text)

    def test_literal_claimed_by_longer_entity_moves_to_next_occurrence(self):
        text = "New York and York differ."
        groups = EntityGroups(places=["New York", "York"])
        result = mask_entities(text, StaticEntityRecognizer(groups))
        self.assertEqual([(e.text, e.start) for e in result.entities], [("New York", 0), ("York", 13)])

    def test_nested_candidate_is_dropped(self):
        text = "New York City is big."
        groups = EntityGroups(places=["York", "New York City"])
        result = mask_entities(text, StaticEntityRecognizer(groups))

        self.assertEqual([e.text for e in result.entities], ["New York City"])

    def test_unlocatable_literal_is_ignored(self):
        groups = EntityGroups(people=["Zed"], places=["", "  "])
        result = mask_entities("Nobody here.", StaticEntityRecognizer(groups))
        self.assertEqual(result.masked_text, "Nobody here.")
        self.assertEqual(result.entities, [])

    def test_token_never_collides_with_existing_text(self):
        text = "Bob wrote <ENTITY_PERSON_0> here."
        result = mask_entities(text, FakeEntityRecognizer(people=["Bob"]))

        self.assertEqual(result.entities[0].replacement, "<ENTITY_PERSON_1>")
        self.assertEqual(unmask_entities(result.masked_text, result.entities), text)

    def test_recognizer_failure_leaves_text_unmasked(self):
        text = "Paris in spring."
        with self.assertLogs("prose_check.core.masking", level="WARNING"):
            result = mask_entities(text, FailingEntityRecognizer())
        self.assertEqual(result.masked_text, text)
        self.assertEqual(result.entities, [])

    def test_empty_text(self):
        result = mask_entities("", FakeEntityRecognizer(people=["Ann"]))
        self.assertEqual(result.masked_text, "")
        self.assertEqual(result.entities, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
