"""Tests for recovering a recommendations document from model output."""

import json
import unittest

from node_planner.response_normalizer import (
    MAX_DECODE_DEPTH,
    RawTextResult,
    StructuredResult,
    normalize,
    split_document,
)


def _document() -> dict:
    return {
        "recommendations": [
            {
                "serviceId": "home_gym",
                "serviceName": "Home Gym",
                "estimatedInitialCost": "$1,200",
                "estimatedMonthlyCost": 40,
                "steps": ["Buy a used rack", "Set up the garage"],
                "specificRecommendations": "Check Craigslist first.",
                "sources": ["https://example.com/rack"],
            }
        ],
        "totalEstimatedInitialCost": 1200,
        "totalEstimatedMonthlyCost": 40,
        "notes": "Prices from local listings.",
        "totalEstimatedCostOverBudget": None,
        "overBudgetReason": None,
    }


class TestNormalizeStrings(unittest.TestCase):
    def test_plain_json_round_trip(self):
        doc = _document()
        result = normalize(json.dumps(doc))
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, doc)
        self.assertEqual(result.kind, "document")

    def test_fenced_json_with_prose(self):
        text = "Sure! Here are your results:\n```json\n" + json.dumps(_document()) + "\n```\nHope this helps."
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, _document())

    def test_untagged_fence(self):
        result = normalize("```\n[{\"serviceId\": \"meal_prep\"}]\n```")
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, [{"serviceId": "meal_prep"}])

    def test_double_encoded_fenced_json(self):
        text = "\"```json\\n{\\\"recommendations\\\":[]}\\n```\""
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, {"recommendations": []})

    def test_triple_encoded_json(self):
        text = json.dumps(json.dumps(json.dumps(_document())))
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, _document())

    def test_leading_prose_before_object(self):
        text = "Here you go:\n" + json.dumps(_document())
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document["totalEstimatedInitialCost"], 1200)

    def test_array_becomes_document_without_summary(self):
        items = [{"serviceId": "meal_prep"}, {"serviceId": "home_gym"}]
        result = normalize(json.dumps(items))
        self.assertIsInstance(result, StructuredResult)
        recs, summary = split_document(result.document)
        self.assertEqual(recs, items)
        self.assertEqual(summary, {})

    def test_unparseable_text_is_kept_verbatim(self):
        for text in (
            "I could not find prices for that city.",
            "  Leading and trailing spaces  ",
            "Costs are {roughly} similar [citation needed]",
            "```json\n{not json}\n```",
        ):
            with self.subTest(text=text):
                result = normalize(text)
                self.assertIsInstance(result, RawTextResult)
                self.assertEqual(result.raw_text, text)
                self.assertEqual(result.kind, "raw_text")

    def test_empty_string_is_raw_text(self):
        result = normalize("")
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "")

    def test_unclosed_fence_falls_through_to_bracket_heuristic(self):
        text = "```json\n{\"recommendations\": []}"
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, {"recommendations": []})

    def test_json_scalar_is_not_a_document(self):
        result = normalize("42")
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "42")

    def test_encoding_depth_is_capped(self):
        text = json.dumps(_document())
        for _ in range(MAX_DECODE_DEPTH + 3):
            text = json.dumps(text)
        result = normalize(text)
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, text)

    def test_encoding_within_depth_is_recovered(self):
        text = json.dumps(_document())
        for _ in range(MAX_DECODE_DEPTH):
            text = json.dumps(text)
        self.assertIsInstance(normalize(text), StructuredResult)

    def test_single_quote_wrapped_prose_is_raw(self):
        result = normalize("'just a quoted remark'")
        self.assertIsInstance(result, RawTextResult)


class TestNormalizeObjects(unittest.TestCase):
    def test_object_with_recommendations_array_keeps_summary(self):
        doc = _document()
        result = normalize(doc)
        self.assertIsInstance(result, StructuredResult)
        self.assertIs(result.document, doc)
        recs, summary = split_document(result.document)
        self.assertEqual(len(recs), 1)
        self.assertEqual(summary["notes"], "Prices from local listings.")
        self.assertIn("totalEstimatedCostOverBudget", summary)

    def test_recommendations_string_is_parsed(self):
        body = {"recommendations": "```json\n" + json.dumps(_document()) + "\n```"}
        result = normalize(body)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, _document())

    def test_recommendations_unparseable_string_becomes_raw_text(self):
        result = normalize({"recommendations": "No data available."})
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "No data available.")

    def test_raw_marker_object_from_recommendations_endpoint(self):
        result = normalize({"recommendations": {"text": "Plain prose reply", "raw": True}})
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "Plain prose reply")

    def test_raw_marker_object_with_json_text(self):
        result = normalize({"recommendations": {"text": json.dumps(_document()), "raw": True}})
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, _document())

    def test_nested_recommendations_object(self):
        inner = _document()
        result = normalize({"recommendations": inner})
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, inner)

    def test_top_level_text_field(self):
        result = normalize({"raw": True, "text": json.dumps([{"serviceId": "meal_prep"}])})
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, [{"serviceId": "meal_prep"}])

    def test_parsed_string_with_encoded_recommendations_keeps_summary(self):
        items = [{"serviceId": "home_gym"}]
        text = json.dumps({"recommendations": json.dumps(items), "totalEstimatedInitialCost": 500, "notes": "n"})
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        recs, summary = split_document(result.document)
        self.assertEqual(recs, items)
        self.assertEqual(summary, {"totalEstimatedInitialCost": 500, "notes": "n"})

    def test_parsed_string_with_prose_recommendations_stays_a_document(self):
        doc = {"recommendations": "Could not find listings", "totalEstimatedInitialCost": 500}
        result = normalize(json.dumps(doc))
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, doc)
        self.assertEqual(split_document(result.document), ([], {"totalEstimatedInitialCost": 500}))

    def test_parsed_string_with_nested_document_merges_fields(self):
        inner = {"recommendations": [{"serviceId": "meal_prep"}], "notes": "inner notes"}
        text = json.dumps({"recommendations": inner, "totalEstimatedMonthlyCost": 90, "notes": "outer notes"})
        result = normalize(text)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(
            result.document,
            {"recommendations": [{"serviceId": "meal_prep"}], "totalEstimatedMonthlyCost": 90, "notes": "inner notes"},
        )

    def test_parsed_text_field_is_ordinary_content(self):
        doc = {"text": "Overview of local prices", "notes": "n"}
        result = normalize(json.dumps(doc))
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(result.document, doc)

    def test_posted_prose_recommendations_with_summary_stays_a_document(self):
        body = {"recommendations": "No listings this month.", "notes": "Try again in spring."}
        result = normalize(body)
        self.assertIsInstance(result, StructuredResult)
        self.assertEqual(split_document(result.document), ([], {"notes": "Try again in spring."}))

    def test_posted_encoded_recommendations_keep_summary(self):
        body = {"recommendations": "```json\n[{\"serviceId\": \"meal_prep\"}]\n```", "totalEstimatedInitialCost": 75}
        result = normalize(body)
        self.assertEqual(
            result,
            StructuredResult({"recommendations": [{"serviceId": "meal_prep"}], "totalEstimatedInitialCost": 75}),
        )

    def test_none_is_empty_raw_text(self):
        result = normalize(None)
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "")

    def test_number_is_raw_text(self):
        result = normalize(12.5)
        self.assertIsInstance(result, RawTextResult)
        self.assertEqual(result.raw_text, "12.5")


class TestParseOrder(unittest.TestCase):
    def test_prefers_direct_parse_over_fence(self):
        doc = {"notes": "use ```json fences``` sparingly"}
        result = normalize(json.dumps(doc))
        self.assertEqual(result, StructuredResult(doc))

    def test_whitespace_only_is_raw_text(self):
        self.assertEqual(normalize("   "), RawTextResult("   "))


class TestSplitDocument(unittest.TestCase):
    def test_non_list_recommendations_yield_no_items(self):
        recs, summary = split_document({"recommendations": "oops", "notes": "n"})
        self.assertEqual(recs, [])
        self.assertEqual(summary, {"notes": "n"})

    def test_unknown_shape(self):
        self.assertEqual(split_document("text"), ([], {}))


if __name__ == "__main__":
    unittest.main()
