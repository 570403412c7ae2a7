import unittest

from amplify_syndication.models import MEDIA, Checkpoint, resource_spec
from amplify_syndication.query import (
    boundary_filter,
    build_page_request,
    combine_filters,
    odata_literal,
)

EPOCH_BOUNDARY = (
    "(ModificationTimestamp gt 1970-01-01T00%3A00%3A00Z) "
    "or (ModificationTimestamp eq 1970-01-01T00%3A00%3A00Z and ListingKey gt '0')"
)


class TestBoundaryFilter(unittest.TestCase):
    def test_default_checkpoint(self):
        self.assertEqual(boundary_filter(resource_spec("Property"), Checkpoint()), EPOCH_BOUNDARY)

    def test_uses_resource_ordering_key(self):
        cp = Checkpoint("2025-01-01T00:00:00Z", "M9")
        self.assertEqual(
            boundary_filter(MEDIA, cp),
            "(ModificationTimestamp gt 2025-01-01T00%3A00%3A00Z) "
            "or (ModificationTimestamp eq 2025-01-01T00%3A00%3A00Z and MediaKey gt 'M9')",
        )

    def test_key_quotes_are_escaped(self):
        self.assertEqual(odata_literal("O'Brien"), "'O''Brien'")
        self.assertEqual(odata_literal(42), "'42'")

    def test_fractional_timestamp_is_encoded(self):
        cp = Checkpoint("2025-01-01T00:00:00.123+05:00", "A")
        self.assertIn("gt 2025-01-01T00%3A00%3A00.123%2B05%3A00)", boundary_filter(resource_spec("Property"), cp))


class TestCombineFilters(unittest.TestCase):
    def test_no_caller_filter(self):
        self.assertEqual(combine_filters(None, "B"), "B")
        self.assertEqual(combine_filters("", "B"), "B")

    def test_caller_filter_is_conjunctive_and_parenthesized(self):
        self.assertEqual(
            combine_filters("City eq 'Toronto' or City eq 'Ottawa'", "X or Y"),
            "(City eq 'Toronto' or City eq 'Ottawa') and (X or Y)",
        )


class TestBuildPageRequest(unittest.TestCase):
    def test_query_options_shape(self):
        req = build_page_request("Property", ["ListingKey", "ModificationTimestamp"], None, Checkpoint(), 50)
        self.assertEqual(
            req.query_options(),
            {
                "$select": "ListingKey,ModificationTimestamp",
                "$filter": EPOCH_BOUNDARY,
                "$orderby": "ModificationTimestamp,ListingKey",
                "$top": 50,
            },
        )
        self.assertEqual(list(req.query_options()), ["$select", "$filter", "$orderby", "$top"])

    def test_missing_ordering_fields_are_appended_in_order(self):
        req = build_page_request("Property", ["City", "ListPrice"], None, Checkpoint(), 10)
        self.assertEqual(req.fields, ["City", "ListPrice", "ModificationTimestamp", "ListingKey"])

    def test_no_fields_means_no_select(self):
        req = build_page_request("Lookup", None, None, Checkpoint(), 10)
        self.assertNotIn("$select", req.query_options())
        self.assertEqual(req.orderby, "ModificationTimestamp,LookupKey")

    def test_unknown_resource_uses_name_key(self):
        req = build_page_request("Member", [], None, Checkpoint(), 10)
        self.assertEqual(req.resource, "Member")
        self.assertEqual(req.orderby, "ModificationTimestamp,MemberKey")

    def test_pure_function(self):
        cp = Checkpoint("2025-01-01T00:00:00Z", "A")
        a = build_page_request("Property", ["City"], "City eq 'X'", cp, 5)
        b = build_page_request("Property", ["City"], "City eq 'X'", cp, 5)
        self.assertEqual(a, b)
        self.assertEqual(cp, Checkpoint("2025-01-01T00:00:00Z", "A"))


if __name__ == "__main__":
    unittest.main()
