"""
Tests for client resolution

Exact and fuzzy lookups, manual search, and record store failure handling.
"""

import unittest
from unittest.mock import Mock

from drugtest_intake.core.client_resolver import ClientResolver
from drugtest_intake.core.data_models import ClientRecord, Identity, MatchType
from drugtest_intake.core.exceptions import LookupFailure, LookupTimeout
from drugtest_intake.record_store import InMemoryRecordStore


def make_clients():
    return [
        ClientRecord(id="c1", first_name="John", last_name="Smith", email="jsmith@example.com"),
        ClientRecord(id="c2", first_name="Jane", last_name="Doe", middle_initial="A"),
        ClientRecord(id="c3", first_name="Jane", last_name="Doe", middle_initial="B"),
        ClientRecord(id="c4", first_name="Robert", last_name="Johnson"),
    ]


class TestClientResolver(unittest.TestCase):
    """Test cases for ClientResolver."""

    def setUp(self):
        """Set up test fixtures."""
        self.store = InMemoryRecordStore(clients=make_clients())
        self.resolver = ClientResolver(self.store)

    def test_exact_match(self):
        resolution = self.resolver.resolve("John", "Smith")

        self.assertTrue(resolution.match_found)
        self.assertEqual(len(resolution.matches), 1)
        self.assertEqual(resolution.matches[0].client.id, "c1")
        self.assertEqual(resolution.matches[0].match_type, MatchType.EXACT)
        self.assertEqual(resolution.matches[0].score, 1.0)
        self.assertEqual(resolution.search_term, "John Smith")

    def test_exact_match_case_insensitive(self):
        resolution = self.resolver.resolve("JOHN", "smith")
        self.assertEqual(resolution.matches[0].match_type, MatchType.EXACT)

    def test_exact_match_with_middle_initial(self):
        resolution = self.resolver.resolve("Jane", "Doe", "B")

        self.assertEqual([m.client.id for m in resolution.matches], ["c3"])
        self.assertEqual(resolution.search_term, "Jane B Doe")

    def test_multiple_exact_matches(self):
        resolution = self.resolver.resolve("Jane", "Doe")
        self.assertEqual({m.client.id for m in resolution.matches}, {"c2", "c3"})

    def test_fuzzy_fallback(self):
        resolution = self.resolver.resolve("Jon", "Smith")

        self.assertTrue(resolution.match_found)
        best = resolution.matches[0]
        self.assertEqual(best.client.id, "c1")
        self.assertEqual(best.match_type, MatchType.FUZZY)
        self.assertGreater(best.score, 0.85)

    def test_fuzzy_results_sorted_descending(self):
        resolution = self.resolver.resolve("Jane", "Do")
        scores = [m.score for m in resolution.matches]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_no_match_is_empty_result(self):
        resolution = self.resolver.resolve("Zebulon", "Xylophone")

        self.assertFalse(resolution.match_found)
        self.assertEqual(resolution.matches, [])
        self.assertEqual(resolution.search_term, "Zebulon Xylophone")

    def test_fuzzy_threshold_is_exclusive(self):
        resolver = ClientResolver(self.store, fuzzy_threshold=0.99)
        self.assertFalse(resolver.resolve("Jon", "Smith").match_found)

    def test_fuzzy_limit(self):
        clients = [ClientRecord(id=f"c{i}", first_name="Ann", last_name=f"Lee{i}") for i in range(20)]
        resolver = ClientResolver(InMemoryRecordStore(clients=clients), fuzzy_limit=10)

        resolution = resolver.resolve("Ann", "Lee")
        self.assertEqual(len(resolution.matches), 10)

    def test_lookup_failure_propagates(self):
        store = Mock()
        store.find_clients_by_name.side_effect = LookupFailure("connection refused")
        resolver = ClientResolver(store)

        with self.assertRaises(LookupFailure):
            resolver.resolve("John", "Smith")

    def test_timeout_in_fuzzy_stage_propagates(self):
        store = Mock()
        store.find_clients_by_name.return_value = []
        store.list_indexed_clients.side_effect = LookupTimeout("timed out")
        resolver = ClientResolver(store)

        with self.assertRaises(LookupTimeout):
            resolver.resolve("John", "Smith")

    def test_candidate_pool_size_passed_to_store(self):
        store = Mock()
        store.find_clients_by_name.return_value = []
        store.list_indexed_clients.return_value = []
        resolver = ClientResolver(store, pool_size=25)

        resolver.resolve("John", "Smith")
        store.list_indexed_clients.assert_called_once_with(limit=25)


class TestClientSearch(unittest.TestCase):
    """Test cases for manual operator search."""

    def setUp(self):
        """Set up test fixtures."""
        self.resolver = ClientResolver(InMemoryRecordStore(clients=make_clients()))

    def test_full_name_search(self):
        resolution = self.resolver.search("John Smith")
        self.assertEqual(resolution.matches[0].client.id, "c1")
        self.assertEqual(resolution.matches[0].score, 1.0)

    def test_single_word_matches_last_name(self):
        resolution = self.resolver.search("Johnson")
        self.assertEqual(resolution.matches[0].client.id, "c4")

    def test_email_search(self):
        resolution = self.resolver.search("jsmith@example.com")
        self.assertEqual(resolution.matches[0].client.id, "c1")

    def test_blank_search(self):
        resolution = self.resolver.search("   ")
        self.assertFalse(resolution.match_found)


class TestIdentity(unittest.TestCase):
    """Test cases for Identity comparison."""

    def test_equality_ignores_case(self):
        self.assertEqual(Identity("JOHN", "smith"), Identity("John", "Smith"))
        self.assertEqual(Identity("Jane", "Doe", "a"), Identity("jane", "DOE", "A"))
        self.assertEqual(len({Identity("JOHN", "SMITH"), Identity("john", "smith")}), 1)

    def test_middle_initial_distinguishes(self):
        self.assertNotEqual(Identity("Jane", "Doe", "A"), Identity("Jane", "Doe", "B"))
        self.assertNotEqual(Identity("Jane", "Doe", "A"), Identity("Jane", "Doe"))

    def test_display_keeps_original_case(self):
        identity = Identity("JOHN", "smith")
        self.assertEqual(identity, ClientRecord(id="c1", first_name="John", last_name="Smith").identity)
        self.assertEqual(identity.search_term, "JOHN smith")


if __name__ == '__main__':
    unittest.main()
