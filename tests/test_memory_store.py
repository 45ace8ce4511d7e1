import unittest

from querykit.core.config import Settings
from querykit.db.memory_store import InMemoryStore, matches
from querykit.schemas.query import SortDirection
from querykit.services.query_facade import QueryFacade

USERS = [
    {"id": 1, "name": "John Doe", "email": "john@example.com", "status": "active", "role": "user", "profile": 10, "posts": [100, 101]},
    {"id": 2, "name": "Jane Smith", "email": "jane@example.com", "status": "active", "role": "admin", "profile": 11, "posts": []},
    {"id": 3, "name": "Bob Johnson", "email": "bob@example.com", "status": "inactive", "role": "user", "profile": None, "posts": [102]},
    {"id": 4, "name": "Alice Brown", "email": "alice@example.com", "status": "active", "role": "user", "profile": 12, "posts": []},
]

RELATIONS = {
    "profile": {10: {"id": 10, "bio": "john"}, 11: {"id": 11, "bio": "jane"}, 12: {"id": 12, "bio": "alice"}},
    "posts": {100: {"id": 100, "title": "a"}, 101: {"id": 101, "title": "b"}, 102: {"id": 102, "title": "c"}},
}


class MatchTests(unittest.TestCase):
    def test_regex_is_case_insensitive_substring(self):
        doc = {"name": "John Doe"}
        self.assertTrue(matches(doc, {"name": {"$regex": "JOHN", "$options": "i"}}))
        self.assertFalse(matches(doc, {"name": {"$regex": "JOHN", "$options": ""}}))
        self.assertFalse(matches(doc, {"name": {"$regex": "jo.n", "$options": "i"}}))

    def test_or_and_equality(self):
        doc = {"name": "Jane", "status": "active"}
        predicate = {"$or": [{"name": {"$regex": "x", "$options": "i"}}, {"name": {"$regex": "an", "$options": "i"}}], "status": "active"}
        self.assertTrue(matches(doc, predicate))
        self.assertFalse(matches(doc, {**predicate, "status": "inactive"}))

    def test_list_field_matches_member(self):
        self.assertTrue(matches({"tags": ["a", "b"]}, {"tags": "b"}))

    def test_empty_predicate_matches_everything(self):
        self.assertTrue(matches({}, {}))


class InMemoryStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = InMemoryStore(USERS, relations=RELATIONS)

    async def test_count_documents(self):
        self.assertEqual(await self.store.count_documents({"status": "active"}), 3)

    async def test_sort_by_several_keys(self):
        rows = await self.store.find({}).sort({"status": SortDirection.ASC, "name": SortDirection.DESC}).execute()
        self.assertEqual([row["id"] for row in rows], [1, 2, 4, 3])

    async def test_sort_over_mixed_value_types(self):
        store = InMemoryStore(
            [
                {"id": 1, "code": "b"},
                {"id": 2, "code": 7},
                {"id": 3},
                {"id": 4, "code": "a"},
                {"id": 5, "code": 2.5},
                {"id": 6, "code": None},
            ]
        )
        rows = await store.find({}).sort({"code": SortDirection.ASC}).execute()
        self.assertEqual([row["id"] for row in rows], [3, 6, 5, 2, 4, 1])
        rows = await store.find({}).sort({"code": SortDirection.DESC}).execute()
        self.assertEqual([row["id"] for row in rows], [1, 4, 2, 5, 3, 6])

    async def test_skip_and_limit(self):
        rows = await self.store.find({}).sort({"id": SortDirection.ASC}).skip(1).limit(2).execute()
        self.assertEqual([row["id"] for row in rows], [2, 3])

    async def test_inclusion_projection_keeps_id(self):
        rows = await self.store.find({"id": 1}).select("name status").execute()
        self.assertEqual(rows, [{"id": 1, "name": "John Doe", "status": "active"}])

    async def test_exclusion_projection(self):
        rows = await self.store.find({"id": 2}).select("-email -posts -profile").execute()
        self.assertEqual(rows, [{"id": 2, "name": "Jane Smith", "status": "active", "role": "admin"}])

    async def test_expand_single_and_list_references(self):
        rows = await self.store.find({"id": 1}).expand("profile").expand("posts").execute()
        self.assertEqual(rows[0]["profile"], {"id": 10, "bio": "john"})
        self.assertEqual([post["title"] for post in rows[0]["posts"]], ["a", "b"])

    async def test_expand_missing_reference(self):
        rows = await self.store.find({"id": 3}).expand("profile").execute()
        self.assertIsNone(rows[0]["profile"])

    async def test_results_do_not_alias_store_data(self):
        rows = await self.store.find({"id": 1}).execute()
        rows[0]["name"] = "changed"
        again = await self.store.find({"id": 1}).execute()
        self.assertEqual(again[0]["name"], "John Doe")


class InMemoryFacadeTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.facade = QueryFacade(
            InMemoryStore(USERS, relations=RELATIONS),
            searchable=["name", "email"],
            filterable=["status", "role"],
            selectable=["name", "status", "profile"],
            expandable=["profile"],
        )

    async def test_end_to_end_query(self):
        result = await self.facade.find_with_options(
            {"q": "J", "status": "active", "sort": "-name", "select": "name,email,profile", "expand": "profile,posts", "limit": 1}
        )
        self.assertEqual(result.total_docs, 2)
        self.assertEqual(result.total_pages, 2)
        self.assertTrue(result.has_next_page)
        self.assertEqual(result.docs, [{"id": 1, "name": "John Doe", "profile": {"id": 10, "bio": "john"}}])

    async def test_preset_end_to_end(self):
        self.facade.define_preset("admins", {"role": "admin"})
        result = await self.facade.find_with_preset("admins", {"select": "name"})
        self.assertEqual(result.docs, [{"id": 2, "name": "Jane Smith"}])
        self.assertEqual(await self.facade.count_with_preset("admins", {"role": "user"}), 3)

    async def test_per_instance_delimiter_orders_results(self):
        facade = QueryFacade(
            InMemoryStore(USERS),
            selectable=["name", "status"],
            config=Settings(_env_file=None, LIST_DELIMITER="|"),
        )
        result = await facade.find_with_options({"sort": "status|-name", "select": "name|status"})
        self.assertEqual([doc["id"] for doc in result.docs], [1, 2, 4, 3])
        self.assertEqual(result.docs[0], {"id": 1, "name": "John Doe", "status": "active"})


if __name__ == "__main__":
    unittest.main()
