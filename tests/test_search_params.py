import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.schemas.filters import FilterToken
from app.services.search_params import RequestParams, SearchParamMapper, assign_buckets, parse_compact_query


class CompactQueryParserTests(unittest.TestCase):
    def test_plain_key_yields_direct_column_token(self):
        tokens = parse_compact_query("status=active")
        self.assertEqual(tokens, [FilterToken(path=(), column="status", value="active")])

    def test_dotted_key_yields_relation_path(self):
        tokens = parse_compact_query("a.b.c=v")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].path, ("a", "b"))
        self.assertEqual(tokens[0].column, "c")
        self.assertEqual(tokens[0].value, "v")

    def test_path_length_matches_dot_count(self):
        for key, expected in (("x", 0), ("r.x", 1), ("r.s.x", 2), ("r.s.t.x", 3)):
            with self.subTest(key=key):
                token = parse_compact_query(f"{key}=1")[0]
                self.assertEqual(len(token.path), expected)
                self.assertEqual(token.column, "x")

    def test_value_may_contain_equals_sign(self):
        token = parse_compact_query("note=a=b")[0]
        self.assertEqual(token.column, "note")
        self.assertEqual(token.value, "a=b")

    def test_clause_without_equals_is_kept_as_column(self):
        token = parse_compact_query("broken")[0]
        self.assertEqual(token.column, "broken")
        self.assertEqual(token.value, "")

    def test_absent_query_yields_nothing(self):
        self.assertEqual(parse_compact_query(None), [])
        self.assertEqual(parse_compact_query(""), [])

    def test_pipe_separates_clauses_in_order(self):
        tokens = parse_compact_query("status=active|role.name=admin")
        self.assertEqual([t.column for t in tokens], ["status", "name"])

    def test_token_renders_relation_markers(self):
        token = FilterToken(path=("role", "owner"), column="name", value="x")
        self.assertEqual(token.as_clause(), "with:role,with:owner,name,x")
        self.assertEqual(FilterToken(column="name", value="x").as_clause(), "name,x")


class BucketAssignmentTests(unittest.TestCase):
    def _tokens(self):
        return parse_compact_query("a=1|b=2|c=3")

    def test_without_or_flag_everything_is_and(self):
        buckets = [c.bucket for c in assign_buckets(self._tokens(), apply_or=False, has_search_term=False)]
        self.assertEqual(buckets, ["where", "where", "where"])

    def test_or_flag_keeps_first_clause_in_where(self):
        buckets = [c.bucket for c in assign_buckets(self._tokens(), apply_or=True, has_search_term=False)]
        self.assertEqual(buckets, ["where", "orWhere", "orWhere"])

    def test_or_flag_with_search_term_moves_everything_to_or(self):
        buckets = [c.bucket for c in assign_buckets(self._tokens(), apply_or=True, has_search_term=True)]
        self.assertEqual(buckets, ["orWhere", "orWhere", "orWhere"])

    def test_search_term_alone_does_not_change_buckets(self):
        buckets = [c.bucket for c in assign_buckets(self._tokens(), apply_or=False, has_search_term=True)]
        self.assertEqual(buckets, ["where", "where", "where"])


class SearchParamMapperTests(unittest.TestCase):
    def test_or_flag_splits_two_clauses(self):
        params = RequestParams([("q", "status=active|role.name=admin"), ("or", "true")])
        SearchParamMapper(params).transform()
        self.assertEqual(params.get_list("where"), ["status,active"])
        self.assertEqual(params.get_list("orWhere"), ["with:role,name,admin"])

    def test_or_flag_and_search_term_put_both_in_or_where(self):
        params = RequestParams([("q", "status=active|name=bob"), ("or", "1"), ("searchTerm", "bo")])
        SearchParamMapper(params).transform()
        self.assertEqual(params.get_list("where"), [])
        self.assertEqual(params.get_list("orWhere"), ["status,active", "name,bob"])

    def test_explicit_where_skips_compact_query(self):
        params = RequestParams([("where", "name,alice"), ("q", "status=active")])
        result = SearchParamMapper(params).transform()
        self.assertIsNone(result)
        self.assertEqual(params.get_list("where"), ["name,alice"])
        self.assertEqual(params.get_list("orWhere"), [])

    def test_explicit_or_where_is_kept_alongside_generated_clauses(self):
        params = RequestParams([("orWhere[]", "email,x@example.com"), ("q", "a=1|b=2"), ("or", "true")])
        SearchParamMapper(params).transform()
        self.assertEqual(params.get_list("where"), ["a,1"])
        self.assertEqual(params.get_list("orWhere"), ["email,x@example.com", "b,2"])

    def test_missing_q_leaves_empty_buckets(self):
        params = RequestParams([("status", "active")])
        filter_set = SearchParamMapper(params).transform()
        self.assertEqual(filter_set.where, [])
        self.assertEqual(filter_set.or_where, [])
        self.assertEqual(params.get("status"), "active")

    def test_false_or_flag_is_not_applied(self):
        params = RequestParams([("q", "a=1|b=2"), ("or", "false")])
        SearchParamMapper(params).transform()
        self.assertEqual(params.get_list("where"), ["a,1", "b,2"])


class RequestParamsTests(unittest.TestCase):
    def test_bracket_keys_collect_every_value(self):
        params = RequestParams([("where[]", "a,1"), ("where[]", "b,2"), ("page", "1"), ("page", "3")])
        self.assertEqual(params.get_list("where"), ["a,1", "b,2"])
        self.assertEqual(params.get("page"), "3")

    def test_has_ignores_blank_values(self):
        params = RequestParams([("where", ""), ("searchTerm", " ")])
        self.assertFalse(params.has("where"))
        self.assertFalse(params.has("searchTerm"))
        self.assertTrue("where" in params)


if __name__ == "__main__":
    unittest.main()
