import pytest

from drift_flow.core.entity_matcher import (
    best_match,
    correlate_fields,
    levenshtein_distance,
    match_names,
    similarity,
    variations,
)


def test_plural_and_singular_variations():
    assert "user" in variations("users")
    assert "users" in variations("user")
    assert "category" in variations("categories")
    assert "categories" in variations("category")
    assert "box" in variations("boxes")


def test_double_s_words_are_not_singularized():
    forms = variations("address")

    assert "addresses" in forms
    assert "addres" not in forms


def test_case_and_affix_variations():
    assert "user_profile" in variations("userProfile")
    assert "userprofile" in variations("user_profile")
    assert "users" in variations("tbl_users")
    assert "orders" in variations("orders_view")


def test_empty_name_has_no_variations():
    assert variations("") == set()
    assert variations("   ") == set()


def test_required_entity_thresholds():
    assert match_names("user", "users").confidence > 0.8
    assert match_names("userProfile", "user_profile").confidence > 0.8
    assert match_names("user_products", "users").confidence < 0.9
    assert match_names("user_products", "products").confidence < 0.9
    assert match_names("user_products", "user_products").confidence > 0.9


def test_best_match_reports_the_winning_pair():
    result = best_match(variations("Users"), variations("tbl_user"))

    assert result.confidence == 1.0
    assert result.pair is not None


def test_substring_match_scores_point_eight():
    assert similarity("user_orders", "orders") == 0.8


def test_short_substrings_do_not_match():
    assert similarity("id", "user_id") == 0.0


def test_fuzzy_match_is_scaled():
    # one edit in six characters
    assert similarity("orders", "orderz") == pytest.approx((1 - 1 / 6) * 0.9)
    # two edits in six characters falls under the 0.7 ratio floor
    assert similarity("orders", "ordres") == 0.0
    assert similarity("users", "accounts") == 0.0


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("same", "same") == 0


def test_correlate_fields_pairs_matching_columns():
    matches = correlate_fields(["email", "userName", "avatar"], ["email", "user_name", "created_at"])

    assert [(m.api_field, m.db_field) for m in matches] == [("email", "email"), ("userName", "user_name")]
    assert all(m.confidence > 0.7 for m in matches)
