"""
Tests for OS version string helpers and version matching.
"""

import pytest

from osfetch.download.interfaces import OsType, OsVersion
from osfetch.download.version import (
    apply_variant_suffix,
    has_variant_suffix,
    is_esr_version,
    max_satisfying_version,
    parse_version,
    sort_newest_first,
    split_variant,
    strip_v_prefix,
    with_requested_variant,
)

pytestmark = [pytest.mark.unit, pytest.mark.core_downloads]


def _v(raw, recommended=False, prerelease=False, os_type=OsType.DEFAULT):
    return OsVersion(
        raw_version=raw,
        formatted_version=raw,
        os_type=os_type,
        is_recommended=recommended,
        is_prerelease=prerelease,
    )


@pytest.fixture
def catalog():
    return [
        _v("2.90.0-beta1.prod", prerelease=True),
        _v("2.89.0.prod"),
        _v("2.88.4.prod", recommended=True),
        _v("2.80.3.prod"),
        _v("2.88.4.dev"),
    ]


class TestSuffixHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [("v2.88.4", "2.88.4"), ("2.88.4", "2.88.4"), ("vv1", "v1"), ("", "")],
    )
    def test_strip_v_prefix(self, value, expected):
        assert strip_v_prefix(value) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2.60.1+rev1", "2.60.1+rev1.prod"),
            ("2.60.1+rev1.dev", "2.60.1+rev1.dev"),
            ("2.60.1+rev1.prod", "2.60.1+rev1.prod"),
            ("latest", "latest.prod"),
            ("^2.80.0", "^2.80.0.prod"),
        ],
    )
    def test_apply_variant_suffix(self, value, expected):
        assert apply_variant_suffix(value) == expected

    def test_has_variant_suffix(self):
        assert has_variant_suffix("2.88.4.dev")
        assert has_variant_suffix("2.88.4.prod")
        assert not has_variant_suffix("2.88.4")
        assert not has_variant_suffix("2.88.4.production")

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2.60.1+rev1.dev", ("2.60.1+rev1", "dev")),
            ("2.60.1+rev1.prod", ("2.60.1+rev1", "prod")),
            ("2.60.1+rev1", ("2.60.1+rev1", None)),
        ],
    )
    def test_split_variant(self, value, expected):
        assert split_variant(value) == expected


class TestEsrDetection:
    @pytest.mark.parametrize(
        "value", ["2023.7.0", "v2023.10.1", "2021.10.2.prod", "v2021.1.0.dev"]
    )
    def test_esr_versions(self, value):
        assert is_esr_version(value) is True

    @pytest.mark.parametrize(
        "value", [None, "", "2.88.4", "menu-esr", "latest", "23.7.0"]
    )
    def test_non_esr_versions(self, value):
        assert is_esr_version(value) is False


class TestParseAndSort:
    def test_parse_version_tolerates_prefix_and_variant(self):
        parsed = parse_version("v2.88.4.prod")
        assert parsed is not None
        assert (parsed.major, parsed.minor, parsed.patch) == (2, 88, 4)

    def test_parse_version_invalid(self):
        assert parse_version("latest") is None

    def test_sort_newest_first_puts_invalid_last(self):
        versions = [_v("2.80.3.prod"), _v("bogus"), _v("2.89.0.prod"), _v("2.9.0.prod")]
        ordered = [v.raw_version for v in sort_newest_first(versions)]
        assert ordered == ["2.89.0.prod", "2.80.3.prod", "2.9.0.prod", "bogus"]

    def test_sort_is_stable_for_equal_versions(self):
        prod = _v("2.88.4.prod")
        dev = _v("2.88.4.dev")
        assert sort_newest_first([prod, dev]) == [prod, dev]
        assert sort_newest_first([dev, prod]) == [dev, prod]


class TestMaxSatisfyingVersion:
    def test_latest_includes_prereleases(self, catalog):
        assert max_satisfying_version("latest", catalog).raw_version == "2.90.0-beta1.prod"

    def test_latest_with_variant(self, catalog):
        assert max_satisfying_version("latest.dev", catalog).raw_version == "2.88.4.dev"

    def test_latest_prod_keyword(self, catalog):
        # The resolver turns 'latest' into 'latest.prod'
        assert (
            max_satisfying_version("latest.prod", catalog).raw_version
            == "2.90.0-beta1.prod"
        )

    def test_default_prefers_recommended(self, catalog):
        assert max_satisfying_version("default", catalog).raw_version == "2.88.4.prod"

    def test_default_without_recommended_uses_newest_stable(self, catalog):
        for version in catalog:
            version.is_recommended = False
        assert max_satisfying_version("default", catalog).raw_version == "2.89.0.prod"

    def test_recommended_without_stable_is_none(self):
        versions = [_v("2.90.0-beta1.prod", prerelease=True)]
        assert max_satisfying_version("recommended", versions) is None

    def test_default_without_stable_falls_back_to_newest(self):
        versions = [_v("2.90.0-beta1.prod", prerelease=True)]
        assert (
            max_satisfying_version("default", versions).raw_version
            == "2.90.0-beta1.prod"
        )

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("2.88.4", "2.88.4.prod"),
            ("2.88.4.prod", "2.88.4.prod"),
            ("v2.88.4.dev", "2.88.4.dev"),
            ("2.80.3", "2.80.3.prod"),
        ],
    )
    def test_exact_matches(self, catalog, token, expected):
        assert max_satisfying_version(token, catalog).raw_version == expected

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("^2.80.0", "2.89.0.prod"),
            ("~2.80.0", "2.80.3.prod"),
            ("<2.89.0", "2.88.4.prod"),
            ("^2.80.0.prod", "2.89.0.prod"),
        ],
    )
    def test_ranges_pick_highest_stable_match(self, catalog, token, expected):
        assert max_satisfying_version(token, catalog).raw_version == expected

    @pytest.mark.parametrize("token", [">=3.0.0", "not-a-version", "1.0.0"])
    def test_no_match(self, catalog, token):
        assert max_satisfying_version(token, catalog) is None

    def test_empty_catalog(self):
        assert max_satisfying_version("latest", []) is None

    def test_versions_without_variant_serve_both(self):
        versions = [_v("2023.7.0", os_type=OsType.ESR)]
        assert max_satisfying_version("2023.7.0.dev", versions).raw_version == "2023.7.0"
        assert max_satisfying_version("2023.7.0.prod", versions).raw_version == "2023.7.0"


@pytest.mark.parametrize(
    "raw, requested, expected",
    [
        ("2023.7.0", "2023.7.0.dev", "2023.7.0.dev"),
        ("2023.7.0", "~2023.7.0", "2023.7.0.prod"),
        ("2.88.4+rev1.prod", "2.88.4+rev1.dev", "2.88.4+rev1.prod"),
    ],
)
def test_with_requested_variant(raw, requested, expected):
    assert with_requested_variant(raw, requested) == expected
