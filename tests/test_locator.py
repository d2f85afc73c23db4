from ermirror.services.crawl.locator import (
    AREA,
    PRECINCT,
    RECORD,
    Templates,
    level_name,
    locate,
)

T = Templates(base_url="https://results.test/data")


def test_area_depths_use_local_or_overseas_listing():
    for depth in range(4):
        loc = locate("0101", depth, templates=T)
        assert loc.kind == AREA
        assert loc.url == "https://results.test/data/regions/local/0101.json"
        assert loc.is_valid
    assert locate("9", 1, overseas=True, templates=T).url == "https://results.test/data/regions/overseas/9.json"


def test_depth_four_uses_precinct_listing_with_two_char_prefix():
    loc = locate("0101001", 4, templates=T)
    assert loc.kind == PRECINCT
    assert loc.url == "https://results.test/data/regions/precinct/01/0101001.json"
    assert loc.is_valid


def test_record_depths_use_three_char_prefix():
    for depth in (5, 6):
        loc = locate("12345678", depth, templates=T)
        assert loc.kind == RECORD
        assert loc.url == "https://results.test/data/er/123/12345678.json"


def test_short_code_yields_invalid_locator_instead_of_failing():
    assert not locate("1", 4, templates=T).is_valid
    assert not locate("12", 5, templates=T).is_valid
    assert locate("123", 5, templates=T).is_valid
    assert not locate("", 0, templates=T).is_valid


def test_default_templates_point_at_results_site():
    assert locate("0", 0).url == "https://2025electionresults.comelec.gov.ph/data/regions/local/0.json"


def test_level_names():
    assert level_name(0) == "Root"
    assert level_name(1) == "Region"
    assert level_name(4) == "Barangay"
    assert level_name(5) == "Precinct"
    assert level_name(9) == "Precinct"
