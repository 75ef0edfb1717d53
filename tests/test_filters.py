import pytest

from errors import InvalidFilter
from filters import (
    bool_query,
    child_clauses,
    compile_company_query,
    compile_nested_query,
    compile_report_query,
    nested_clause,
    parse_filter,
    report_clauses,
)
from models import ChildFilter, CompanyFilter, ParentFilter, ReportFilter


def test_empty_filters_compile_to_match_all():
    assert compile_report_query(ReportFilter()) == {"match_all": {}}
    assert compile_company_query(CompanyFilter()) == {"match_all": {}}
    assert compile_nested_query(ParentFilter(), ChildFilter()) == {"match_all": {}}
    assert bool_query([]) == {"match_all": {}}


def test_report_clauses_follow_fixed_order():
    """id, name, tags, status, regardless of how the payload was written."""
    f = parse_filter(ReportFilter, {"status": "draft", "tags": ["tag1"], "name": "quarterly", "id": "R1"})
    assert report_clauses(f) == [
        {"term": {"id": "R1"}},
        {"match": {"name": "quarterly"}},
        {"terms": {"tags.keyword": ["tag1"]}},
        {"term": {"status": "draft"}},
    ]


def test_report_query_wraps_clauses_in_bool_must():
    f = ReportFilter(status="published")
    assert compile_report_query(f) == {"bool": {"must": [{"term": {"status": "published"}}]}}


def test_empty_tags_contribute_no_clause():
    assert report_clauses(ReportFilter(tags=[])) == []
    assert report_clauses(ReportFilter(tags=["", "  "])) == []


def test_tags_are_deduplicated_in_order():
    f = ReportFilter(tags=["common", "tag2", "common", " tag2 "])
    assert report_clauses(f) == [{"terms": {"tags.keyword": ["common", "tag2"]}}]


def test_blank_strings_are_absent():
    f = parse_filter(CompanyFilter, {"id": "", "name": "   "})
    assert f.is_empty()
    assert compile_company_query(f) == {"match_all": {}}


def test_company_query_constrained_to_key_set():
    query = compile_company_query(CompanyFilter(name="Company"), ["C1", "C3"])
    assert query == {
        "bool": {
            "must": [
                {"match": {"name": "Company"}},
                {"terms": {"id": ["C1", "C3"]}},
            ]
        }
    }


def test_company_key_set_alone_still_uses_bool():
    assert compile_company_query(CompanyFilter(), ["C2"]) == {"bool": {"must": [{"terms": {"id": ["C2"]}}]}}


def test_child_clauses_are_scoped_to_nested_path():
    f = ChildFilter(name="Alice", grade=3, hobbies="chess")
    assert child_clauses(f) == [
        {"match": {"children.name": "Alice"}},
        {"term": {"children.grade": 3}},
        {"match": {"children.hobbies": "chess"}},
    ]


def test_nested_clauses_share_one_nested_scope():
    """All child criteria sit in a single nested query so one element must satisfy them all."""
    query = compile_nested_query(ParentFilter(age=45), ChildFilter(name="Alice", grade=3))
    assert query == {
        "bool": {
            "must": [
                {"term": {"age": 45}},
                {
                    "nested": {
                        "path": "children",
                        "query": {
                            "bool": {
                                "must": [
                                    {"match": {"children.name": "Alice"}},
                                    {"term": {"children.grade": 3}},
                                ]
                            }
                        },
                    }
                },
            ]
        }
    }


def test_empty_child_filter_adds_no_nested_clause():
    assert nested_clause(ChildFilter()) is None
    assert nested_clause(parse_filter(ChildFilter, {"name": "", "hobbies": None})) is None
    assert compile_nested_query(ParentFilter(name="John"), ChildFilter()) == {
        "bool": {"must": [{"match": {"name": "John"}}]}
    }


def test_grade_zero_is_a_value():
    assert child_clauses(ChildFilter(grade=0)) == [{"term": {"children.grade": 0}}]


def test_unknown_keys_are_ignored():
    f = parse_filter(ReportFilter, {"colour": "blue"})
    assert f.is_empty()
    assert compile_report_query(f) == {"match_all": {}}


def test_none_payload_means_no_filter():
    assert parse_filter(CompanyFilter, None) == CompanyFilter()


@pytest.mark.parametrize(
    "model,payload",
    [
        (ReportFilter, {"tags": "tag1"}),
        (ReportFilter, {"tags": ["tag1", 2]}),
        (ReportFilter, {"id": 5}),
        (CompanyFilter, {"name": ["Company 1"]}),
        (ChildFilter, {"grade": "third"}),
        (ChildFilter, {"grade": True}),
        (ChildFilter, {"grade": "3"}),
        (ChildFilter, {"grade": 3.0}),
        (ParentFilter, {"age": False}),
        (ParentFilter, {"age": "45"}),
        (ParentFilter, {"age": {"gte": 3}}),
    ],
)
def test_wrong_types_raise_invalid_filter(model, payload):
    with pytest.raises(InvalidFilter):
        parse_filter(model, payload)


def test_non_object_filter_raises_invalid_filter():
    with pytest.raises(InvalidFilter, match="reportFilters must be an object"):
        parse_filter(ReportFilter, ["status", "draft"], label="reportFilters")


def test_invalid_filter_message_names_the_field():
    with pytest.raises(InvalidFilter) as excinfo:
        parse_filter(ReportFilter, {"tags": "tag1"}, label="reportFilters")
    assert "tags" in str(excinfo.value)
    assert "reportFilters" in str(excinfo.value)
