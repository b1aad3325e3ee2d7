"""
Request store & query layer tests.

Covers status counts, inclusion filter, stable locale-aware sort, search
across identifying fields, grouping, and store identity rules.
"""

import locale
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from robbing.core.exceptions import NotFoundError, ValidationError
from robbing.models.robbing import Caller, RobbingStatus, Role
from robbing.services.creation_service import build_request
from robbing.services.request_store import (
    RequestStore,
    configure_collation,
    count_statuses,
    filter_by,
    group_by,
    search,
    sort_by,
)

S = RobbingStatus
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
PLANNER = Caller("Jane Doe", Role.CAMO_PLANNING)


@pytest.fixture()
def requests_(fields):
    """Three requests with distinct aircraft, components and creation times."""
    specs = [
        ("9M-XXD", "9M-XBH", True, "APU", "3800454-6", "SN-1", "WO.1"),
        ("9M-AAB", "9M-XBH", False, "Starter", "ST-22", "SN-2", "WO.2"),
        ("9m-zzc", "9M-QQA", True, "apu controller", "ACU-3", "SN-3", "WO.3"),
    ]
    built = []
    for idx, (donor, recipient, cert, desc, pn, sn, wo) in enumerate(specs, start=1):
        data = fields(
            donor_aircraft=donor, recipient_aircraft=recipient,
            donor_has_valid_certificate=cert, work_order_number=wo,
            component={"description": desc, "part_number": pn,
                       "serial_number": sn, "ata_chapter": "49"},
        )
        built.append(build_request(data, PLANNER, sequence=idx, now=NOW + timedelta(hours=idx)))
    return built


class TestStatusCounts:
    def test_every_key_present(self):
        counts = count_statuses([])
        assert set(counts) == set(RobbingStatus)
        assert sum(counts.values()) == 0

    def test_sum_equals_total(self, requests_):
        counts = count_statuses(requests_)
        assert counts[S.PENDING_SDS] == 2
        assert counts[S.AWAITING_FTAM_APPROVAL] == 1
        assert counts[S.NORMALIZED] == 0
        assert sum(counts.values()) == len(requests_)


class TestFilter:
    def test_empty_passes_everything(self, requests_):
        assert filter_by(requests_, []) == requests_
        assert filter_by(requests_, None) == requests_

    def test_inclusion(self, requests_):
        result = filter_by(requests_, ["Awaiting FTAM Approval"])
        assert [r.request_id for r in result] == ["CR-2025-0002"]


class TestSort:
    def test_dates_desc(self, requests_):
        result = sort_by(requests_, "created_date", "desc")
        assert [r.request_id for r in result] == ["CR-2025-0003", "CR-2025-0002", "CR-2025-0001"]

    def test_text_case_insensitive(self, requests_):
        result = sort_by(requests_, "donor_aircraft", "asc")
        assert [r.donor_aircraft for r in result] == ["9M-AAB", "9M-XXD", "9m-zzc"]

    def test_dotted_field(self, requests_):
        result = sort_by(requests_, "component.part_number", "asc")
        assert [r.component.part_number for r in result] == ["3800454-6", "ACU-3", "ST-22"]

    def test_unsupported_field_keeps_order(self, requests_):
        assert sort_by(requests_, "no_such_field", "asc") == requests_
        assert sort_by(requests_, "donor_has_valid_certificate", "desc") == requests_

    def test_stable_for_equal_keys(self, requests_):
        result = sort_by(requests_, "recipient_aircraft", "desc")
        assert [r.request_id for r in result] == ["CR-2025-0001", "CR-2025-0002", "CR-2025-0003"]

    def test_bad_direction(self, requests_):
        with pytest.raises(ValidationError):
            sort_by(requests_, "created_date", "sideways")


class TestSearch:
    @pytest.mark.parametrize("term,expected", [
        ("cr-2025-0002", ["CR-2025-0002"]),
        ("apu", ["CR-2025-0001", "CR-2025-0003"]),
        ("9M-XBH", ["CR-2025-0001", "CR-2025-0002"]),
        ("st-22", ["CR-2025-0002"]),
        ("sn-3", ["CR-2025-0003"]),
        ("wo.1", ["CR-2025-0001"]),
        ("nothing-matches", []),
    ])
    def test_term(self, requests_, term, expected):
        assert [r.request_id for r in search(requests_, term)] == expected

    def test_blank_term(self, requests_):
        assert search(requests_, "  ") == requests_


class TestGroupBy:
    def test_encounter_order(self, requests_):
        groups = group_by(requests_, "recipient_aircraft")
        assert list(groups) == ["9M-XBH", "9M-QQA"]
        assert len(groups["9M-XBH"]) == 2

    def test_component_identity(self, requests_):
        groups = group_by(requests_, "component")
        assert "3800454-6 / SN-1" in groups

    def test_unknown_key(self, requests_):
        with pytest.raises(ValidationError):
            group_by(requests_, "priority")


class TestRequestStore:
    def test_insert_get_replace(self, requests_):
        store = RequestStore()
        first = requests_[0]
        assert store.next_sequence() == 1
        store.insert(first)
        assert store.next_sequence() == 2
        assert store.get(first.request_id) is first

        updated = replace(first, reason="Updated")
        store.replace(updated)
        assert store.get(first.request_id).reason == "Updated"
        assert len(store) == 1

    def test_duplicate_insert(self, requests_):
        store = RequestStore()
        store.insert(requests_[0])
        with pytest.raises(ValueError):
            store.insert(requests_[0])

    def test_missing(self, requests_):
        store = RequestStore()
        with pytest.raises(NotFoundError):
            store.get("CR-2025-9999")
        with pytest.raises(NotFoundError):
            store.replace(requests_[0])

    def test_query_pipeline(self, requests_):
        store = RequestStore()
        for r in requests_:
            store.insert(r)
        result = store.query(statuses=[S.PENDING_SDS], term="apu",
                             sort_field="created_date", sort_direction="asc")
        assert [r.request_id for r in result] == ["CR-2025-0001", "CR-2025-0003"]
        assert sum(store.status_counts().values()) == 3

    def test_filter_and_search_methods(self, requests_):
        store = RequestStore()
        for r in requests_:
            store.insert(r)
        assert [r.request_id for r in store.filter_by([S.AWAITING_FTAM_APPROVAL])] == ["CR-2025-0002"]
        assert len(store.filter_by()) == 3
        assert [r.request_id for r in store.search("st-22")] == ["CR-2025-0002"]
        assert store.search("no-such-thing") == []

    def test_lock_for_known_request(self, requests_):
        store = RequestStore()
        store.insert(requests_[0])
        with store.lock_for(requests_[0].request_id):
            store.replace(replace(requests_[0], reason="Locked update"))
        assert store.get(requests_[0].request_id).reason == "Locked update"

    def test_lock_for_unknown_request_adds_no_lock(self, requests_):
        store = RequestStore()
        store.insert(requests_[0])
        for idx in range(50):
            with pytest.raises(NotFoundError):
                with store.lock_for(f"BOGUS-{idx}"):
                    pass
        assert list(store._request_locks) == [requests_[0].request_id]


class TestCollation:
    def test_c_locale(self):
        assert configure_collation("C") is True
        assert locale.setlocale(locale.LC_COLLATE) == "C"

    def test_unavailable_locale_keeps_current(self, caplog):
        configure_collation("C")
        with caplog.at_level(logging.WARNING, logger="robbing.services.request_store"):
            assert configure_collation("xx_NOWHERE.UTF-8") is False
        assert locale.setlocale(locale.LC_COLLATE) == "C"
        assert "unavailable" in caplog.text

    def test_code_point_order_under_c(self, requests_):
        configure_collation("C")
        ordered = sort_by(requests_, "component.part_number", "asc")
        assert [r.component.part_number for r in ordered] == ["3800454-6", "ACU-3", "ST-22"]
