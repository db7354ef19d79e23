"""Tests for the information gain scoring engine."""

from __future__ import annotations

import pytest

from tracechain.ledger.models import BatchEvent
from tracechain.scoring import (
    InformationGainParams,
    ReconcileMode,
    compute_information_gain,
)


def ev(event_type: str, **data) -> BatchEvent:
    return BatchEvent(event_type=event_type, event_data=data)


CREATED = ev("BATCH_CREATED")
DISPATCHED = ev("DISPATCHED", location="Porto")
RECEIVED = ev("RECEIVED", location="Lisboa")
FINALIZED = ev("FINALIZED", finalizedBy="retailer")


class TestPerEventRules:

    def test_empty_history(self):
        assert compute_information_gain([]) == 0

    def test_batch_created_only(self):
        assert compute_information_gain([CREATED]) == 2

    def test_iot_update_within_limits(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=24, humidity=90)]) == 1

    def test_iot_update_hot(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=24.1, humidity=50)]) == 1 - 5

    def test_iot_update_humid(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=10, humidity=91)]) == 1 - 3

    def test_iot_update_hot_and_humid(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=30, humidity=95)]) == 1 - 5 - 3

    def test_iot_update_missing_readings(self):
        assert compute_information_gain([ev("IOT_UPDATE")]) == 1

    def test_iot_update_unparseable_reading(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature="hot")]) == 1

    def test_iot_update_bad_humidity_keeps_temperature_rule(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=30, humidity="wet")]) == 1 - 5

    def test_iot_update_bad_temperature_keeps_humidity_rule(self):
        assert compute_information_gain([ev("IOT_UPDATE", temperature=[30], humidity=95)]) == 1 - 3

    @pytest.mark.parametrize("event,expected", [
        (ev("IOT_UPDATE", temperature=30, humidity=50, lat="n/a"), 1 - 5),
        (ev("IOT_UPDATE", temperature=30, humidity=95, lng=None, lat={"deg": 41}), 1 - 5 - 3),
        (ev("RATING", rating=5, lng={"deg": 3}), 1),
        (ev("RATING", rating=1, lat="north"), -2),
        (ev("QUALITY_INSPECTION", rating=5, inspector=42), 5),
        (ev("QUALITY_INSPECTION", rating=3, notes=["a", "b"], location=7), 2),
    ])
    def test_unconsumed_fields_never_mask_readings(self, event, expected):
        assert compute_information_gain([event]) == expected

    def test_dispatch_and_receive(self):
        assert compute_information_gain([DISPATCHED, RECEIVED]) == 6

    def test_received_without_dispatch(self):
        assert compute_information_gain([RECEIVED]) == 3

    def test_ratings_escalate(self):
        events = [ev("RATING", rating=5), ev("RATING", rating=4)]
        assert compute_information_gain(events) == 1 * 1 + 1 * 2

    def test_low_ratings_escalate(self):
        events = [ev("RATING", rating=1), ev("RATING", rating=2)]
        assert compute_information_gain(events) == -2 * 1 - 2 * 2

    def test_neutral_rating_still_counts_toward_multiplier(self):
        events = [ev("RATING", rating=3), ev("RATING", rating=3), ev("RATING", rating=5)]
        assert compute_information_gain(events) == 3

    def test_rating_without_value_counts_toward_multiplier(self):
        events = [ev("RATING"), ev("RATING", rating=4)]
        assert compute_information_gain(events) == 2

    @pytest.mark.parametrize("rating,expected", [
        (5, 5), (4, 5), (3, 2), (2, -6), (1, -6), (3.5, 0), (2.5, 0),
    ])
    def test_quality_inspection(self, rating, expected):
        assert compute_information_gain([ev("QUALITY_INSPECTION", rating=rating)]) == expected

    def test_quality_inspection_without_rating(self):
        assert compute_information_gain([ev("QUALITY_INSPECTION", inspector="ana")]) == 0

    def test_unknown_event_contributes_nothing(self):
        assert compute_information_gain([CREATED, ev("CUSTOMS_CLEARED", office="PT")]) == 2


class TestReconciliation:

    def test_full_history_scores_bronze_range(self):
        events = [
            CREATED,
            ev("IOT_UPDATE", temperature=20, humidity=50),
            DISPATCHED,
            RECEIVED,
            ev("RATING", rating=5),
            FINALIZED,
        ]
        # 2 + 1 + 3 + 3 + 1 = 10, then one completed leg: +10
        assert compute_information_gain(events) == 20

    def test_dispatch_never_received(self):
        # 3, open leg -4, ratio 0 -5, no IoT -3, not created -5
        assert compute_information_gain([DISPATCHED, FINALIZED]) == -14

    def test_no_legs(self):
        # 2 + 1, ratio 0 -> -5
        events = [CREATED, ev("IOT_UPDATE", temperature=20, humidity=50), FINALIZED]
        assert compute_information_gain(events) == 3 - 5

    def test_finalized_alone(self):
        assert compute_information_gain([FINALIZED]) == -5 - 3 - 5

    def test_three_of_four_legs(self):
        events = [CREATED, ev("IOT_UPDATE")]
        for _ in range(3):
            events += [DISPATCHED, RECEIVED]
        events += [DISPATCHED, FINALIZED]
        # 2 + 1 + 3*6 + 3 = 24; open leg -4; ratio .75 -> +6
        assert compute_information_gain(events) == 24 - 4 + 6

    def test_half_of_legs(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, RECEIVED, DISPATCHED, FINALIZED]
        # 2 + 1 + 3 + 3 + 3 = 12; open leg -4; ratio .5 -> +2
        assert compute_information_gain(events) == 12 - 4 + 2

    def test_receive_completes_latest_leg_only(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, DISPATCHED, RECEIVED, FINALIZED]
        # 2 + 1 + 3 + 3 + 3 = 12; first leg open -4; ratio .5 -> +2
        assert compute_information_gain(events) == 12 - 4 + 2

    def test_events_after_finalized_not_reconciled_inline(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, FINALIZED, RECEIVED]
        # 2 + 1 + 3 = 6; open leg -4; ratio 0 -5; then RECEIVED +3
        assert compute_information_gain(events) == 6 - 4 - 5 + 3

    def test_second_finalized_reconciles_again(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, RECEIVED, FINALIZED, FINALIZED]
        # 9 + 10 + 10
        assert compute_information_gain(events) == 29


class TestFinalMode:

    def test_matches_inline_for_single_trailing_finalized(self):
        events = [CREATED, ev("IOT_UPDATE", temperature=20), DISPATCHED, RECEIVED, FINALIZED]
        assert (
            compute_information_gain(events, mode=ReconcileMode.FINAL)
            == compute_information_gain(events, mode=ReconcileMode.INLINE)
        )

    def test_reconciles_over_complete_history(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, FINALIZED, RECEIVED]
        # 2 + 1 + 3 + 3 = 9; one completed leg +10
        assert compute_information_gain(events, mode="final") == 19

    def test_reconciles_once(self):
        events = [CREATED, ev("IOT_UPDATE"), DISPATCHED, RECEIVED, FINALIZED, FINALIZED]
        assert compute_information_gain(events, mode="final") == 19

    def test_no_reconciliation_without_finalized(self):
        assert compute_information_gain([DISPATCHED], mode="final") == 3

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            compute_information_gain([CREATED], mode="eventually")


class TestEngineProperties:

    def test_pure_and_repeatable(self):
        events = [CREATED, ev("RATING", rating=5), ev("RATING", rating=1), DISPATCHED, FINALIZED]
        first = compute_information_gain(events)
        assert all(compute_information_gain(events) == first for _ in range(5))

    def test_accepts_wire_dicts(self):
        events = [
            {"eventType": "BATCH_CREATED", "eventData": {}},
            {"eventType": "RATING", "eventData": {"rating": 5}, "timestamp": "2024-01-01T00:00:00.000Z"},
        ]
        assert compute_information_gain(events) == 3

    def test_accepts_generator(self):
        assert compute_information_gain(e for e in [CREATED, CREATED]) == 4

    def test_custom_params(self):
        params = InformationGainParams(created_bonus=10, temperature_limit=30)
        events = [CREATED, ev("IOT_UPDATE", temperature=28)]
        assert compute_information_gain(events, params=params) == 11

    def test_score_unbounded(self):
        events = [ev("RATING", rating=1)] * 20
        assert compute_information_gain(events) == -2 * sum(range(1, 21))
