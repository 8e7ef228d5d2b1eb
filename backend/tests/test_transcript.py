from arlo.models.transcript import ParticipantEvent, ParticipantEventType, TranscriptSegment
from arlo.services.transcript import SessionLog


def _seg(sid, ts):
    return TranscriptSegment(id=sid, t_start_ms=ts, text=f"line {sid}")


def _evt(eid, etype, ts):
    return ParticipantEvent(id=eid, event_type=etype, participant_id="p1", participant_name="Ann", timestamp=ts)


def test_segments_are_deduplicated_by_id(fast_settings):
    log = SessionLog(fast_settings)
    assert log.add_segment(_seg("s1", 100))
    assert not log.add_segment(_seg("s1", 100))
    assert [s.id for s in log.segments] == ["s1"]


def test_listeners_fire_on_new_entries_only(fast_settings):
    log = SessionLog(fast_settings)
    calls = []
    log.add_listener(lambda: calls.append(1))

    log.add_segment(_seg("s1", 100))
    log.add_segment(_seg("s1", 100))
    log.add_event(_evt("e1", ParticipantEventType.JOINED, 50))

    assert len(calls) == 2


def test_backfill_puts_history_first_and_skips_known_ids(fast_settings):
    log = SessionLog(fast_settings)
    log.add_segment(_seg("s3", 300))
    log.add_segment(_seg("s2", 200))

    added = log.backfill(segments=[_seg("s1", 100), _seg("s2", 200)], events=[])

    assert added == 1
    assert [s.id for s in log.segments] == ["s1", "s3", "s2"]
    assert [i.timestamp for i in log.timeline()] == [100, 200, 300]


def test_backfill_with_nothing_new_is_a_noop(fast_settings):
    log = SessionLog(fast_settings)
    log.add_segment(_seg("s1", 100))
    calls = []
    log.add_listener(lambda: calls.append(1))

    assert log.backfill(segments=[_seg("s1", 100)]) == 0
    assert calls == []


def test_roster_alone_is_not_content(fast_settings):
    log = SessionLog(fast_settings)
    log.add_event(_evt("r1", ParticipantEventType.INITIAL_ROSTER, 10))
    assert not log.has_content()

    log.add_event(_evt("l1", ParticipantEventType.LEFT, 20))
    assert log.has_content()


def test_only_latest_suggestions_are_kept(fast_settings):
    log = SessionLog(fast_settings)
    for i in range(5):
        log.add_suggestion({"text": f"idea {i}"})

    assert [s["text"] for s in log.suggestions] == ["idea 2", "idea 3", "idea 4"]
