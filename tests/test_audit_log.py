def test_submission_writes_initial_entry(db_session, make_job, make_applicant, submit):
    from portal.app.services import audit_log

    job = make_job()
    applicant = make_applicant()
    a = submit(applicant, job=job)

    entries = audit_log.history_for(db_session, a.id)
    assert len(entries) == 1
    assert entries[0].from_status is None
    assert entries[0].to_status == "pending"
    assert entries[0].changed_by == applicant.user_id


def test_replaying_history_reproduces_status(db_session, make_job, make_applicant, submit, staff):
    from portal.app.services import audit_log, status_engine

    job = make_job()
    a = submit(make_applicant(), job=job)

    status_engine.transition(db_session, a.id, "under_review", staff)
    status_engine.transition(db_session, a.id, "shortlisted", staff)
    status_engine.transition(db_session, a.id, "denied", staff, {"denial_reason": "Not a fit"})

    entries = audit_log.history_for(db_session, a.id)
    db_session.refresh(a)
    assert [e.to_status for e in entries] == ["pending", "under_review", "shortlisted", "denied"]
    assert audit_log.replay_status(entries) == a.status == "denied"
    # Each entry starts where the previous one ended.
    for prev, cur in zip(entries, entries[1:]):
        assert cur.from_status == prev.to_status
    assert entries[-1].reason == "Not a fit"


def test_replay_of_empty_history_is_initial_status():
    from portal.app.services import audit_log

    assert audit_log.replay_status([], initial="pending") == "pending"
    assert audit_log.replay_status([]) is None


def test_entry_to_public_shape(db_session, make_job, make_applicant, submit, staff):
    from portal.app.services import audit_log, status_engine

    a = submit(make_applicant(), job=make_job())
    status_engine.transition(db_session, a.id, "denied", staff, {"denial_reason": "Position filled"})

    first, last = [audit_log.entry_to_public(e) for e in audit_log.history_for(db_session, a.id)]
    assert first["from"] is None and first["to"] == "pending"
    assert "reason" not in first
    assert last == {
        "from": "pending",
        "to": "denied",
        "changed_at": last["changed_at"],
        "changed_by": staff.id,
        "reason": "Position filled",
    }
