import pytest


def test_deny_mode_denies_every_pending_application(db_session, make_job, make_applicant, submit):
    from portal.app.models.application import Application
    from portal.app.services import audit_log, cascade

    job = make_job("Admin Aide")
    apps = [submit(make_applicant(), job=job) for _ in range(5)]

    result = cascade.resolve_remaining(db_session, job.id, "deny", "position filled")
    assert (result.denied_count, result.rerouted_count, result.skipped_count) == (5, 0, 0)
    assert result.resolved_count == 5

    db_session.expire_all()
    for a in apps:
        row = db_session.get(Application, a.id)
        assert row.status == "denied"
        assert row.denial_reason == "position filled"
        last = audit_log.history_for(db_session, a.id)[-1]
        assert (last.from_status, last.to_status, last.reason) == ("pending", "denied", "position filled")
    db_session.refresh(job)
    assert job.status == "closed"


def test_deny_mode_only_touches_pending(db_session, make_job, make_applicant, submit, staff):
    from portal.app.services import cascade, status_engine

    job = make_job()
    waiting = submit(make_applicant(), job=job)
    reviewing = submit(make_applicant(), job=job)
    status_engine.transition(db_session, reviewing.id, "under_review", staff)

    result = cascade.resolve_remaining(db_session, job.id, "deny", None)
    assert result.denied_count == 1
    assert [o.application_id for o in result.outcomes] == [waiting.id]
    assert result.outcomes[0].detail == "Position has been filled"


def test_second_run_processes_nothing(db_session, make_job, make_applicant, submit):
    from portal.app.services import cascade

    job = make_job()
    for _ in range(3):
        submit(make_applicant(), job=job)

    cascade.resolve_remaining(db_session, job.id, "deny", "filled")
    again = cascade.resolve_remaining(db_session, job.id, "deny", "filled")
    assert (again.resolved_count, again.denied_count, again.rerouted_count, again.skipped_count) == (0, 0, 0, 0)

    rerouted_again = cascade.resolve_remaining(db_session, job.id, "reroute")
    assert rerouted_again.resolved_count == 0 and rerouted_again.skipped_count == 0


def test_reroute_moves_to_best_matching_open_job(db_session, make_job, make_applicant, submit, staff):
    from portal.app.models.application import Application
    from portal.app.services import audit_log, cascade, ranking, status_engine

    closing = make_job("Staff Nurse", degree_requirement="BS Nursing", required_skills=["Patient Care"])
    weak = make_job("Welder", degree_requirement="Vocational Welding", required_skills=["Welding"], required_eligibilities=["NC II Welding"])
    strong = make_job("Clinic Nurse", degree_requirement="BS Nursing", required_skills=["Patient Care"], required_eligibilities=["RN License"])
    nurse = make_applicant(highest_degree="BS Nursing", skills=["Patient Care"], eligibilities=["RN License"], years_experience=2)
    a = submit(nurse, job=closing)
    status_engine.transition(db_session, a.id, "under_review", staff)
    ranking.rank_job(db_session, closing.id)

    result = cascade.resolve_remaining(db_session, closing.id, "reroute", "We found you a similar opening.")
    assert (result.rerouted_count, result.denied_count, result.skipped_count) == (1, 0, 0)
    assert result.outcomes[0].target_job_id == strong.id

    db_session.expire_all()
    row = db_session.get(Application, a.id)
    assert row.job_id == strong.id
    assert row.rerouted_from_job_id == closing.id
    assert row.status == "pending"
    assert row.reroute_count == 1
    assert row.match_score is None and row.rank is None
    last = audit_log.history_for(db_session, a.id)[-1]
    assert (last.from_status, last.to_status) == ("under_review", "pending")
    assert last.reason == "re-routed from Staff Nurse"
    assert weak.id != result.outcomes[0].target_job_id


def test_reroute_falls_back_to_denial(db_session, make_job, make_applicant, submit):
    from portal.app.config import NO_ALTERNATIVE_REASON
    from portal.app.models.application import Application
    from portal.app.services import cascade

    closing = make_job("Only Job")
    a = submit(make_applicant(), job=closing)

    result = cascade.resolve_remaining(db_session, closing.id, "reroute")
    assert (result.rerouted_count, result.denied_count) == (0, 1)
    db_session.expire_all()
    row = db_session.get(Application, a.id)
    assert row.status == "denied"
    assert row.denial_reason == NO_ALTERNATIVE_REASON


def test_reroute_skips_jobs_already_applied_to(db_session, make_job, make_applicant, submit):
    from portal.app.services import cascade

    closing = make_job("Librarian I")
    other = make_job("Librarian II")
    applicant = make_applicant()
    submit(applicant, job=closing)
    submit(applicant, job=other)

    result = cascade.resolve_remaining(db_session, closing.id, "reroute")
    assert result.denied_count == 1
    assert result.rerouted_count == 0


def test_reroute_limit_is_a_skip(db_session, make_job, make_applicant, submit):
    from portal.app.config import MAX_REROUTES
    from portal.app.models.application import Application
    from portal.app.services import cascade

    closing = make_job("Closing")
    make_job("Open Elsewhere")
    a = submit(make_applicant(), job=closing)
    db_session.query(Application).filter(Application.id == a.id).update({"reroute_count": MAX_REROUTES})
    db_session.commit()

    result = cascade.resolve_remaining(db_session, closing.id, "reroute")
    assert (result.skipped_count, result.rerouted_count, result.denied_count) == (1, 0, 0)
    assert result.outcomes[0].action == "skipped"

    db_session.expire_all()
    row = db_session.get(Application, a.id)
    assert row.status == "pending"
    assert row.job_id == closing.id
    assert row.reroute_count == MAX_REROUTES


def test_reroute_count_never_exceeds_limit(db_session, make_job, make_applicant, submit, monkeypatch):
    from portal.app.models.application import Application
    from portal.app.services import cascade

    monkeypatch.setattr(cascade, "REROUTE_MIN_SCORE", 0.0)
    monkeypatch.setattr(cascade, "MAX_REROUTES", 2)

    jobs = [make_job(f"Job {i}") for i in range(4)]
    a = submit(make_applicant(), job=jobs[0])

    for job in jobs[:3]:
        cascade.resolve_remaining(db_session, job.id, "reroute")

    db_session.expire_all()
    row = db_session.get(Application, a.id)
    assert row.reroute_count == 2
    assert row.job_id == jobs[2].id
    assert row.status == "pending"


def test_one_bad_record_does_not_block_the_batch(db_session, make_job, make_applicant, submit, monkeypatch):
    from portal.app.services import cascade, status_engine
    from portal.app.utils.error_handlers import ConflictError

    job = make_job()
    apps = [submit(make_applicant(), job=job) for _ in range(3)]
    real_transition = status_engine.transition

    def flaky(db, application_id, *args, **kwargs):
        if application_id == apps[1].id:
            raise ConflictError("changed underneath")
        return real_transition(db, application_id, *args, **kwargs)

    monkeypatch.setattr(status_engine, "transition", flaky)

    result = cascade.resolve_remaining(db_session, job.id, "deny", "filled")
    assert (result.denied_count, result.skipped_count) == (2, 1)
    skipped = [o for o in result.outcomes if o.action == "skipped"]
    assert skipped[0].application_id == apps[1].id
    assert skipped[0].detail == "changed underneath"


def test_cascade_job_preconditions(db_session, make_job):
    from portal.app.services import cascade
    from portal.app.utils.error_handlers import InvalidTransitionError, NotFoundError, ValidationError

    with pytest.raises(NotFoundError):
        cascade.resolve_remaining(db_session, 987654, "deny")
    with pytest.raises(InvalidTransitionError):
        cascade.resolve_remaining(db_session, make_job(status="archived").id, "deny")
    with pytest.raises(ValidationError):
        cascade.resolve_remaining(db_session, make_job().id, "shuffle")


def test_hidden_and_closed_jobs_are_accepted(db_session, make_job):
    from portal.app.services import cascade

    hidden = make_job(status="hidden")
    closed = make_job(status="closed")
    assert cascade.resolve_remaining(db_session, hidden.id, "deny").resolved_count == 0
    assert cascade.resolve_remaining(db_session, closed.id, "deny").resolved_count == 0
    db_session.refresh(hidden)
    assert hidden.status == "closed"


def test_reroute_emits_event(db_session, make_job, make_applicant, submit, monkeypatch):
    from portal.app.services import cascade, events

    monkeypatch.setattr(cascade, "REROUTE_MIN_SCORE", 0.0)
    seen = []
    events.subscribe(events.APPLICATION_REROUTED, lambda name, payload: seen.append(payload))

    closing = make_job("Old Post")
    target = make_job("New Post")
    submit(make_applicant(), job=closing)
    cascade.resolve_remaining(db_session, closing.id, "reroute", "Same department")

    assert len(seen) == 1
    assert seen[0]["from_job_title"] == "Old Post"
    assert seen[0]["to_job_id"] == target.id
    assert seen[0]["message"] == "Same department"
