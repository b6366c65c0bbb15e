import pytest


def test_every_status_has_a_row_in_its_domain_table():
    from portal.app.services.workflow import STATUS_TYPES, TRANSITIONS

    for domain, status_type in STATUS_TYPES.items():
        assert set(TRANSITIONS[domain]) == set(status_type)


def test_terminal_states_per_domain():
    from portal.app.services.workflow import Domain, STATUS_TYPES, is_terminal

    terminal = {
        Domain.JOB: {"hired", "archived", "withdrawn"},
        Domain.TRAINING: {"certified", "failed", "withdrawn", "archived"},
    }
    for domain, expected in terminal.items():
        got = {s.value for s in STATUS_TYPES[domain] if is_terminal(s, domain)}
        assert got == expected


def test_withdrawn_is_only_offered_to_applicants():
    from portal.app.services.workflow import ADMIN, APPLICANT, HR, SYSTEM, valid_transitions

    assert [s.value for s in valid_transitions("pending", "job", APPLICANT)] == ["withdrawn"]
    for role in (HR, ADMIN, SYSTEM):
        values = [s.value for s in valid_transitions("pending", "job", role)]
        assert "withdrawn" not in values
        assert "denied" in values


def test_applicant_gets_nothing_once_application_is_past_withdrawal():
    from portal.app.services.workflow import APPLICANT, valid_transitions

    assert valid_transitions("shortlisted", "job", APPLICANT) == []
    assert valid_transitions("in_progress", "training", APPLICANT) == []


def test_valid_transitions_without_role_is_the_full_table_row():
    from portal.app.services.workflow import TRANSITIONS, Domain, JobApplicationStatus, valid_transitions

    for status in JobApplicationStatus:
        assert valid_transitions(status, Domain.JOB) == list(TRANSITIONS[Domain.JOB][status])


def test_is_transition_allowed():
    from portal.app.services.workflow import HR, is_transition_allowed

    assert is_transition_allowed("interviewed", "hired", "job", HR)
    assert not is_transition_allowed("archived", "hired", "job", HR)
    assert is_transition_allowed("completed", "certified", "training", HR)
    assert not is_transition_allowed("pending", "certified", "training", HR)


def test_parse_status_rejects_other_domain_values():
    from portal.app.services.workflow import parse_status

    assert parse_status(" Pending ", "job").value == "pending"
    with pytest.raises(ValueError):
        parse_status("certified", "job")
    with pytest.raises(ValueError):
        parse_status("hired", "training")


def test_job_status_table():
    from portal.app.services.workflow import valid_job_transitions

    assert [s.value for s in valid_job_transitions("active")] == ["hidden", "closed"]
    assert [s.value for s in valid_job_transitions("hidden")] == ["active", "closed"]
    assert [s.value for s in valid_job_transitions("closed")] == ["archived"]
    assert valid_job_transitions("archived") == []


def test_actor_roles():
    from portal.app.services.workflow import ADMIN, APPLICANT, SYSTEM_ACTOR, Actor

    assert Actor(id=1, role=APPLICANT).is_applicant
    assert not Actor(id=1, role=APPLICANT).is_staff
    assert Actor(id=2, role=ADMIN).is_staff
    assert SYSTEM_ACTOR.is_staff and SYSTEM_ACTOR.id is None
