
def _job(client, headers, title="Engineer II", **overrides):
    payload = {"title": title, "description": f"{title} opening"}
    payload.update(overrides)
    r = client.post("/jobs", headers=headers, json=payload)
    assert r.status_code == 201, r.text
    return r.json()["job"]


def _apply(client, headers, job_id, name, **profile):
    body = {"name": name}
    body.update(profile)
    assert client.put("/applicants/me", headers=headers, json=body).status_code == 200
    r = client.post("/applications", headers=headers, json={"job_id": job_id})
    assert r.status_code == 201, r.text
    return r.json()["application"]


def test_only_staff_can_post_jobs(client, auth_header):
    r = client.post("/jobs", headers=auth_header(5, "applicant"), json={"title": "Clerk"})
    assert r.status_code == 403
    job = _job(client, auth_header(1, "hr"), required_skills=["Filing", " ", "Typing"])
    assert job["status"] == "active"
    assert job["required_skills"] == ["Filing", "Typing"]
    assert job["allowed_status_changes"] == ["hidden", "closed"]


def test_applicants_only_see_active_jobs(client, auth_header):
    hr = auth_header(1, "hr")
    visible = _job(client, hr, "Visible")
    hidden = _job(client, hr, "Hidden", status="hidden")
    me = auth_header(10, "applicant")

    titles = [j["title"] for j in client.get("/jobs", headers=me).json()["jobs"]]
    assert titles == ["Visible"]
    assert client.get(f"/jobs/{hidden['id']}", headers=me).status_code == 404
    assert client.get(f"/jobs/{visible['id']}", headers=me).status_code == 200
    assert len(client.get("/jobs", headers=hr).json()["jobs"]) == 2


def test_patch_job_follows_job_table(client, auth_header):
    hr = auth_header(1, "hr")
    job = _job(client, hr)

    r = client.patch(f"/jobs/{job['id']}", headers=hr, json={"status": "closed", "years_of_experience": 3})
    assert r.status_code == 200, r.text
    assert r.json()["job"]["status"] == "closed"
    assert r.json()["job"]["years_of_experience"] == 3

    r = client.patch(f"/jobs/{job['id']}", headers=hr, json={"status": "active"})
    assert r.status_code == 422
    assert r.json()["details"]["allowed"] == ["archived"]


def test_rank_endpoint_and_listing(client, auth_header, db_session):
    from portal.app.models.application import Application

    hr = auth_header(1, "hr")
    job = _job(client, hr, "Analyst", required_skills=["SQL", "Python"], years_of_experience=2)
    strong = _apply(client, auth_header(21, "applicant"), job["id"], "Strong", skills=["SQL", "Python"], years_experience=4)
    weak = _apply(client, auth_header(22, "applicant"), job["id"], "Weak", skills=[], years_experience=0)
    mid = _apply(client, auth_header(23, "applicant"), job["id"], "Mid", skills=["SQL"], years_experience=2)

    r = client.post(f"/jobs/{job['id']}/rank", headers=hr)
    assert r.status_code == 200, r.text
    ranking = r.json()["ranking"]
    assert ranking["pool_size"] == 3
    assert [it["application_id"] for it in ranking["items"]] == [strong["id"], mid["id"], weak["id"]]
    assert [it["rank"] for it in ranking["items"]] == [1, 2, 3]
    assert ranking["items"][0]["percentiles"]["match"] == 100.0
    assert ranking["items"][2]["percentiles"]["match"] == 0.0
    assert set(ranking["statistics"]["match"]) == {"min", "max", "mean", "median", "stddev"}

    r = client.get(f"/jobs/{job['id']}/applications", headers=hr, params={"sort_by": "rank"})
    assert r.status_code == 200, r.text
    assert [a["rank"] for a in r.json()["applications"]] == [1, 2, 3]

    r = client.get(
        f"/jobs/{job['id']}/applications",
        headers=hr,
        params={"sort_by": "match_score", "descending": True, "limit": 2},
    )
    body = r.json()
    assert body["total"] == 3
    assert [a["id"] for a in body["applications"]] == [strong["id"], mid["id"]]

    r = client.get(f"/jobs/{job['id']}/applications", headers=hr, params={"sort_by": "salary"})
    assert r.status_code == 400

    r = client.get(f"/jobs/{job['id']}/applications", headers=hr, params={"status": "denied"})
    assert r.json()["applications"] == []

    assert client.get(f"/jobs/{job['id']}/applications", headers=auth_header(21, "applicant")).status_code == 403
    assert db_session.query(Application).filter(Application.rank.isnot(None)).count() == 3


def test_rank_empty_job(client, auth_header):
    hr = auth_header(1, "hr")
    job = _job(client, hr)
    r = client.post(f"/jobs/{job['id']}/rank", headers=hr)
    assert r.status_code == 200
    ranking = r.json()["ranking"]
    assert ranking["items"] == []
    assert ranking["statistics"]["match"]["mean"] == 0.0


def test_rank_unknown_job(client, auth_header):
    r = client.post("/jobs/99999/rank", headers=auth_header(1, "hr"))
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_close_and_deny_remaining(client, auth_header):
    hr = auth_header(1, "hr")
    job = _job(client, hr)
    apps = [_apply(client, auth_header(30 + i, "applicant"), job["id"], f"P{i}") for i in range(5)]

    r = client.post(f"/jobs/{job['id']}/close-and-deny-remaining", headers=hr, json={"reason": "position filled"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["denied_count"] == 5
    assert body["resolved_count"] == 5
    assert body["job"]["status"] == "closed"
    assert {o["application_id"] for o in body["outcomes"]} == {a["id"] for a in apps}

    again = client.post(f"/jobs/{job['id']}/close-and-deny-remaining", headers=hr, json={"reason": "position filled"})
    assert again.status_code == 200
    assert again.json()["denied_count"] == 0

    history = client.get(f"/applications/{apps[0]['id']}/history", headers=hr).json()["history"]
    assert history[-1]["to"] == "denied"
    assert history[-1]["reason"] == "position filled"


def test_close_and_reroute_remaining(client, auth_header):
    hr = auth_header(1, "hr")
    closing = _job(client, hr, "Accounting Clerk", degree_requirement="BS Accountancy", required_skills=["Bookkeeping"])
    target = _job(client, hr, "Payroll Clerk", degree_requirement="BS Accountancy", required_skills=["Bookkeeping"])
    good = _apply(
        client, auth_header(41, "applicant"), closing["id"], "Good Fit",
        highest_degree="BS Accountancy", skills=["Accounting"], years_experience=1,
    )

    r = client.post(
        f"/jobs/{closing['id']}/close-and-reroute-remaining",
        headers=hr,
        json={"custom_reason": "Moved to a sister unit"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["rerouted_count"], body["denied_count"], body["skipped_count"]) == (1, 0, 0)
    assert body["outcomes"][0]["target_job_id"] == target["id"]

    moved = client.get(f"/applications/{good['id']}", headers=hr).json()["application"]
    assert moved["job_id"] == target["id"]
    assert moved["rerouted_from_job_id"] == closing["id"]
    assert moved["reroute_count"] == 1
    assert moved["history"][-1]["reason"] == "re-routed from Accounting Clerk"


def test_close_archived_job_fails(client, auth_header):
    hr = auth_header(1, "hr")
    job = _job(client, hr)
    client.patch(f"/jobs/{job['id']}", headers=hr, json={"status": "closed"})
    client.patch(f"/jobs/{job['id']}", headers=hr, json={"status": "archived"})
    r = client.post(f"/jobs/{job['id']}/close-and-deny-remaining", headers=hr)
    assert r.status_code == 422


def test_cascade_unknown_job(client, auth_header):
    r = client.post("/jobs/4040/close-and-reroute-remaining", headers=auth_header(1, "hr"))
    assert r.status_code == 404


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "Backend running"


def test_root_entrypoint_serves_the_portal(client):
    from app.main import app as root_app
    from portal.app.main import app as portal_app

    assert root_app is portal_app


def test_rejected_job_patch_changes_nothing(client, auth_header):
    hr = auth_header(1, "hr")
    job = _job(client, hr, "Planning Officer", required_skills=["Budgeting"])
    assert client.patch(f"/jobs/{job['id']}", headers=hr, json={"status": "closed"}).status_code == 200

    r = client.patch(
        f"/jobs/{job['id']}",
        headers=hr,
        json={"title": "Renamed Title", "required_skills": ["Forecasting"], "status": "active"},
    )
    assert r.status_code == 422

    after = client.get(f"/jobs/{job['id']}", headers=hr).json()["job"]
    assert after["title"] == "Planning Officer"
    assert after["required_skills"] == ["Budgeting"]
    assert after["status"] == "closed"

    r = client.patch(f"/jobs/{job['id']}", headers=hr, json={"title": "Renamed Title", "status": "archived"})
    assert r.status_code == 200, r.text
    assert (r.json()["job"]["title"], r.json()["job"]["status"]) == ("Renamed Title", "archived")
