from tests.fakes import as_user


def _codes(body):
    return [item["code"] for item in body["items"]]


def test_student_overview_shows_published_and_active_courses(client, seed):
    res = client.get("/courses/overview", headers=as_user(seed["student"]))
    assert res.status_code == 200, res.text
    body = res.json()

    # newest first
    assert _codes(body) == ["MA201", "CS101"]
    cs101 = body["items"][1]
    assert cs101["assessments_count"] == 3
    assert cs101["progress"] == 0
    assert cs101["progress_display"] == "0%"
    assert cs101["instructor_name"] == "Ada Lovelace"


def test_course_search_matches_code_and_instructor(client, seed):
    headers = as_user(seed["student"])

    body = client.get("/courses/overview", params={"search": "ma2"}, headers=headers).json()
    assert _codes(body) == ["MA201"]

    body = client.get("/courses/overview", params={"search": "lovelace"}, headers=headers).json()
    assert set(_codes(body)) == {"MA201", "CS101"}


def test_instructor_overview_sorted_by_name(client, seed):
    res = client.get(
        "/courses/overview",
        params={"sort_field": "name", "sort_order": "asc"},
        headers=as_user(seed["instructor"]),
    )
    assert res.status_code == 200, res.text
    body = res.json()

    assert [item["title"] for item in body["items"]] == ["Draft Course", "Intro to Programming", "Linear Algebra"]
    students = {item["code"]: item["students_count"] for item in body["items"]}
    assert students == {"DR100": 0, "CS101": 2, "MA201": 1}


def test_course_status_filter_for_admin(client, seed):
    body = client.get(
        "/courses/overview",
        params={"course_status": "draft"},
        headers=as_user(seed["admin"]),
    ).json()
    assert _codes(body) == ["DR100"]


def test_assessment_sort_field_rejected_for_courses(client, seed):
    res = client.get("/courses/overview", params={"sort_field": "date"}, headers=as_user(seed["admin"]))
    assert res.status_code == 422


def test_course_completed_when_every_assessment_submitted(client, seed):
    headers = as_user(seed["student"])
    for key in ("quiz", "project", "midterm"):
        res = client.post(f"/assessments/{seed[key]}/submissions", json={"content": key}, headers=headers)
        assert res.status_code == 201, res.text

    body = client.get("/courses/overview", params={"course_status": "completed"}, headers=headers).json()

    assert _codes(body) == ["CS101"]
    assert body["items"][0]["progress"] == 100
    assert body["items"][0]["completed_assessments"] == 3


def test_instructor_creates_course_and_assessment(client, seed):
    headers = as_user(seed["instructor"])

    res = client.post("/courses/", json={"title": "Operating Systems", "code": "CS301"}, headers=headers)
    assert res.status_code == 201, res.text
    course = res.json()
    assert course["instructor_id"] == seed["instructor"]
    assert course["status"] == "published"

    res = client.post(
        f"/courses/{course['id']}/assessments",
        json={
            "title": "Kernel Lab",
            "assessment_type": "practical",
            "due_date": "2030-05-01T10:00:00Z",
            "total_marks": 40,
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    assert res.json()["assessment_type"] == "practical"

    body = client.get("/courses/overview", params={"search": "CS301"}, headers=headers).json()
    assert body["items"][0]["assessments_count"] == 1


def test_duplicate_course_code_conflicts(client, seed):
    res = client.post(
        "/courses/",
        json={"title": "Another intro", "code": "CS101"},
        headers=as_user(seed["instructor"]),
    )
    assert res.status_code == 409


def test_course_creation_permissions(client, seed):
    res = client.post("/courses/", json={"title": "X", "code": "XX1"}, headers=as_user(seed["student"]))
    assert res.status_code == 403

    res = client.post(
        "/courses/",
        json={"title": "X", "code": "XX1", "instructor_id": seed["admin"]},
        headers=as_user(seed["instructor"]),
    )
    assert res.status_code == 403

    res = client.post(
        "/courses/",
        json={"title": "X", "code": "XX1", "instructor_id": seed["instructor"]},
        headers=as_user(seed["admin"]),
    )
    assert res.status_code == 201
    assert res.json()["instructor_id"] == seed["instructor"]


def test_enrollment(client, seed):
    headers = as_user(seed["other"])
    payload = {"course_id": seed["ma201"]}

    res = client.post("/enrollments", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    assert res.json()["course_id"] == seed["ma201"]

    assert client.post("/enrollments", json=payload, headers=headers).status_code == 409
    assert client.post("/enrollments", json={"course_id": 9999}, headers=headers).status_code == 404
