from sqlalchemy import func, select

from quizdeck.db.base import new_object_id
from quizdeck.models.attempt import Attempt, AttemptAnswer


def _attempt_count(db, quiz_id: str) -> int:
    return int(db.scalar(select(func.count(Attempt.id)).where(Attempt.quiz_id == quiz_id)) or 0)


def test_submit_grades_and_stores_attempt(client, owner, taker, create_quiz, submit, db):
    quiz = create_quiz(owner)

    r = submit(taker, quiz["id"], [1, 1], time_spent=42)
    assert r.status_code == 201
    body = r.json()
    assert body["score"] == 1
    assert body["total_points"] == 2
    assert body["percentage"] == 50
    assert body["time_spent"] == 42
    assert body["forced_submit"] is False
    assert body["quiz_title"] == "Capitals"
    assert body["user"]["id"] == taker["id"]
    assert [(a["question_index"], a["is_correct"], a["points"]) for a in body["answers"]] == [
        (0, True, 1),
        (1, False, 0),
    ]

    stored = db.scalar(select(Attempt).where(Attempt.id == body["id"]))
    assert stored is not None
    assert stored.score == 1
    assert stored.total_points == 2
    answers = db.scalars(select(AttemptAnswer).where(AttemptAnswer.attempt_id == body["id"])).all()
    assert len(answers) == 2


def test_submit_perfect_and_unanswered(client, owner, taker, create_quiz, submit):
    quiz = create_quiz(owner)

    perfect = submit(taker, quiz["id"], [1, 0]).json()
    assert (perfect["score"], perfect["total_points"]) == (2, 2)

    blank = submit(taker, quiz["id"], [-1, -1], forced=True).json()
    assert (blank["score"], blank["total_points"]) == (0, 2)
    assert blank["forced_submit"] is True
    assert [a["selected_option"] for a in blank["answers"]] == [-1, -1]


def test_missing_answers_count_as_unanswered(client, owner, taker, create_quiz):
    quiz = create_quiz(owner)
    body = {"answers": [{"question_index": 1, "selected_option": 0}], "time_spent": 5}

    r = client.post(f"/attempts/{quiz['id']}", json=body, headers=taker["headers"])
    assert r.status_code == 201
    data = r.json()
    assert data["score"] == 1
    assert data["total_points"] == 2
    assert [a["selected_option"] for a in data["answers"]] == [-1, 0]


def test_resubmission_stores_a_new_attempt(client, owner, taker, create_quiz, submit, db):
    quiz = create_quiz(owner)
    first = submit(taker, quiz["id"], [1, 0]).json()
    second = submit(taker, quiz["id"], [1, 0]).json()
    assert first["id"] != second["id"]
    assert _attempt_count(db, quiz["id"]) == 2


def test_owner_cannot_take_own_quiz(client, owner, create_quiz, submit, db):
    quiz = create_quiz(owner)

    r = submit(owner, quiz["id"], [1, 0])
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"
    assert _attempt_count(db, quiz["id"]) == 0


def test_cannot_submit_to_private_quiz(client, owner, taker, create_quiz, submit, db):
    quiz = create_quiz(owner, is_public=False)
    assert submit(taker, quiz["id"], [1, 0]).status_code == 403
    assert _attempt_count(db, quiz["id"]) == 0


def test_submit_invalid_requests(client, owner, taker, create_quiz, db):
    quiz = create_quiz(owner)
    url = f"/attempts/{quiz['id']}"

    out_of_range = {"answers": [{"question_index": 5, "selected_option": 0}]}
    assert client.post(url, json=out_of_range, headers=taker["headers"]).status_code == 400

    duplicate = {"answers": [{"question_index": 0, "selected_option": 0}, {"question_index": 0, "selected_option": 1}]}
    assert client.post(url, json=duplicate, headers=taker["headers"]).status_code == 400

    negative_time = {"answers": [], "time_spent": -1}
    assert client.post(url, json=negative_time, headers=taker["headers"]).status_code == 400

    assert _attempt_count(db, quiz["id"]) == 0


def test_submit_unknown_quiz(client, taker, submit):
    assert submit(taker, "zzz", [0]).status_code == 400
    assert submit(taker, new_object_id(), [0]).status_code == 404


def test_submit_requires_auth(client, owner, create_quiz):
    quiz = create_quiz(owner)
    r = client.post(f"/attempts/{quiz['id']}", json={"answers": []})
    assert r.status_code == 401


def test_get_attempt_visibility(client, owner, taker, make_user, create_quiz, submit):
    quiz = create_quiz(owner)
    attempt = submit(taker, quiz["id"], [1, 1]).json()
    stranger = make_user()
    admin = make_user(admin=True)

    r = client.get(f"/attempts/{attempt['id']}", headers=taker["headers"])
    assert r.status_code == 200
    detail = r.json()
    assert detail["score"] == 1
    assert [q["correct_answer"] for q in detail["questions"]] == [1, 0]

    assert client.get(f"/attempts/{attempt['id']}", headers=owner["headers"]).status_code == 200
    assert client.get(f"/attempts/{attempt['id']}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/attempts/{attempt['id']}", headers=stranger["headers"]).status_code == 403

    assert client.get("/attempts/nope", headers=taker["headers"]).status_code == 400
    assert client.get(f"/attempts/{new_object_id()}", headers=taker["headers"]).status_code == 404


def test_list_my_attempts_only_returns_own(client, owner, taker, make_user, create_quiz, submit):
    quiz = create_quiz(owner)
    other = make_user()
    submit(taker, quiz["id"], [1, 0])
    submit(taker, quiz["id"], [0, 0])
    submit(other, quiz["id"], [1, 0])

    r = client.get(f"/attempts/user/{quiz['id']}", headers=taker["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert {a["user"]["id"] for a in body["items"]} == {taker["id"]}

    r = client.get(f"/attempts/user/{quiz['id']}", params={"limit": 1}, headers=taker["headers"])
    body = r.json()
    assert len(body["items"]) == 1
    assert body["total_pages"] == 2


def test_list_my_attempts_empty(client, owner, taker, create_quiz):
    quiz = create_quiz(owner)
    body = client.get(f"/attempts/user/{quiz['id']}", headers=taker["headers"]).json()
    assert body == {"items": [], "current_page": 1, "total_pages": 0, "total": 0}


def test_list_quiz_attempts_owner_or_admin(client, owner, taker, make_user, create_quiz, submit):
    quiz = create_quiz(owner)
    other = make_user()
    admin = make_user(admin=True)
    submit(taker, quiz["id"], [1, 0])
    submit(other, quiz["id"], [0, 1])

    r = client.get(f"/attempts/quiz/{quiz['id']}", headers=owner["headers"])
    assert r.status_code == 200
    assert r.json()["total"] == 2
    assert {a["user"]["id"] for a in r.json()["items"]} == {taker["id"], other["id"]}

    assert client.get(f"/attempts/quiz/{quiz['id']}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/attempts/quiz/{quiz['id']}", headers=taker["headers"]).status_code == 403


def test_submit_is_rate_limited(client, owner, taker, create_quiz, submit):
    quiz = create_quiz(owner)
    statuses = [submit(taker, quiz["id"], [1, 0]).status_code for _ in range(31)]
    assert statuses[:30] == [201] * 30
    assert statuses[30] == 429
