def test_analytics_aggregates_attempts(client, owner, taker, make_user, create_quiz, submit):
    quiz = create_quiz(owner)
    other = make_user()

    submit(taker, quiz["id"], [1, 0], time_spent=20)
    submit(taker, quiz["id"], [1, -1], time_spent=40, forced=True)
    submit(other, quiz["id"], [0, 1], time_spent=60)

    r = client.get(f"/quizzes/{quiz['id']}/analytics", headers=owner["headers"])
    assert r.status_code == 200
    body = r.json()

    assert body["quiz_id"] == quiz["id"]
    assert body["total_attempts"] == 3
    assert body["unique_takers"] == 2
    assert body["average_score"] == 1.0
    assert body["average_percentage"] == 50.0
    assert body["best_percentage"] == 100
    assert body["average_time_spent"] == 40
    assert body["forced_submissions"] == 1

    first, second = body["questions"]
    assert (first["answered"], first["correct"]) == (3, 2)
    assert first["correct_rate"] == round(2 / 3, 3)
    assert (second["answered"], second["correct"]) == (2, 1)


def test_analytics_without_attempts(client, owner, create_quiz):
    quiz = create_quiz(owner)
    body = client.get(f"/quizzes/{quiz['id']}/analytics", headers=owner["headers"]).json()
    assert body["total_attempts"] == 0
    assert body["average_percentage"] == 0.0
    assert [q["correct_rate"] for q in body["questions"]] == [0.0, 0.0]


def test_analytics_restricted_to_owner_and_admin(client, owner, taker, make_user, create_quiz):
    quiz = create_quiz(owner)
    admin = make_user(admin=True)

    assert client.get(f"/quizzes/{quiz['id']}/analytics", headers=taker["headers"]).status_code == 403
    assert client.get(f"/quizzes/{quiz['id']}/analytics", headers=admin["headers"]).status_code == 200
