def test_list_users_excludes_inactive_and_supports_search(client, alice, bob, carol):
    _, alice_headers = alice
    _, carol_headers = carol
    client.put("/api/users/deactivate", headers=carol_headers)

    response = client.get("/api/users", headers=alice_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert {u["username"] for u in data["users"]} == {"alice", "bob"}
    assert data["pagination"]["total"] == 2
    assert all("hashedPassword" not in u and "password" not in u for u in data["users"])

    response = client.get("/api/users", headers=alice_headers, params={"search": "BOB"})
    assert [u["username"] for u in response.json()["data"]["users"]] == ["bob"]


def test_list_users_paginates(client, alice, bob, carol):
    _, headers = alice
    response = client.get("/api/users", headers=headers, params={"page": 1, "limit": 2})
    data = response.json()["data"]
    assert len(data["users"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


def test_get_user_with_task_stats(client, alice, bob):
    _, alice_headers = alice
    bob_user, _ = bob
    for status in ("pending", "completed"):
        client.post(
            "/api/tasks",
            headers=alice_headers,
            json={"title": "T", "status": status, "assignedTo": bob_user["id"]},
        )

    response = client.get(f"/api/users/{bob_user['id']}", headers=alice_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["username"] == "bob"
    assert {"status": "completed", "count": 1} in data["stats"]["assignedTasks"]
    assert {"status": "pending", "count": 1} in data["stats"]["assignedTasks"]
    assert data["stats"]["createdTasks"] == 0


def test_get_unknown_user(client, alice):
    _, headers = alice
    response = client.get("/api/users/nope", headers=headers)
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


def test_get_user_tasks(client, alice, bob):
    _, alice_headers = alice
    bob_user, _ = bob
    client.post("/api/tasks", headers=alice_headers, json={"title": "For Bob", "assignedTo": bob_user["id"]})
    client.post("/api/tasks", headers=alice_headers, json={"title": "Urgent", "priority": "urgent", "assignedTo": bob_user["id"]})
    client.post("/api/tasks", headers=alice_headers, json={"title": "Mine"})

    response = client.get(f"/api/users/{bob_user['id']}/tasks", headers=alice_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["fullName"] == "Bob Tester"
    assert {t["title"] for t in data["tasks"]} == {"For Bob", "Urgent"}
    assert data["pagination"]["total"] == 2

    response = client.get(
        f"/api/users/{bob_user['id']}/tasks", headers=alice_headers, params={"priority": "urgent"}
    )
    assert [t["title"] for t in response.json()["data"]["tasks"]] == ["Urgent"]


def test_deactivation_keeps_tasks(client, alice, bob):
    _, alice_headers = alice
    bob_user, bob_headers = bob
    created = client.post(
        "/api/tasks", headers=alice_headers, json={"title": "T", "assignedTo": bob_user["id"]}
    ).json()["data"]["task"]

    assert client.put("/api/users/deactivate", headers=bob_headers).status_code == 200

    task = client.get(f"/api/tasks/{created['id']}", headers=alice_headers).json()["data"]["task"]
    assert task["assignedTo"]["id"] == bob_user["id"]


def test_user_routes_require_auth(client):
    assert client.get("/api/users").status_code == 401
    assert client.put("/api/users/deactivate").status_code == 401


def test_user_search_treats_wildcards_literally(client, alice, bob):
    _, headers = alice
    for term in ("%", "_"):
        response = client.get("/api/users", headers=headers, params={"search": term})
        assert response.json()["data"]["users"] == []


def test_user_tasks_are_listed_for_callers_outside_the_task(client, alice, bob, carol):
    _, alice_headers = alice
    _, bob_headers = bob
    carol_user, _ = carol
    task = client.post(
        "/api/tasks", headers=bob_headers, json={"title": "Bob to Carol", "assignedTo": carol_user["id"]}
    ).json()["data"]["task"]

    # Alice cannot read the task directly
    assert client.get(f"/api/tasks/{task['id']}", headers=alice_headers).status_code == 404

    response = client.get(f"/api/users/{carol_user['id']}/tasks", headers=alice_headers)
    assert [t["title"] for t in response.json()["data"]["tasks"]] == ["Bob to Carol"]
