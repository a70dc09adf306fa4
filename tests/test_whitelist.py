# tests/test_whitelist.py
from conftest import events


def test_add_and_remove(client):
    r = client.put("/whitelist/bob@example.com")
    assert r.status_code == 200
    assert r.json() == {"Users": ["bob@example.com"]}

    r = client.delete("/whitelist/bob@example.com")
    assert r.status_code == 200
    assert r.json() == {"Users": []}
    assert client.get("/whitelist").json() == {"Users": []}


def test_idempotent_membership(client):
    for _ in range(2):
        r = client.put("/whitelist/bob@example.com")
        assert r.status_code == 200
    client.put("/whitelist/alice@example.com")
    assert client.get("/whitelist").json() == {"Users": ["alice@example.com", "bob@example.com"]}

    for _ in range(2):
        r = client.delete("/whitelist/bob@example.com")
        assert r.status_code == 200
        assert r.json() == {"Users": ["alice@example.com"]}

    # borrar a alguien que no está no es error
    assert client.delete("/whitelist/nobody@example.com").status_code == 200


def test_whitelist_changes_are_not_audited(client):
    client.put("/whitelist/bob@example.com")
    client.delete("/whitelist/bob@example.com")
    assert events(client) == []


def test_bad_paths(client):
    assert client.get("/whitelist/bob@example.com").status_code == 400
    assert client.put("/whitelist").status_code == 400
    assert client.delete("/whitelist/").status_code == 400
