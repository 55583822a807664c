# tests/helpers.py


def login(client, username, password):
    return client.post("/login", json={"username": username, "password": password})
