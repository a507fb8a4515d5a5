def test_healthcheck(client):
    response = client.get("/healthcheck")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_queue_starts_empty(client):
    response = client.get("/imports/queue/status")
    assert response.status_code == 200
    assert response.json() == {
        "isProcessing": False,
        "currentJobId": None,
        "queueLength": 0,
        "orderedQueue": [],
    }
