import pytest
from fastapi.testclient import TestClient

from runehelp.exceptions import PlayerNotFoundError, UpstreamError
from runehelp.report_builder import DeltaReportBuilder
from tests.helpers import FakeHiscoresClient, create_test_db, make_metrics, remove_test_db
from web.app import create_app


@pytest.fixture
def temp_db():
    database, db_path = create_test_db()
    yield database
    remove_test_db(database, db_path)


@pytest.fixture
def hiscores():
    return FakeHiscoresClient()


@pytest.fixture
def http(temp_db, hiscores):
    app = create_app(builder=DeltaReportBuilder(temp_db, hiscores))
    with TestClient(app) as client:
        yield client


def test_root_liveness(http):
    resp = http.get("/")
    assert resp.status_code == 200
    assert "RuneHelp backend is running" in resp.text


def test_player_report(http, hiscores):
    hiscores.queue(make_metrics(skills={"Attack": (50, 101333)}, bosses={"Zulrah": (4, 300)}))

    resp = http.get("/api/player/Zezima")

    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "Zezima"
    assert body["cached"] is False
    assert body["hasPreviousSnapshot"] is False
    assert body["skills"]["Attack"] == {"level": 50, "xp": 101333, "levelDiff": 0, "xpDiff": 0}
    assert body["bosses"]["Zulrah"] == {"kills": 4, "rank": 300, "killsDiff": 0}


def test_second_lookup_is_cached(http, hiscores, temp_db):
    hiscores.queue(make_metrics())

    first = http.get("/api/player/Zezima").json()
    second = http.get("/api/player/Zezima").json()

    assert second["cached"] is True
    assert second["skills"] == first["skills"]
    assert temp_db.snapshot_count("Zezima") == 1


def test_url_encoded_username(http, hiscores):
    hiscores.queue(make_metrics())

    resp = http.get("/api/player/Iron%20Man")

    assert resp.status_code == 200
    assert hiscores.calls == ["Iron Man"]


def test_unknown_player_is_404(http, hiscores, temp_db):
    hiscores.queue(PlayerNotFoundError("Hiscores has no entry for 'Ghost'"))

    resp = http.get("/api/player/Ghost")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Player not found"}
    assert temp_db.snapshot_count("Ghost") == 0


def test_blank_username_is_400(http, hiscores):
    resp = http.get("/api/player/%20%20")

    assert resp.status_code == 400
    assert resp.json() == {"error": "Username is required"}
    assert hiscores.calls == []


def test_upstream_failure_is_500(http, hiscores):
    hiscores.queue(UpstreamError("Hiscores unreachable for 'Zezima': timed out"))

    resp = http.get("/api/player/Zezima")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error"}


def test_unexpected_failure_is_500():
    class ExplodingBuilder:
        client = FakeHiscoresClient()

        def get_player_report(self, username):
            raise RuntimeError("boom")

    with TestClient(create_app(builder=ExplodingBuilder())) as client:
        resp = client.get("/api/player/Zezima")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error"}


def test_rate_status(http, hiscores):
    hiscores.queue(make_metrics())
    http.get("/api/player/Zezima")

    status = http.get("/api/rate-status").json()

    assert status["status"] == "safe"
    assert status["calls_in_window"] == 1
