"""
tests/test_api.py — HTTP routes and the /ws hub endpoint through FastAPI's TestClient.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect

from obs_live_suite import __version__
from obs_live_suite.api import deps
from obs_live_suite.core import connection_manager, init_obs_client
from obs_live_suite.macros import MacroBusyError


@pytest.fixture
def fake_obs(monkeypatch):
    obs = MagicMock()
    obs.is_connected.return_value = True
    obs.reconnect = AsyncMock(return_value=True)
    obs.get_status = AsyncMock(return_value={"connected": True, "currentScene": "Main", "streaming": False, "recording": True})
    obs.get_scenes = AsyncMock(return_value=[{"name": "Main", "index": 0}])
    obs.switch_scene = AsyncMock(return_value={"scene": "Intro", "status": "ok"})
    obs.start_stream = AsyncMock(return_value={"streaming": True})
    obs.stop_stream = AsyncMock(return_value={"streaming": False})
    obs.start_recording = AsyncMock(return_value={"recording": True})
    obs.stop_recording = AsyncMock(return_value={"recording": False})
    obs.set_scene_item_enabled = AsyncMock(return_value={"visible": False})
    monkeypatch.setattr(connection_manager, "_obs_client", obs)
    return obs


def _create(client, resource: str, body: dict) -> dict:
    r = client.post(f"/api/{resource}", json=body)
    assert r.status_code == 201, r.text
    return r.json()


# ─── System ───────────────────────────────────────────────────────────────────

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["obs_connected"] is False
    assert data["ws_clients"] == 0
    assert data["version"] == __version__


def test_healthz_reflects_obs(client, fake_obs):
    assert client.get("/healthz").json() == {"status": "ok"}
    fake_obs.is_connected.return_value = False
    r = client.get("/healthz")
    assert r.status_code == 503
    assert r.json()["detail"]["reason"] == "OBS not connected"


def test_api_key_required(client, settings):
    settings.api.api_key = "secret"
    assert client.get("/api/guests").status_code == 401
    assert client.get("/api/guests", headers={"Authorization": "Bearer nope"}).status_code == 403
    assert client.get("/api/guests", headers={"Authorization": "Bearer secret"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_missing_manager_is_503(client, monkeypatch):
    monkeypatch.setattr(deps, "_overlays", None)
    r = client.get("/api/overlays/state")
    assert r.status_code == 503


# ─── OBS ──────────────────────────────────────────────────────────────────────

def test_obs_status_without_client(client):
    assert client.get("/api/obs/status").json() == {
        "connected": False, "currentScene": None, "streaming": False, "recording": False,
    }
    assert client.get("/api/obs/scenes").status_code == 503


def test_obs_routes(client, fake_obs):
    assert client.get("/api/obs/status").json()["currentScene"] == "Main"
    assert client.post("/api/obs/reconnect").json() == {"connected": True}
    assert client.get("/api/obs/scenes").json() == [{"name": "Main", "index": 0}]

    assert client.post("/api/obs/scene", json={"sceneName": "Intro"}).json()["scene"] == "Intro"
    fake_obs.switch_scene.assert_awaited_once_with("Intro")

    client.post("/api/obs/stream", json={"action": "start"})
    client.post("/api/obs/record", json={"action": "stop"})
    fake_obs.start_stream.assert_awaited_once()
    fake_obs.stop_recording.assert_awaited_once()

    body = {"sceneName": "Main", "sourceName": "Camera", "visible": False}
    assert client.post("/api/obs/source/visibility", json=body).status_code == 200
    fake_obs.set_scene_item_enabled.assert_awaited_once_with("Main", "Camera", False)


def test_obs_bad_bodies(client, fake_obs):
    assert client.post("/api/obs/stream", json={"action": "pause"}).status_code == 400
    assert client.post("/api/obs/scene", json={"sceneName": ""}).status_code == 400


def test_obs_disconnected_client_is_503(client, settings):
    init_obs_client(settings.obs)
    r = client.post("/api/obs/scene", json={"sceneName": "Main"})
    assert r.status_code == 503
    assert "Not connected" in r.json()["detail"]


# ─── CRUD ─────────────────────────────────────────────────────────────────────

def test_guest_crud(client):
    guest = _create(client, "guests", {"display_name": "Alice", "subtitle": "Host"})
    assert guest["accent_color"]

    assert [g["display_name"] for g in client.get("/api/guests").json()] == ["Alice"]
    r = client.patch(f"/api/guests/{guest['id']}", json={"subtitle": "Co-host"})
    assert r.json()["subtitle"] == "Co-host"
    assert r.json()["display_name"] == "Alice"

    assert client.delete(f"/api/guests/{guest['id']}").json() == {"status": "deleted", "id": guest["id"]}
    assert client.get(f"/api/guests/{guest['id']}").status_code == 404
    assert client.delete(f"/api/guests/{guest['id']}").status_code == 404
    assert client.patch(f"/api/guests/{guest['id']}", json={"subtitle": "x"}).status_code == 404


def test_crud_validation_is_400(client):
    assert client.post("/api/guests", json={"display_name": "Bob", "accent_color": "red"}).status_code == 400
    assert client.post("/api/presets", json={"name": "Bad", "type": "countdown", "payload": {}}).status_code == 400
    assert client.post("/api/macros", json={"name": "Empty", "actions": []}).status_code == 400


def test_patch_null_on_required_field_is_400(client):
    guest = _create(client, "guests", {"display_name": "Alice", "subtitle": "Host"})
    assert client.patch(f"/api/guests/{guest['id']}", json={"display_name": None}).status_code == 400
    r = client.patch(f"/api/guests/{guest['id']}", json={"subtitle": None})
    assert r.status_code == 200
    assert (r.json()["display_name"], r.json()["subtitle"]) == ("Alice", None)


def test_profile_created_active_takes_over(client):
    default = client.get("/api/profiles/active").json()
    created = _create(client, "profiles", {"name": "Evening", "theme_id": default["theme_id"], "is_active": True})
    assert [p["id"] for p in client.get("/api/profiles").json() if p["is_active"]] == [created["id"]]


def test_presets_filter_and_update_validation(client):
    countdown = _create(client, "presets", {"name": "Break", "type": "countdown", "payload": {"seconds": 300}})
    _create(client, "presets", {"name": "Intro", "type": "macro", "payload": {"macro_id": "m1"}})

    assert [p["name"] for p in client.get("/api/presets?type=macro").json()] == ["Intro"]
    assert len(client.get("/api/presets").json()) == 2

    assert client.patch(f"/api/presets/{countdown['id']}", json={"payload": {"auto_start": True}}).status_code == 400
    assert client.post(f"/api/actions/preset/{countdown['id']}").status_code == 200


def test_poster_metadata_and_macro_camel_delay(client):
    poster = _create(client, "posters", {"title": "Sponsor", "file_url": "/img/s.png", "type": "image", "metadata": {"w": 1}})
    assert poster["metadata"] == {"w": 1}
    assert "meta" not in poster

    macro = _create(client, "macros", {"name": "Intro", "actions": [{"type": "lower.hide", "delayAfter": 400}]})
    assert macro["actions"][0]["delay_after"] == 400


def test_profiles_active_and_activate(client):
    active = client.get("/api/profiles/active").json()
    assert active["name"] == "Default"

    other = _create(client, "profiles", {"name": "Evening", "theme_id": active["theme_id"]})
    assert client.post(f"/api/profiles/{other['id']}/activate").json()["is_active"] is True
    assert client.get("/api/profiles/active").json()["id"] == other["id"]
    assert client.get(f"/api/profiles/{active['id']}").json()["is_active"] is False
    assert client.post("/api/profiles/missing/activate").status_code == 404


def test_profile_rotation(client):
    profile = client.get("/api/profiles/active").json()
    poster = _create(client, "posters", {"title": "Sponsor", "file_url": "/img/s.png", "type": "image"})

    r = client.post(f"/api/profiles/{profile['id']}/rotation", json={"posterId": poster["id"], "duration": 15})
    assert r.status_code == 200
    assert r.json()["poster_rotation"] == [{"poster_id": poster["id"], "duration": 15, "order": 1}]

    assert client.post(f"/api/profiles/{profile['id']}/rotation", json={"poster_id": "missing"}).status_code == 404

    r = client.delete(f"/api/profiles/{profile['id']}/rotation/{poster['id']}")
    assert r.json()["poster_rotation"] == []


# ─── Overlays ─────────────────────────────────────────────────────────────────

def test_overlay_routes(client):
    r = client.post("/api/overlays/lower", json={"action": "show", "payload": {"title": "Alice"}})
    assert r.status_code == 200
    assert r.json()["action"] == "show"

    state = client.get("/api/overlays/state").json()
    assert state["lower"]["visible"] is True
    # the seeded default theme is applied
    assert state["lower"]["payload"]["theme"]["template"] == "classic"

    assert client.post("/api/overlays/banner", json={"action": "show"}).status_code == 400
    assert client.post("/api/overlays/lower", json={"action": "explode"}).status_code == 400
    assert client.post("/api/overlays/lower", json={"action": "show", "payload": {}}).status_code == 400

    assert client.post("/api/overlays/clear").json() == {"status": "cleared"}
    assert client.get("/api/overlays/state").json()["lower"]["visible"] is False


def test_countdown_overlay(client):
    client.post("/api/overlays/countdown", json={"action": "set", "payload": {"seconds": 120}})
    r = client.post("/api/overlays/countdown", json={"action": "add-time", "payload": {"seconds": 30}})
    assert r.json()["remaining"] == 150
    assert client.post("/api/overlays/countdown", json={"action": "start"}).json()["running"] is True
    assert client.post("/api/overlays/countdown", json={"action": "pause"}).json()["running"] is False


# ─── Media ────────────────────────────────────────────────────────────────────

def test_media_routes(client):
    first = client.post("/api/media/A/items", json={"url": "https://youtu.be/dQw4w9WgXcQ"})
    assert first.status_code == 201
    assert first.json()["type"] == "youtube"
    second = client.post("/api/media/A/items", json={"url": "/media/clip.mp4", "title": "Clip"}).json()

    state = client.get("/api/media/A").json()
    assert state["count"] == 2
    assert [i["url"] for i in state["items"]] == ["https://youtu.be/dQw4w9WgXcQ", "/media/clip.mp4"]

    assert client.post("/api/media/A/next").json()["currentId"] == second["id"]
    assert client.post("/api/media/A/toggle", json={"on": True}).json()["on"] is True
    assert client.post("/api/media/A/mute").json()["muted"] is False
    assert client.post("/api/media/A/select", json={"index": 0}).json()["index"] == 0
    assert client.post("/api/media/A/select").status_code == 400
    assert client.post("/api/media/A/select", json={"index": 9}).status_code == 400
    assert client.post("/api/media/A/reorder", json={"order": [second["id"], first.json()["id"]]}).json()["index"] == 1
    assert client.post("/api/media/A/shuffle").status_code == 400

    assert client.patch(f"/api/media/A/items/{second['id']}", json={"title": "Renamed"}).json()["title"] == "Renamed"
    assert client.delete(f"/api/media/A/items/{second['id']}").json()["count"] == 1
    assert client.delete(f"/api/media/A/items/{second['id']}").status_code == 404


def test_media_unknown_instance(client):
    assert client.get("/api/media/C").status_code == 404
    assert client.post("/api/media/C/next").status_code == 404
    assert client.post("/api/media/A/items", json={"url": "/a.mp4", "start": "9:99"}).status_code == 400


# ─── Actions ──────────────────────────────────────────────────────────────────

def test_actions_catalog(client):
    guest = _create(client, "guests", {"display_name": "Alice"})
    _create(client, "guests", {"display_name": "Hidden", "is_enabled": False})
    macro = _create(client, "macros", {"name": "Intro", "actions": [
        {"type": "lower.hide", "delay_after": 500},
        {"type": "delay", "params": {"duration": 1000}},
    ]})

    catalog = client.get("/api/actions/catalog").json()
    assert catalog["guests"] == [{"id": guest["id"], "label": "Alice", "route": f"/api/actions/lower/guest/{guest['id']}"}]
    assert catalog["macros"][0]["id"] == macro["id"]
    assert catalog["macros"][0]["durationMs"] == 1500
    assert catalog["posters"] == []


def test_action_lower_guest(client):
    guest = _create(client, "guests", {"display_name": "Alice", "subtitle": "Host"})
    r = client.post(f"/api/actions/lower/guest/{guest['id']}", json={"duration": 5})
    assert r.status_code == 200

    payload = client.get("/api/overlays/state").json()["lower"]["payload"]
    assert payload["title"] == "Alice"
    assert payload["subtitle"] == "Host"
    assert payload["duration"] == 5
    assert "avatarUrl" not in payload
    assert client.post("/api/actions/lower/guest/missing").status_code == 404


def test_action_lower_text_preset(client):
    preset = _create(client, "text-presets", {"name": "Follow", "body": "Follow us!", "side": "right"})
    assert client.post(f"/api/actions/lower/text-preset/{preset['id']}").status_code == 200
    payload = client.get("/api/overlays/state").json()["lower"]["payload"]
    assert payload["contentType"] == "text"
    assert payload["body"] == "Follow us!"
    assert payload["side"] == "right"


def test_action_poster_show(client):
    poster = _create(client, "posters", {"title": "Sponsor", "file_url": "/img/s.png", "type": "image", "duration": 20})
    assert client.post(f"/api/actions/poster/show/{poster['id']}").status_code == 200
    state = client.get("/api/overlays/state").json()["poster"]
    assert state["visible"] is True
    assert state["payload"]["posterId"] == poster["id"]


def test_action_macro(client):
    macro = _create(client, "macros", {"name": "Intro", "actions": [{"type": "lower.show", "params": {"title": "Live"}}]})
    r = client.post("/api/actions/macro", json={"macroId": macro["id"]})
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    assert client.post("/api/actions/macro", json={}).status_code == 400
    assert client.post("/api/actions/macro", json={"macroId": "missing"}).status_code == 404


def test_action_macro_busy_and_failure(client, monkeypatch):
    macro = _create(client, "macros", {"name": "Intro", "actions": [{"type": "lower.hide"}]})

    busy = MagicMock()
    busy.execute = AsyncMock(side_effect=MacroBusyError())
    monkeypatch.setattr(deps, "_macros", busy)
    assert client.post("/api/actions/macro", json={"macroId": macro["id"]}).status_code == 409

    broken = _create(client, "macros", {"name": "Broken", "actions": [{"type": "poster.show", "params": {}}]})
    monkeypatch.undo()
    r = client.post("/api/actions/macro", json={"macroId": broken["id"]})
    assert r.status_code == 500
    assert "Action 0" in r.json()["detail"]


def test_action_presets(client):
    countdown = _create(client, "presets", {"name": "Break", "type": "countdown", "payload": {"seconds": 300}})
    r = client.post(f"/api/actions/preset/{countdown['id']}")
    assert r.status_code == 200
    countdown_state = client.get("/api/overlays/state").json()["countdown"]
    assert (countdown_state["remaining"], countdown_state["running"]) == (300, False)

    dangling = _create(client, "presets", {"name": "Gone", "type": "poster", "payload": {"poster_id": "missing"}})
    assert client.post(f"/api/actions/preset/{dangling['id']}").status_code == 404


def test_action_countdown_start(client):
    r = client.post("/api/actions/countdown/start", json={"seconds": 90})
    assert r.json()["running"] is True
    assert r.json()["remaining"] == 90
    assert client.post("/api/actions/countdown/start", json={"seconds": 0}).status_code == 400


# ─── Quiz ─────────────────────────────────────────────────────────────────────

SESSION = {
    "name": "Pub quiz",
    "players": [{"id": "p1", "name": "Alice"}, {"id": "p2", "name": "Bob"}],
    "rounds": [{"title": "R1", "questions": [
        {"id": "q1", "type": "qcm", "text": "2+2?", "options": ["3", "4"], "correct": 1, "points": 2},
        {"id": "q2", "type": "closest", "text": "Year?", "correct": 1969},
    ]}],
}


def test_quiz_flow(client):
    r = client.post("/api/quiz/session/create", json=SESSION)
    assert r.json()["session"]["title"] == "Pub quiz"

    assert client.post("/api/quiz/question/show").json() == {"success": True}
    assert client.get("/api/quiz/state").json()["phase"] == "accept_answers"
    client.post("/api/quiz/player/answer", json={"playerId": "p1", "option": "B"})
    client.post("/api/quiz/question/lock")
    client.post("/api/quiz/question/reveal")

    state = client.get("/api/quiz/state").json()
    assert state["phase"] == "score_update"
    assert state["session"]["scores"]["players"] == {"p1": 2, "p2": 0}

    assert client.post("/api/quiz/question/next").json() == {"success": True, "moved": True}
    assert client.post("/api/quiz/question/next").json()["moved"] is False
    assert client.post("/api/quiz/question/select", json={"questionIndex": 0}).json()["moved"] is True
    assert client.post("/api/quiz/scorepanel/toggle").json()["visible"] is False
    assert client.post("/api/quiz/round/start", json={"roundIndex": 4}).status_code == 400


def test_quiz_config(client):
    assert client.get("/api/quiz/config").json()["topN"] == 10
    r = client.post("/api/quiz/config", json={"topN": 5, "time_defaults": {"qcm": 25}})
    assert r.json()["config"]["topN"] == 5
    assert r.json()["config"]["time_defaults"]["qcm"] == 25
    assert client.post("/api/quiz/config", json={"topN": 0}).status_code == 400


def test_quiz_sessions(client):
    session = client.post("/api/quiz/session/create", json={**SESSION, "id": "friday"}).json()["session"]
    assert client.post("/api/quiz/session/save").status_code == 200
    assert [s["id"] for s in client.get("/api/quiz/sessions").json()["sessions"]] == ["friday"]

    r = client.put("/api/quiz/session/friday", json={"title": "Saturday"})
    assert r.json()["session"]["title"] == "Saturday"
    client.post("/api/quiz/session/reset")
    loaded = client.post("/api/quiz/session/load", json={"id": session["id"]}).json()["session"]
    assert loaded["title"] == "Saturday"

    assert client.post("/api/quiz/session/load", json={}).status_code == 400
    assert client.delete("/api/quiz/session/friday").json() == {"success": True}
    assert client.delete("/api/quiz/session/friday").status_code == 404


def test_quiz_session_bad_input_is_400(client):
    r = client.post("/api/quiz/session/create", json={"name": "X", "players": [{"name": "No id"}]})
    assert r.status_code == 400
    assert client.post("/api/quiz/session/create", json={"id": "../../etc"}).status_code == 400
    assert client.post("/api/quiz/session/load", json={"id": "../secrets"}).status_code == 400


def test_quiz_question_bank(client):
    q = client.post("/api/quiz/questions", json={"text": "Capital?", "options": ["Paris"], "correct": 0}).json()["question"]
    r = client.put(f"/api/quiz/questions/{q['id']}", json={"points": 3})
    assert r.json()["question"]["points"] == 3
    assert client.put("/api/quiz/questions/missing", json={"points": 1}).status_code == 404

    assert client.post("/api/quiz/questions/bulk", json={"questions": []}).status_code == 400
    assert client.post("/api/quiz/questions/bulk", json={"questions": ["oops"]}).status_code == 400
    assert client.post("/api/quiz/questions/bulk", json={"questions": [{"text": "A"}, {"text": "B"}]}).json()["imported"] == 2

    csv = "type,text,option_a,option_b,correct\nqcm,2+2?,3,4,B\nqcm,Bad,x,y,E\n"
    r = client.post("/api/quiz/questions/import-csv", json={"csv": csv})
    assert r.json()["imported"] == 1
    assert r.json()["errors"] == ["Question 2: Choice questions must specify a correct answer"]
    assert len(client.get("/api/quiz/questions").json()["questions"]) == 4

    assert client.delete(f"/api/quiz/questions/{q['id']}").json() == {"success": True}


def test_quiz_buzzer_and_media(client):
    assert client.post("/api/quiz/buzzer/hit", json={"playerId": "p1"}).json()["accepted"] is True
    assert client.post("/api/quiz/buzzer/hit", json={"playerId": "p2"}).json()["winner"] == "p1"
    client.post("/api/quiz/buzzer/lock")
    client.post("/api/quiz/buzzer/release")

    r = client.post("/api/quiz/media/mystery/start", json={"totalSquares": 50})
    assert r.json()["total"] == 50
    client.post("/api/quiz/media/mystery/stop")
    assert client.post("/api/quiz/media/mystery/step", json={"count": 2}).json()["revealed"] >= 2
    assert client.post("/api/quiz/media/zoom/spin").status_code == 400
    assert client.post("/api/quiz/timer/rewind").status_code == 400


def test_quiz_chat_bot(client):
    assert client.post("/api/quiz-bot/chat", json={"userId": "u1", "message": "!b"}).json() == {"ok": True}
    assert client.post("/api/quiz-bot/chat", json={"userId": "u2", "message": "hi"}).json() == {"ignored": True}
    assert client.post("/api/quiz-bot/chat", json={"message": "!a"}).status_code == 400


# ─── WebSocket hub ────────────────────────────────────────────────────────────

def test_ws_receives_published_events(client):
    with client.websocket_connect("/ws") as ws:
        hello = ws.receive_json()
        assert hello["data"]["type"] == "connected"

        ws.send_json({"type": "subscribe", "channel": "lower"})
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["data"]["type"] == "pong"
        assert client.get("/health").json()["channels"] == {"lower": 1}

        client.post("/api/overlays/lower", json={"action": "show", "payload": {"title": "Alice"}})
        frame = ws.receive_json()
        assert frame["channel"] == "lower"
        assert frame["data"]["type"] == "show"
        assert frame["data"]["payload"]["title"] == "Alice"

        ws.send_json({"type": "ack", "eventId": frame["data"]["id"], "channel": "lower", "success": True})


def test_ws_bad_subscribe_keeps_connection(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "channel": ["lower"]})
        assert ws.receive_json()["data"]["type"] == "error"
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["data"]["type"] == "pong"
        assert client.get("/health").json()["channels"] == {}


def test_ws_rejects_bad_token(client, settings):
    settings.api.api_key = "secret"
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=wrong") as ws:
            ws.receive_json()
    assert exc.value.code == 4001

    with client.websocket_connect("/ws?token=secret") as ws:
        assert ws.receive_json()["data"]["type"] == "connected"
