"""
Tests for the folder picker
"""

import asyncio

from stockdesk.modules.files import service


def test_pick_folder_returns_selection(client, monkeypatch):
    monkeypatch.setattr(service, "ask_directory", lambda: "/home/stock/exports")
    response = client.post("/files/pick-folder")
    assert response.status_code == 200
    assert response.json() == {"path": "/home/stock/exports"}


def test_cancelled_dialog_returns_null(client, monkeypatch):
    monkeypatch.setattr(service, "ask_directory", lambda: None)
    assert client.post("/files/pick-folder").json() == {"path": None}


def test_dialog_runs_off_the_event_loop(monkeypatch):
    threads = []

    def fake_dialog():
        import threading
        threads.append(threading.current_thread())
        return "/tmp"

    monkeypatch.setattr(service, "ask_directory", fake_dialog)

    async def scenario():
        import threading
        path = await service.pick_folder()
        return path, threading.current_thread()

    path, loop_thread = asyncio.run(scenario())
    assert path == "/tmp"
    assert threads[0] is not loop_thread
