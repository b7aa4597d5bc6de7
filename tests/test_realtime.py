import asyncio

from conftest import auth_headers
from ems_api.utils.realtime import ConnectionManager


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_broadcast_reaches_clients_and_drops_dead_ones():
    manager = ConnectionManager()
    alive, dead = FakeSocket(), FakeSocket(broken=True)

    async def scenario():
        await manager.connect(alive)
        await manager.connect(dead)
        await manager.broadcast("announcementDeleted", {"id": 3})

    asyncio.run(scenario())

    assert alive.accepted
    assert alive.sent == [{"event": "announcementDeleted", "data": {"id": 3}}]
    assert manager.active_connections == [alive]


def test_websocket_receives_holiday_event(client, admin):
    with client.websocket_connect("/ws") as websocket:
        response = client.post(
            "/api/holidays/seed",
            json=[{"date": "2025-03-14", "holiday_name": "Holi"}],
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert websocket.receive_json() == {"event": "holidayUpdated", "data": None}
