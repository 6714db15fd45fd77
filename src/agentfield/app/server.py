"""FastAPI front end that steps a World and streams snapshots to websocket clients.

Every broadcast snapshot is queued until a client acknowledges its tick, so a
slow client receives the backlog in order instead of skipping ticks.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)

MIN_SPEED = 0.1
MAX_SPEED = 5.0


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: SimulationConfig):
        self.config = config
        self.world = World(config)
        self.running = False
        self.speed_multiplier = 1.0
        # Last tick sent to each connected client.
        self.clients: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def tick(self) -> int:
        return self.world.tick

    def status(self) -> Dict[str, Any]:
        latest = self.world.metrics[-1] if self.world.metrics else None
        return {
            "running": self.running,
            "tick": self.tick,
            "scenario": self.world.scenario.name,
            "seed": self.config.seed,
            "population": len(self.world.model),
            "speed": self.speed_multiplier,
            "clients": len(self.clients),
            "metrics": asdict(latest) if latest is not None else None,
        }

    def set_speed(self, multiplier: float) -> float:
        self.speed_multiplier = max(MIN_SPEED, min(MAX_SPEED, float(multiplier)))
        return self.speed_multiplier

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        self.running = True

    async def shutdown(self) -> None:
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None

    async def reset(self, scenario: Optional[str] = None) -> None:
        async with self._lock:
            if scenario is not None and scenario != self.world.scenario.name:
                # World validates the name before anything is replaced.
                world = World(replace(self.config, scenario=scenario))
                self.config = world.config
                self.world = world
            else:
                self.world.reset()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self.clients:
            self.clients[client] = -1
        await self._broadcast_snapshot()

    async def step_once(self) -> int:
        async with self._lock:
            self.world.step()
        await self._broadcast_snapshot()
        return self.tick

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.frame_interval / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                try:
                    self.world.step()
                except Exception:
                    # The world stays at its mid-tick state for inspection.
                    logger.exception("simulation halted at tick %d", self.tick)
                    self.running = False
                    continue
            await self._broadcast_snapshot()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    async def connect(self, client: WebSocket) -> None:
        self.clients[client] = -1
        logger.info("client connected (%d total)", len(self.clients))
        await self._send_pending(client)

    def disconnect(self, client: WebSocket) -> None:
        if self.clients.pop(client, None) is not None:
            logger.info("client disconnected (%d left)", len(self.clients))

    async def handle_message(self, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            logger.debug("ignoring malformed client message %r", message[:80])
            return
        if isinstance(payload, dict) and payload.get("type") == "ack" and isinstance(payload.get("tick"), int):
            await self.acknowledge(payload["tick"])

    async def current_snapshot(self) -> Dict[str, Any]:
        async with self._lock:
            return self._snapshot_message()

    def _snapshot_message(self) -> Dict[str, Any]:
        snapshot = self.world.snapshot()
        return {"type": "snapshot", "tick": snapshot.tick, "payload": asdict(snapshot)}

    async def _send_pending(self, client: WebSocket) -> None:
        last_sent = self.clients.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        if client in self.clients:
            self.clients[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        message = await self.current_snapshot()
        queued = QueuedSnapshot(tick=message["tick"], payload=json.dumps(message))
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        for client in list(self.clients):
            try:
                await self._send_pending(client)
            except WebSocketDisconnect:
                self.disconnect(client)


def create_app(config: Optional[SimulationConfig] = None) -> FastAPI:
    controller = SimulationController(config or SimulationConfig())
    app = FastAPI(title="Agentfield Simulation")
    app.state.controller = controller

    @app.on_event("startup")
    async def startup() -> None:
        await controller.start()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await controller.shutdown()

    @app.get("/api/status")
    async def status() -> Dict[str, Any]:
        return controller.status()

    @app.get("/api/snapshot")
    async def snapshot() -> Dict[str, Any]:
        return await controller.current_snapshot()

    @app.post("/api/control/start")
    async def start_simulation() -> Dict[str, Any]:
        controller.running = True
        return {"running": True}

    @app.post("/api/control/stop")
    async def stop_simulation() -> Dict[str, Any]:
        controller.running = False
        return {"running": False}

    @app.post("/api/control/step")
    async def step_simulation() -> Dict[str, Any]:
        tick = await controller.step_once()
        return {"running": controller.running, "tick": tick}

    @app.post("/api/control/reset")
    async def reset_simulation(payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            await controller.reset((payload or {}).get("scenario"))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"running": controller.running, "tick": controller.tick, "scenario": controller.world.scenario.name}

    @app.post("/api/control/speed")
    async def set_speed(payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"multiplier": controller.set_speed(payload.get("multiplier", 1.0))}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        await controller.connect(websocket)
        try:
            while True:
                await controller.handle_message(await websocket.receive_text())
        except WebSocketDisconnect:
            controller.disconnect(websocket)

    return app


app = create_app()

__all__ = ["app", "create_app", "SimulationController"]
