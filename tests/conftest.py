from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from DatabaseManagers.DetectionStore import DetectionStore
from SpeedEvaluators.SpeedEvaluator import SpeedEvaluator
from WebServer.api_server import create_app


class FakeNotifier:
    def __init__(self, delivered: bool = True, error: Exception = None) -> None:
        self.delivered = delivered
        self.error = error
        self.calls: List[Tuple[str, float]] = []

    def notify(self, plate: str, kmh: float) -> bool:
        self.calls.append((plate, kmh))
        if self.error is not None:
            raise self.error
        return self.delivered


@pytest.fixture
def store(tmp_path: Path) -> DetectionStore:
    return DetectionStore(str(tmp_path / "kamerafyr-server.db"))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def evaluator(store: DetectionStore, notifier: FakeNotifier) -> SpeedEvaluator:
    return SpeedEvaluator(store, notifier)


@pytest.fixture
def client(evaluator: SpeedEvaluator) -> TestClient:
    return TestClient(create_app(evaluator))
