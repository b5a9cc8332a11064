"""Unit tests for readiness polling."""

from unittest.mock import Mock, patch

import requests

from libs.readiness import wait_for_ready


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def test_ready_on_first_response():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.return_value = Mock(status_code=200)
        result = wait_for_ready("http://host:5000/", sleep=clock.sleep, clock=clock)

    assert result.ready is True
    assert result.attempts == 1
    assert result.status_code == 200
    mock_get.assert_called_once_with("http://host:5000/", timeout=5.0)


def test_any_status_code_counts_as_ready():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.return_value = Mock(status_code=404)
        result = wait_for_ready("http://host:5000/", sleep=clock.sleep, clock=clock)

    assert result.ready is True
    assert result.status_code == 404


def test_retries_until_port_answers():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.side_effect = [
            requests.ConnectionError("refused"),
            requests.ConnectionError("refused"),
            Mock(status_code=200),
        ]
        result = wait_for_ready(
            "http://host:5000/", interval=2, sleep=clock.sleep, clock=clock
        )

    assert result.ready is True
    assert result.attempts == 3
    assert result.elapsed_seconds == 4.0


def test_times_out():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.side_effect = requests.ConnectionError("refused")
        result = wait_for_ready(
            "http://host:5000/", timeout=10, interval=2, sleep=clock.sleep, clock=clock
        )

    assert result.ready is False
    assert result.process_exited is False
    assert "ConnectionError" in result.last_error
    assert clock.now <= 10
    assert result.attempts == 6


def test_stops_when_process_exits():
    clock = FakeClock()
    alive = Mock(side_effect=[True, False])
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.side_effect = requests.ConnectionError("refused")
        result = wait_for_ready(
            "http://host:5000/",
            timeout=60,
            alive_check=alive,
            sleep=clock.sleep,
            clock=clock,
        )

    assert result.ready is False
    assert result.process_exited is True
    assert result.attempts == 2
    assert alive.call_count == 2


def test_response_from_dead_process_is_not_ready():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.return_value = Mock(status_code=200)
        result = wait_for_ready(
            "http://host:5000/",
            alive_check=lambda: False,
            sleep=clock.sleep,
            clock=clock,
        )

    assert result.ready is False
    assert result.process_exited is True
    assert result.status_code == 200
    assert "launched process has exited" in result.last_error


def test_response_accepted_while_process_alive():
    clock = FakeClock()
    alive = Mock(return_value=True)
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.return_value = Mock(status_code=200)
        result = wait_for_ready(
            "http://host:5000/", alive_check=alive, sleep=clock.sleep, clock=clock
        )

    assert result.ready is True
    alive.assert_called_once()


def test_collects_each_failed_attempt():
    clock = FakeClock()
    with patch("libs.readiness.requests.get") as mock_get:
        mock_get.side_effect = [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            Mock(status_code=200),
        ]
        result = wait_for_ready("http://host:5000/", sleep=clock.sleep, clock=clock)

    assert result.ready is True
    assert len(result.errors) == 2
    assert result.errors[0].startswith("ConnectionError")
    assert result.errors[1].startswith("Timeout")
