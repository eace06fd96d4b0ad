"""Tests for the Docker-backed container runtime"""

from __future__ import annotations

import gzip
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests
from docker.errors import APIError, DockerException, NotFound

from fleetbench.domain.config.docker import DockerConfig
from fleetbench.domain.models.outcome import Exhausted
from fleetbench.infrastructure.container.runtime import (
    ContainerNotFoundError,
    ContainerRuntime,
    ContainerRuntimeError,
    ImageTagError,
    create_docker_client,
    sanitize_output,
)
from fleetbench.infrastructure.retry import RetryExecutor, RetryObserver, RetryPolicy

FAST_POLICY = RetryPolicy(
    initial_interval=0.1,
    multiplier=2.0,
    randomization_factor=0.0,
    max_interval=0.4,
    max_elapsed_time=0.5,
)


def _no_sleep(seconds: float, cancel: threading.Event) -> bool:
    return cancel.is_set()


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def runtime(client):
    executor = RetryExecutor(observer=RetryObserver(), sleep=_no_sleep)
    return ContainerRuntime(client, tag_policy=FAST_POLICY, executor=executor)


class TestCreateDockerClient:
    """Tests for client construction"""

    def test_from_env_with_pinned_version(self):
        with patch("fleetbench.infrastructure.container.runtime.docker.from_env") as from_env:
            create_docker_client(DockerConfig(api_version="1.41", timeout=30))
            from_env.assert_called_once_with(version="1.41", timeout=30)

    def test_explicit_base_url(self):
        with patch("fleetbench.infrastructure.container.runtime.docker.DockerClient") as cls:
            create_docker_client(DockerConfig(base_url="tcp://engine:2375"))
            cls.assert_called_once_with(base_url="tcp://engine:2375", version="1.39", timeout=60)

    def test_engine_unreachable(self):
        with patch(
            "fleetbench.infrastructure.container.runtime.docker.from_env",
            side_effect=DockerException("no socket"),
        ):
            with pytest.raises(ContainerRuntimeError, match="Cannot get Docker client"):
                create_docker_client()


class TestExecCommand:
    """Tests for exec_command"""

    def test_output_is_sanitized(self, runtime, client):
        container = client.containers.get.return_value
        container.exec_run.return_value = SimpleNamespace(exit_code=0, output=b"8.0.0\nSNAPSHOT\n")

        output = runtime.exec_command("agent", "root", ["elastic-agent", "version"], ["A=1"])

        assert output == "8.0.0SNAPSHOT"
        client.containers.get.assert_called_once_with("agent")
        container.exec_run.assert_called_once_with(
            ["elastic-agent", "version"],
            user="root",
            environment=["A=1"],
            stdout=True,
            stderr=True,
            tty=False,
            detach=False,
        )

    def test_non_zero_exit_still_returns_output(self, runtime, client):
        client.containers.get.return_value.exec_run.return_value = SimpleNamespace(
            exit_code=1, output=b"error: boom"
        )
        assert runtime.exec_command("agent", "root", ["false"]) == "error: boom"

    def test_engine_error_is_wrapped(self, runtime, client):
        client.containers.get.side_effect = NotFound("no such container")
        with pytest.raises(ContainerRuntimeError, match="agent") as exc_info:
            runtime.exec_command("agent", "root", ["ls"])
        assert isinstance(exc_info.value.__cause__, NotFound)

    def test_unreachable_engine_is_wrapped(self, runtime, client):
        client.containers.get.side_effect = requests.exceptions.ConnectionError("engine down")
        with pytest.raises(ContainerRuntimeError, match="engine down") as exc_info:
            runtime.exec_command("agent", "root", ["ls"])
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("\x01\x00\x00\x00\x00\x00\x00\rhostname", "hostname"),
            ("\x01\x00\x00\x00\x00\x00\x00)a long line", "a long line"),
            ("plain\n", "plain"),
        ],
    )
    def test_sanitize_output(self, raw, expected):
        assert sanitize_output(raw) == expected


class TestInspectAndRemove:
    """Tests for inspect_container and remove_container"""

    def test_inspect_by_labels(self, runtime, client):
        client.containers.list.return_value = [SimpleNamespace(id="abc123")]
        client.containers.get.return_value = SimpleNamespace(attrs={"Id": "abc123"})

        assert runtime.inspect_container("fleet-server") == {"Id": "abc123"}
        client.containers.list.assert_called_once_with(
            all=True,
            filters={
                "label": [
                    "service.owner=co.elastic.observability",
                    "service.container.name=fleet-server",
                ]
            },
        )
        client.containers.get.assert_called_once_with("abc123")

    def test_inspect_not_found(self, runtime, client):
        client.containers.list.return_value = []
        with pytest.raises(ContainerNotFoundError, match="fleet-server"):
            runtime.inspect_container("fleet-server")

    def test_inspect_list_failure(self, runtime, client):
        client.containers.list.side_effect = APIError("engine down")
        with pytest.raises(ContainerRuntimeError, match="Cannot list containers"):
            runtime.inspect_container("fleet-server")

    def test_remove_forces_and_drops_volumes(self, runtime, client):
        runtime.remove_container("agent")
        client.containers.get.return_value.remove.assert_called_once_with(force=True, v=True)

    def test_remove_failure(self, runtime, client):
        client.containers.get.return_value.remove.side_effect = APIError("in use")
        with pytest.raises(ContainerRuntimeError, match="could not be removed"):
            runtime.remove_container("agent")


class TestLoadImage:
    """Tests for load_image"""

    def test_loads_decompressed_tarball(self, runtime, client, tmp_path):
        image = tmp_path / "agent.tar.gz"
        with gzip.open(image, "wb") as f:
            f.write(b"tar-bytes")
        client.images.load.return_value = ["image"]

        assert runtime.load_image(image) == ["image"]
        client.images.load.assert_called_once_with(b"tar-bytes")

    def test_missing_file(self, runtime, tmp_path):
        with pytest.raises(FileNotFoundError):
            runtime.load_image(tmp_path / "missing.tar.gz")

    def test_not_gzip(self, runtime, tmp_path):
        image = tmp_path / "agent.tar.gz"
        image.write_bytes(b"not gzip")
        with pytest.raises(ContainerRuntimeError, match="Could not load"):
            runtime.load_image(image)


class TestTagImage:
    """Tests for tag_image"""

    def test_retries_until_engine_ready(self, runtime, client):
        client.api.tag.side_effect = [APIError("not ready"), APIError("not ready"), True]

        runtime.tag_image("agent:8.0.0", "docker.elastic.co/beats/agent:8.0.0-amd64")

        assert client.api.tag.call_count == 3
        client.api.tag.assert_called_with(
            "agent:8.0.0", "docker.elastic.co/beats/agent", tag="8.0.0-amd64"
        )

    def test_refused_tag_is_retried(self, runtime, client):
        client.api.tag.side_effect = [False, True]
        runtime.tag_image("agent", "agent:latest")
        assert client.api.tag.call_count == 2

    def test_gives_up_when_exhausted(self, runtime, client):
        client.api.tag.side_effect = APIError("not ready")

        with pytest.raises(ImageTagError, match="after 4 attempt") as exc_info:
            runtime.tag_image("agent", "agent:latest")

        outcome = exc_info.value.outcome
        assert isinstance(outcome, Exhausted)
        assert outcome.elapsed == pytest.approx(0.7)
        assert client.api.tag.call_count == 4

    def test_cancelled(self, runtime, client):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ImageTagError, match="cancelled before the first attempt") as exc_info:
            runtime.tag_image("agent", "agent:latest", cancel=cancel)
        client.api.tag.assert_not_called()
        assert "None" not in str(exc_info.value)


class TestNetwork:
    """Tests for the test-private network"""

    def test_ensure_creates_missing_network(self, runtime, client):
        client.networks.list.return_value = []
        runtime.ensure_network()
        client.networks.list.assert_called_once_with(names=["elastic-dev-network"])
        client.networks.create.assert_called_once_with("elastic-dev-network", driver="bridge")

    def test_ensure_reuses_existing_network(self, runtime, client):
        existing = MagicMock()
        client.networks.list.return_value = [existing]
        assert runtime.ensure_network() is existing
        client.networks.create.assert_not_called()

    def test_remove_network(self, client):
        runtime = ContainerRuntime(client, config=DockerConfig(network_name="fleet-net"))
        runtime.remove_network()
        client.networks.get.assert_called_once_with("fleet-net")
        client.networks.get.return_value.remove.assert_called_once_with()

    def test_remove_missing_network_is_ignored(self, runtime, client):
        client.networks.get.side_effect = NotFound("gone")
        runtime.remove_network()

    def test_remove_network_failure(self, runtime, client):
        client.networks.get.return_value.remove.side_effect = APIError("has active endpoints")
        with pytest.raises(ContainerRuntimeError, match="Could not remove network"):
            runtime.remove_network()
