"""Docker Engine API client.

Async access to the container, network and image endpoints used by the
reconciler. Supports both Unix socket and TCP connections.
"""

import json
import logging
import struct
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from berth.models.config import DockerConfig


logger = logging.getLogger(__name__)

# stream type (1 byte), padding (3 bytes), payload size (4 bytes, big endian)
_FRAME_HEADER = struct.Struct(">BxxxL")


class DockerAPIError(Exception):
    """A Docker Engine API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class DockerNotFoundError(DockerAPIError):
    """The referenced object does not exist."""
    pass


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return resp.text.strip()


def _raise_for_status(resp: httpx.Response) -> None:
    """Raise DockerAPIError for unsuccessful responses.

    304 Not Modified is success: the daemon sends it for start on a running
    container and stop on a stopped one.
    """
    if resp.is_success or resp.status_code == 304:
        return
    message = _error_message(resp)
    if resp.status_code == 404:
        raise DockerNotFoundError(message, resp.status_code)
    raise DockerAPIError(message, resp.status_code)


def demux_log_stream(buffer: bytearray) -> List[bytes]:
    """Pop complete multiplexed frames from ``buffer`` and return their payloads.

    Containers without a TTY get stdout/stderr framed with an 8-byte
    header; incomplete frames are left in the buffer.
    """
    payloads = []
    while len(buffer) >= _FRAME_HEADER.size:
        stream_type, size = _FRAME_HEADER.unpack_from(buffer)
        if stream_type not in (0, 1, 2):
            # Not multiplexed (TTY): everything is payload
            payloads.append(bytes(buffer))
            buffer.clear()
            break
        end = _FRAME_HEADER.size + size
        if len(buffer) < end:
            break
        payloads.append(bytes(buffer[_FRAME_HEADER.size:end]))
        del buffer[:end]
    return payloads


class DockerClient:
    """Async Docker Engine API client."""

    def __init__(self, config: Optional[DockerConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the client; the HTTP connection is created lazily."""
        self.config = config or DockerConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _create_client(self) -> httpx.AsyncClient:
        """Create a new HTTP client."""
        host = self.config.host
        timeout = self.config.api_timeout
        if self._transport is not None:
            return httpx.AsyncClient(transport=self._transport, base_url="http://docker", timeout=timeout)
        if host.startswith("unix://"):
            transport = httpx.AsyncHTTPTransport(uds=host.replace("unix://", ""))
            return httpx.AsyncClient(transport=transport, base_url="http://localhost", timeout=timeout)
        if host.startswith("tcp://"):
            host = host.replace("tcp://", "http://")
        return httpx.AsyncClient(base_url=host, timeout=timeout)

    async def get(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DockerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self.get()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise DockerAPIError(f"Error communicating with Docker: {e}") from e
        _raise_for_status(resp)
        return resp

    # Containers

    async def list_containers(self, all: bool = True) -> List[Dict[str, Any]]:
        """List containers."""
        resp = await self._request("GET", "/containers/json", params={"all": "true" if all else "false"})
        return resp.json()

    async def container_exists(self, container_id: str) -> bool:
        """Whether a container with exactly this ID is listed."""
        containers = await self.list_containers(all=True)
        return any(c.get("Id") == container_id for c in containers)

    async def create_container(
        self,
        config: Dict[str, Any],
        host_config: Dict[str, Any],
        networking_config: Dict[str, Any],
        name: str,
    ) -> str:
        """Create a container and return its ID."""
        body = dict(config)
        body["HostConfig"] = host_config
        if networking_config:
            body["NetworkingConfig"] = networking_config
        resp = await self._request("POST", "/containers/create", params={"name": name}, json=body)
        data = resp.json()
        for warning in data.get("Warnings") or []:
            logger.warning(f"Docker warning creating {name}: {warning}")
        logger.info(f"Created container {name}: {data['Id'][:12]}")
        return data["Id"]

    async def inspect_container(self, container_id: str) -> Dict[str, Any]:
        """Inspect a container."""
        resp = await self._request("GET", f"/containers/{container_id}/json")
        return resp.json()

    async def start_container(self, container_id: str) -> None:
        """Start a container (already running is fine)."""
        await self._request("POST", f"/containers/{container_id}/start")

    async def stop_container(self, container_id: str, timeout: int) -> None:
        """Stop a container, killing it after ``timeout`` seconds (already stopped is fine)."""
        client_timeout = self.config.api_timeout + timeout
        await self._request(
            "POST",
            f"/containers/{container_id}/stop",
            params={"t": str(timeout)},
            timeout=client_timeout,
        )

    async def remove_container(self, container_id: str, remove_volumes: bool = False, force: bool = False) -> None:
        """Remove a container."""
        await self._request(
            "DELETE",
            f"/containers/{container_id}",
            params={
                "v": "true" if remove_volumes else "false",
                "force": "true" if force else "false",
            },
        )

    async def wait_container(self, container_id: str, condition: str = "not-running") -> int:
        """Block until the container meets ``condition`` and return its exit code.

        Conditions: not-running, next-exit, removed.
        """
        resp = await self._request(
            "POST",
            f"/containers/{container_id}/wait",
            params={"condition": condition},
            timeout=None,
        )
        data = resp.json()
        error = data.get("Error")
        if error and error.get("Message"):
            raise DockerAPIError(error["Message"], resp.status_code)
        return data.get("StatusCode", -1)

    async def copy_to_container(self, container_id: str, path: str, archive: bytes) -> None:
        """Extract a tar archive into the container at ``path``."""
        await self._request(
            "PUT",
            f"/containers/{container_id}/archive",
            params={"path": path},
            content=archive,
            headers={"Content-Type": "application/x-tar"},
        )

    async def stream_logs(
        self,
        container_id: str,
        stdout: bool = True,
        stderr: bool = True,
        follow: bool = True,
        timestamps: bool = False,
    ) -> AsyncIterator[str]:
        """Yield log lines as they arrive."""
        client = await self.get()
        params = {
            "stdout": str(stdout).lower(),
            "stderr": str(stderr).lower(),
            "follow": str(follow).lower(),
            "timestamps": str(timestamps).lower(),
        }
        try:
            async with client.stream("GET", f"/containers/{container_id}/logs", params=params, timeout=None) as resp:
                if not resp.is_success:
                    await resp.aread()
                    _raise_for_status(resp)

                frames = bytearray()
                pending = ""
                async for chunk in resp.aiter_bytes():
                    frames.extend(chunk)
                    for payload in demux_log_stream(frames):
                        pending += payload.decode(errors="replace")
                        *lines, pending = pending.split("\n")
                        for line in lines:
                            yield line
                if pending:
                    yield pending
        except httpx.RequestError as e:
            raise DockerAPIError(f"Error streaming logs: {e}") from e

    # Networks

    async def network_connect(self, network: str, container_id: str, endpoint_config: Optional[Dict[str, Any]] = None) -> None:
        """Connect a container to a network."""
        body: Dict[str, Any] = {"Container": container_id}
        if endpoint_config:
            body["EndpointConfig"] = endpoint_config
        await self._request("POST", f"/networks/{network}/connect", json=body)

    async def network_disconnect(self, network: str, container_id: str, force: bool = False) -> None:
        """Disconnect a container from a network."""
        await self._request(
            "POST",
            f"/networks/{network}/disconnect",
            json={"Container": container_id, "Force": force},
        )

    # Images

    async def inspect_image(self, image_ref: str) -> Optional[Dict[str, Any]]:
        """Inspect a local image, None if it is not present."""
        try:
            resp = await self._request("GET", f"/images/{image_ref}/json")
        except DockerNotFoundError:
            return None
        return resp.json()

    async def pull_image(self, image_ref: str) -> None:
        """Pull an image from its registry."""
        image, tag = image_ref, "latest"
        if "@" in image_ref:
            image, tag = image_ref.split("@", 1)
        elif ":" in image_ref.rsplit("/", 1)[-1]:
            image, tag = image_ref.rsplit(":", 1)

        logger.info(f"Pulling image {image}:{tag}")
        client = await self.get()
        try:
            async with client.stream(
                "POST",
                "/images/create",
                params={"fromImage": image, "tag": tag},
                timeout=None,
            ) as resp:
                await resp.aread()
                _raise_for_status(resp)
                # Errors during the pull arrive as JSON lines in a 200 response
                for line in resp.text.splitlines():
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError:
                        continue
                    if event.get("error"):
                        raise DockerAPIError(event["error"], resp.status_code)
        except httpx.RequestError as e:
            raise DockerAPIError(f"Error pulling image {image_ref}: {e}") from e

    async def remove_image(self, image_ref: str, force: bool = False) -> None:
        """Remove a local image."""
        await self._request("DELETE", f"/images/{image_ref}", params={"force": "true" if force else "false"})
