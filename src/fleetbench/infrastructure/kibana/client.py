"""Kibana Fleet API client"""

import logging
from typing import Any, Dict, List, Optional

from fleetbench.domain.config.kibana import KibanaConfig
from fleetbench.infrastructure.http_client import (
    HttpRetryConfig,
    get_json_with_retries,
    http_retry_config_from_dict,
)

logger = logging.getLogger(__name__)

AGENT_POLICIES_PATH = "/api/fleet/agent_policies"
HTTP_RETRY_FIELDS = {"max_attempts", "initial_delay", "backoff_multiplier", "jitter"}


class KibanaClient:
    """Client for the Fleet endpoints of the Kibana API"""

    def __init__(
        self,
        config: Optional[KibanaConfig] = None,
        retry_config: Optional[HttpRetryConfig] = None,
    ):
        """Initialize Kibana client

        Args:
            config: Kibana configuration (defaults if None)
            retry_config: HTTP retry configuration (built from `config` if None)
        """
        self.config = config or KibanaConfig()
        self.retry_config = retry_config or http_retry_config_from_dict(
            self.config.model_dump(include=HTTP_RETRY_FIELDS)
        )
        self.base_url = self.config.url.rstrip("/")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return get_json_with_retries(
            f"{self.base_url}{path}",
            headers={"Content-Type": "application/json", "kbn-xsrf": "fleetbench"},
            auth=(self.config.username, self.config.password),
            params=params,
            timeout=self.config.timeout,
            retry=self.retry_config,
        )

    def list_agent_policies(self) -> List[Dict[str, Any]]:
        data = self._get(AGENT_POLICIES_PATH)
        return data.get("items", []) if isinstance(data, dict) else []

    def get_default_policy(self, field: str) -> Dict[str, Any]:
        """Get the first agent policy whose `field` is true

        Args:
            field: Policy flag, e.g. "is_default" or "is_default_fleet_server"

        Returns:
            Policy document

        Raises:
            LookupError: If no policy has the flag set
        """
        for policy in self.list_agent_policies():
            if policy.get(field) is True:
                logger.debug(f"Default policy for {field}: {policy.get('id')}")
                return policy
        raise LookupError(f"No agent policy with {field}=true")
