"""Fleet configuration model."""

from pydantic import BaseModel, Field


class FleetConfig(BaseModel):
    """Connection defaults used when enrolling agents into Fleet.

    Attributes:
        elasticsearch_uri: Elasticsearch host as seen from the agent container
        elasticsearch_port: Elasticsearch port
        elasticsearch_credentials: user:password pair embedded in URLs
        kibana_uri: Kibana host as seen from the agent container
        kibana_port: Kibana port
        agent_binary: Agent executable inside the container
        agent_user: User the agent commands run as
    """

    elasticsearch_uri: str = "elasticsearch"
    elasticsearch_port: int = Field(9200, gt=0, lt=65536)
    elasticsearch_credentials: str = "elastic:changeme"
    kibana_uri: str = "kibana"
    kibana_port: int = Field(5601, gt=0, lt=65536)
    agent_binary: str = "elastic-agent"
    agent_user: str = "root"
