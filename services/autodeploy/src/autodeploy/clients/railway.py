"""Railway GraphQL client (environment variables only)."""

import structlog

from ..errors import ExternalServiceError
from .base import ProviderClient

logger = structlog.get_logger()

VARIABLE_UPSERT_MUTATION = """
mutation variableUpsert($serviceId: String!, $variables: [VariableUpsertInput!]!) {
  variableUpsert(input: { serviceId: $serviceId, variables: $variables }) {
    ok
  }
}
"""


class RailwayClient(ProviderClient):
    service_name = "railway"
    base_url = "https://backboard.railway.app/graphql/v2"

    async def upsert_variables(self, service_id: str, variables: dict[str, str]) -> None:
        """Upsert ``{name, value}`` pairs on a Railway service.

        GraphQL reports failures in the body with a 200 status, so ``errors``
        is checked explicitly.
        """
        data = await self._request(
            "POST",
            "",
            json={
                "query": VARIABLE_UPSERT_MUTATION,
                "variables": {
                    "serviceId": service_id,
                    "variables": [{"name": k, "value": v} for k, v in variables.items()],
                },
            },
        )
        errors = (data or {}).get("errors")
        if errors:
            raise ExternalServiceError(self.service_name, errors[0].get("message", "GraphQL error"))
        logger.info("railway_variables_upserted", service_id=service_id, count=len(variables))
