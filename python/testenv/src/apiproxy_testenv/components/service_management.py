"""
Mock service management server

Serves the rollout and the fake service config the config manager fetches at
startup. The service config is referenced, not copied, so changes made to it
before the config manager starts are what gets served.
"""

from fastapi import HTTPException

from apiproxy_testenv.components.mock_server import MockHttpServer
from apiproxy_testenv.types import Service

ROLLOUT_CREATE_TIME = "2019-10-01T00:00:00.000Z"


class MockServiceMrg(MockHttpServer):
    """Mock service management server"""

    def __init__(self, service_name: str, rollout_id: str, service_config: Service):
        super().__init__("service-management")
        self.service_name = service_name
        self.rollout_id = rollout_id
        self.service_config = service_config
        self.fetch_count = 0

        self.app.add_api_route(
            "/v1/services/{service_name}/rollouts",
            self._get_rollouts,
            methods=["GET"],
        )
        self.app.add_api_route(
            "/v1/services/{service_name}/configs/{config_id}",
            self._get_config,
            methods=["GET"],
        )

    def _check_service(self, service_name: str) -> None:
        if service_name != self.service_name:
            raise HTTPException(status_code=404, detail=f"service {service_name} not found")

    async def _get_rollouts(self, service_name: str) -> dict:
        self._check_service(service_name)
        return {
            "rollouts": [
                {
                    "rolloutId": self.rollout_id,
                    "createTime": ROLLOUT_CREATE_TIME,
                    "status": "SUCCESS",
                    "serviceName": self.service_name,
                    "trafficPercentStrategy": {
                        "percentages": {self.service_config.id: 100.0},
                    },
                }
            ]
        }

    async def _get_config(self, service_name: str, config_id: str) -> dict:
        self._check_service(service_name)
        if config_id != self.service_config.id:
            raise HTTPException(status_code=404, detail=f"config {config_id} not found")
        self.fetch_count += 1
        return self.service_config.to_json_dict()

    def set_rollout_id(self, rollout_id: str) -> None:
        self.rollout_id = rollout_id
