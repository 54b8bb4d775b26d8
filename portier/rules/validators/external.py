import logging

import aiohttp

from portier.exceptions import RuleExecutionError
from portier.rules.interface import ValidatorInterface, Verdict


class ExternalPolicyValidator(ValidatorInterface):
    """
    Delegate the decision to an external policy endpoint.

    The endpoint receives the request (with the already mutated object) as
    JSON and must answer with `{"allowed": bool, "reason": str, "warnings":
    [str]}`, the latter two being optional.
    """

    url: str
    headers: dict

    def __init__(self, name: str, url: str, headers: dict = None, **kwargs):
        super().__init__(name, **kwargs)
        self.url = url
        self.headers = dict(headers or {})

    async def validate(
        self, admission_request, session: aiohttp.ClientSession = None, **kwargs
    ):
        payload = {
            "uid": admission_request.uid,
            "operation": admission_request.operation,
            "namespace": admission_request.namespace,
            "kind": {
                "group": admission_request.group,
                "version": admission_request.version,
                "kind": admission_request.kind,
            },
            "object": admission_request.object,
        }
        if session is None:
            async with aiohttp.ClientSession() as own_session:
                data = await self.__query(own_session, payload)
        else:
            data = await self.__query(session, payload)

        allowed = data.get("allowed") if isinstance(data, dict) else None
        if not isinstance(allowed, bool):
            raise RuleExecutionError(
                message="policy endpoint {url} sent no decision.", url=self.url
            )
        return Verdict(allowed, data.get("reason"), data.get("warnings"))

    async def __query(self, session: aiohttp.ClientSession, payload: dict):
        logging.debug('querying policy endpoint "%s".', self.url)
        async with session.post(
            self.url, json=payload, headers=self.headers
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)
