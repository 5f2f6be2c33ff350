from fastapi import Request

from fallback_proxy.gateway.gateway import ProxyGateway


def get_gateway(request: Request) -> ProxyGateway:
    """The process-wide gateway built in the app lifespan.

    Tests replace it via `app.dependency_overrides[get_gateway]`.
    """
    return request.app.state.gateway
