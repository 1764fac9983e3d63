from fastapi import Request
from reelforge.services.registry import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
