from .request_id import RequestIDMiddleware, client_ip

__all__ = [
    "RequestIDMiddleware",
    "client_ip",
]
