"""Middleware modules for the Lumi Chat API."""

from lumi.middleware.cors import CORSMiddleware
from lumi.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["CORSMiddleware", "RequestIDMiddleware", "REQUEST_ID_HEADER"]
