"""Remote catalog access: transport, request shapes, gateway and detail reads."""

from vnbrowse.services.vndb.details import CatalogDetailService
from vnbrowse.services.vndb.gateway import CatalogQuery, CatalogQueryGateway
from vnbrowse.services.vndb.transport import AiohttpTransport, Transport, TransportResponse

__all__ = [
    "AiohttpTransport",
    "CatalogDetailService",
    "CatalogQuery",
    "CatalogQueryGateway",
    "Transport",
    "TransportResponse",
]
