from cemetery.datasource.base import CemeteryService
from cemetery.datasource.http import HttpCemeteryService

__all__ = ["CemeteryService", "HttpCemeteryService"]
