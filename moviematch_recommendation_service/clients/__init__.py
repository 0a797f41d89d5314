"""External service clients"""

from moviematch_recommendation_service.clients.metadata_client import MetadataClient

__all__ = ["MetadataClient"]
