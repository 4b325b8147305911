"""
Ship catalog read side.

Modules:
    images: View/resolution image URL resolution with placeholder fallback
    query: Filtered, paginated listing and lookups against the store
    batch: Chunked, cancellable resolution of id lists
    warmer: Image-optimization cache warm-up job
    client: HTTP client for the catalog API and debounced search input

Usage:
    from catalog.query import ShipQueryFilters, query_ships
    from catalog.batch import BatchResolver, store_chunk_fetcher
    from catalog.images import resolve_image
"""

__all__ = [
    "resolve_image",
    "resolve_image_with_fallback",
    "extract_image_url",
    "primary_image_url",
    "ShipQueryFilters",
    "ShipPage",
    "query_ships",
    "BatchResolver",
    "CancellationToken",
    "ShipBatchLoader",
    "ImageCacheWarmer",
    "ShipCatalogClient",
    "DebouncedSearch",
]
