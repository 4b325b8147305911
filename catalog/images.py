"""
Ship image URL resolution.

Stored ``images`` carry independent URLs per view (angled/side/top/front) at
two resolutions (source, medium) plus a store image and a fleetchart image.
Nothing here raises: the worst case is the placeholder path.
"""

from typing import Any, Optional, Mapping

SHIP_PLACEHOLDER = "/assets/ship-placeholder.png"

VIEW_KEYS = {
    "angled": {"source": "angledView", "medium": "angledViewMedium"},
    "side": {"source": "sideView", "medium": "sideViewMedium"},
    "top": {"source": "topView", "medium": "topViewMedium"},
    "front": {"source": "frontView", "medium": "frontViewMedium"},
    "store": {"source": "store"},
    "fleetchart": {"source": "fleetchartImage"},
}

RESOLUTIONS = ("source", "medium")


def _lookup(container: Any, key: str) -> Any:
    if container is None:
        return None
    if isinstance(container, Mapping):
        return container.get(key)
    return getattr(container, key, None)


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_image_url(view: Any, size: str = "source") -> Optional[str]:
    """
    Return the URL at ``size`` of a multi-resolution view, or None.

    ``view`` may be None, a mapping or an object with attributes. Absent and
    blank URLs both come back as None; present URLs come back stripped.
    """
    return _clean(_lookup(view, size))


def _images_get(images: Any, key: str) -> Optional[str]:
    value = _lookup(images, key)
    if value is None and not isinstance(images, Mapping):
        # ShipImages exposes snake_case attributes
        snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in key)
        value = _lookup(images, snake)
    return _clean(value)


def resolve_image(images: Any, view: str = "angled", resolution: str = "source") -> str:
    """
    Resolve one view of a ship to a displayable URL.

    Tries the requested resolution, then the other resolution of the same
    view. Never substitutes a different view; returns ``SHIP_PLACEHOLDER``
    when the view has no URL.
    """
    try:
        keys = VIEW_KEYS.get(view)
        if not keys or images is None:
            return SHIP_PLACEHOLDER

        order = [resolution] + [r for r in RESOLUTIONS if r != resolution]
        for res in order:
            key = keys.get(res)
            if key is None:
                continue
            url = _images_get(images, key)
            if url:
                return url
    except Exception:
        return SHIP_PLACEHOLDER

    return SHIP_PLACEHOLDER


def resolve_image_with_fallback(images: Any, view: str = "angled", resolution: str = "source") -> str:
    """Requested view, then the canonical store view, then the placeholder"""
    url = resolve_image(images, view, resolution)
    if url != SHIP_PLACEHOLDER or view == "store":
        return url
    return resolve_image(images, "store")


def primary_image_url(images: Any) -> Optional[str]:
    """``angledView`` falling back to ``store``; None when neither is set"""
    for key in ("angledView", "store"):
        url = _images_get(images, key)
        if url:
            return url
    return None
