"""Trail geometry dataset loading.

The dataset is a GeoJSON FeatureCollection of trail LineStrings. It is
fetched once from its published URL and cached under data/, or read from a
local file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

import requests

from trailmap_planner.constants import DataConfig
from trailmap_planner.model.trail import TrailFeature

logger = logging.getLogger(__name__)


def download_trails(
    url: str = DataConfig.TRAILS_URL,
    target_path: Path = DataConfig.TRAILS_CACHE_PATH,
) -> Path:
    """Download the trail dataset if not already cached.

    Args:
        url: GeoJSON URL
        target_path: Local cache path

    Returns:
        Path to the downloaded (or existing) file.

    Raises:
        requests.RequestException: If download fails.
    """
    if target_path.exists():
        logger.info(f"Trails already cached at {target_path}")
        return target_path

    target_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading trails from {url}...")
    response = requests.get(url, timeout=DataConfig.DOWNLOAD_TIMEOUT_S)
    response.raise_for_status()
    target_path.write_bytes(response.content)
    logger.info(f"Trails downloaded to {target_path}")
    return target_path


def load_trail_collection(source: Union[str, Path, None] = None) -> dict[str, Any]:
    """Read a GeoJSON FeatureCollection from a URL or a local path.

    Args:
        source: http(s) URL or file path. None downloads (or reuses) the
            cached default dataset.

    Returns:
        The FeatureCollection dict.

    Raises:
        requests.RequestException: If a URL cannot be fetched.
        ValueError: If the document is not a FeatureCollection.
    """
    if source is None:
        source = download_trails()

    if isinstance(source, str) and source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=DataConfig.DOWNLOAD_TIMEOUT_S)
        response.raise_for_status()
        collection = response.json()
    else:
        with open(source, encoding="utf-8") as f:
            collection = json.load(f)

    if not isinstance(collection, dict) or collection.get("type") != "FeatureCollection":
        raise ValueError(f"Expected a GeoJSON FeatureCollection from {source}")

    logger.info(f"Loaded {len(collection.get('features', []))} trail features from {source}")
    return collection


def trail_features(collection: dict[str, Any], layer_id: Optional[str] = None) -> list[TrailFeature]:
    """All features of a collection as TrailFeature objects."""
    return [TrailFeature.from_geojson(feature, layer_id=layer_id) for feature in collection.get("features", [])]
