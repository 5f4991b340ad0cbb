from fastapi import APIRouter
import importlib
import logging
import pkgutil
import pathlib
from typing import List

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/v1")
BASE_PACKAGE = "app.api"
BASE_PATH = pathlib.Path(__file__).parent

routers = []  # Names of the loaded router modules

_routers_loaded = False


def init_routers():
    global _routers_loaded
    global routers
    if not _routers_loaded:
        routers = include_routers_from_package(BASE_PACKAGE, BASE_PATH)
        _routers_loaded = True


def include_routers_from_package(package: str, path: pathlib.Path) -> List[str]:
    """
    Discover the router of every module in the API package and mount it
    under the versioned prefix.
    :param package: Dotted package name to scan.
    :param path: Filesystem path of that package.
    :return: Names of the modules whose router was included.
    """
    loaded_routers = []

    logger.info("🐞 BugTracker Pro API - Loading routers...")
    logger.info(f"📦 Scanning package: {package}")

    for module_info in pkgutil.walk_packages([str(path)], prefix=f"{package}."):
        module_name = module_info.name.split(".")[-1]

        # Skip internal modules
        if module_name.startswith("_"):
            logger.debug(f"⏭️  Skipping module: {module_name}")
            continue

        try:
            module = importlib.import_module(module_info.name)
        except Exception as e:
            logger.error(f"❌ Failed to load router from {module_info.name}: {e}")
            raise

        router = getattr(module, "router", None)
        if router is None:
            logger.debug(f"⚠️  No router found in module: {module_name}")
            continue

        api_router.include_router(router)
        loaded_routers.append(module_name)
        logger.info(
            f"✅ Loaded router: {module_name} "
            f"(prefix: {router.prefix or 'none'}, "
            f"tags: {router.tags or 'none'}, "
            f"routes: {len(router.routes)})"
        )

    logger.info(
        f"📊 Loaded {len(loaded_routers)} routers: {', '.join(loaded_routers)}"
    )
    return loaded_routers


__all__ = ["api_router", "init_routers", "routers"]
