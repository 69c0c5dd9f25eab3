"""
Acquire command implementation.

Installs a JDK into the cache (or locates a local one) and prints its path
on stdout, so the command can be used in shell substitutions:

    export JAVA_HOME="$(jdkcache -q acquire -p ADOPTIUM -a version='17*')"
"""

import logging
from dataclasses import replace

from jdkcache.acquisition import AcquisitionOrchestrator
from jdkcache.config import AcquisitionRequest, AcquisitionSettings, load_config
from jdkcache.core.download import DownloadProgress
from jdkcache.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _report_progress(progress: DownloadProgress) -> None:
    logger.info(f"  {progress}")


def build_request_and_settings(args):
    """
    Merge the optional config file with command-line options.

    Command-line values win over the file.

    Raises:
        ConfigurationError: If no provider is given anywhere
    """
    settings, request = AcquisitionSettings(), None
    if args.config:
        settings, request = load_config(args.config)

    overrides = {}
    if args.cache_root:
        overrides["cache_root"] = args.cache_root
    if args.offline:
        overrides["offline"] = True
    if args.timeout:
        overrides["connection_timeout"] = args.timeout
    if args.keep_archive:
        overrides["keep_archive"] = True
    if overrides:
        settings = replace(settings, **overrides)

    provider = args.provider or (request.provider if request else None)
    if not provider:
        raise ConfigurationError("No provider given, use --provider or a config file")
    attributes = dict(request.attributes) if request else {}
    attributes.update(dict(args.attributes))
    return AcquisitionRequest(provider, attributes), settings


def run(args) -> int:
    """
    Run the acquire command.

    Returns:
        Exit code (0 for success)
    """
    request, settings = build_request_and_settings(args)
    logger.debug(f"Request: {request}, cache root: {settings.cache_root}")

    orchestrator = AcquisitionOrchestrator(
        settings, progress_callback=_report_progress
    )
    result = orchestrator.acquire(request)
    if result.was_cached:
        logger.info(f"Using cached JDK ({result.cache_key or 'local'})")
    print(result.path)
    return 0
