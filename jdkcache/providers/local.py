"""
Local filesystem strategy: use an installed JDK, never download.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from jdkcache.core.exceptions import ConfigurationError, ResolutionFailure
from jdkcache.core.filesystem import find_jdk_executable
from jdkcache.providers.base import LocalInstallation, ReleaseResolver

logger = logging.getLogger(__name__)


class LocalResolver(ReleaseResolver):
    """
    Resolves to an existing JDK directory.

    Attributes read:
        path: JDK home, defaults to $JAVA_HOME
        tool: Executable that must exist in ``bin/`` (default 'javac')
    """

    provider_id = "LOCAL"
    requires_download = False

    def cache_key(self) -> str:
        raise ConfigurationError("LOCAL: installed JDKs have no cache entry")

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> LocalInstallation:
        tool = self.attribute("tool", "javac")
        home = self.attribute("path") or os.environ.get("JAVA_HOME")
        searched = {"path": home or "", "tool": tool}
        if not home:
            raise ResolutionFailure(
                self.provider_id, searched, reason="neither 'path' nor JAVA_HOME is set"
            )

        jdk_home = Path(home).expanduser()
        executable = find_jdk_executable(jdk_home, tool)
        if executable is None:
            raise ResolutionFailure(
                self.provider_id,
                searched,
                reason=f"can't find executable bin/{tool} in {jdk_home}",
            )
        logger.info(f"Using local JDK {jdk_home}")
        return LocalInstallation(path=jdk_home, tool=executable)


__all__ = ["LocalResolver"]
